"""
Snapshot builder

Captures the terms of a listing at deposit time. The result is a plain,
JSON-serializable value object; serialization uses a canonical encoding so a
contract copying the columns is byte-for-byte identical to the reservation.
"""

import json
from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from typing import Optional

from ...errors import SnapshotIncomplete
from ...shared.client_info import ClientInfo
from ...shared.validators import utcnow
from .pricing import RatePercentages, money, price_tier_table

REQUIRED_LISTING_FIELDS = ("title", "listing_type")


def canonical_json(data: dict) -> str:
    return json.dumps(data, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def _as_str(value) -> Optional[str]:
    return None if value is None else str(value)


@dataclass(frozen=True)
class FrozenSnapshot:
    listing: dict
    pricing: dict
    media_url: Optional[str]
    media_duration: Optional[int]
    description: Optional[str]
    captured_at: datetime
    ip: Optional[str] = None
    user_agent: Optional[str] = None
    deposit_percentage: Optional[Decimal] = None
    commission_percentage: Optional[Decimal] = None
    unit_price_applied: Optional[Decimal] = None

    def with_rates(self, rates: RatePercentages, unit_price: Decimal) -> "FrozenSnapshot":
        return replace(
            self,
            deposit_percentage=rates.deposit_percentage,
            commission_percentage=rates.commission_percentage,
            unit_price_applied=money(unit_price),
        )

    def to_columns(self) -> dict:
        """Values for the frozen_* columns of a reservation"""
        return {
            "frozen_listing_data": canonical_json(self.listing),
            "frozen_media_url": self.media_url,
            "frozen_media_duration": self.media_duration,
            "frozen_description": self.description,
            "frozen_pricing": canonical_json(self.pricing),
            "frozen_deposit_percentage": self.deposit_percentage,
            "frozen_commission_percentage": self.commission_percentage,
            "frozen_unit_price_applied": self.unit_price_applied,
            "frozen_snapshot_created_at": self.captured_at,
            "frozen_snapshot_ip": self.ip,
            "frozen_snapshot_user_agent": self.user_agent,
        }


def build_snapshot(
    listing, client: Optional[ClientInfo] = None, captured_at: Optional[datetime] = None
) -> FrozenSnapshot:
    """
    Deep-copy the live listing terms into a FrozenSnapshot.

    Raises:
        SnapshotIncomplete: If title or type is missing on the listing
    """
    missing = [name for name in REQUIRED_LISTING_FIELDS if not getattr(listing, name, None)]
    if missing:
        raise SnapshotIncomplete(f"Listing is missing required fields: {', '.join(missing)}")

    client = client or ClientInfo()

    listing_data = {
        "id": listing.id,
        "title": listing.title,
        "type": listing.listing_type,
        "capacity": {
            "total": _as_str(listing.total_capacity),
            "available": _as_str(listing.available_capacity),
        },
        "location": {
            "address": listing.address,
            "city": listing.city,
            "region": listing.region,
            "latitude": listing.latitude,
            "longitude": listing.longitude,
        },
        "conditions": {
            "is_open": bool(listing.is_open),
            "has_roof": bool(listing.has_roof),
            "rain_protected": bool(listing.rain_protected),
            "dust_protected": bool(listing.dust_protected),
            "access_type": listing.access_type,
            "has_security": bool(listing.has_security),
            "security_description": listing.security_description,
            "schedule": listing.schedule,
        },
        "owner_id": listing.owner_id,
    }

    return FrozenSnapshot(
        listing=listing_data,
        pricing=price_tier_table(listing),
        media_url=listing.media_url,
        media_duration=listing.media_duration,
        description=listing.description,
        # Second precision so the value round-trips identically through storage
        captured_at=(captured_at or utcnow()).replace(microsecond=0),
        ip=client.ip,
        user_agent=client.user_agent,
    )


def decode_snapshot(row) -> dict:
    """Decoded frozen terms of a reservation or contract row"""
    return {
        "listing": json.loads(row.frozen_listing_data) if row.frozen_listing_data else None,
        "pricing": json.loads(row.frozen_pricing) if row.frozen_pricing else None,
        "media_url": row.frozen_media_url,
        "media_duration": row.frozen_media_duration,
        "description": row.frozen_description,
        "deposit_percentage": _as_str(row.frozen_deposit_percentage),
        "commission_percentage": _as_str(row.frozen_commission_percentage),
        "unit_price_applied": _as_str(row.frozen_unit_price_applied),
        "captured_at": row.frozen_snapshot_created_at,
        "ip": row.frozen_snapshot_ip,
        "user_agent": row.frozen_snapshot_user_agent,
    }


def check_frozen_integrity(row) -> dict:
    """Report which required frozen fields are missing on a snapshotted row"""
    required = {
        "frozen_listing_data": row.frozen_listing_data,
        "frozen_pricing": row.frozen_pricing,
        "frozen_deposit_percentage": row.frozen_deposit_percentage,
        "frozen_commission_percentage": row.frozen_commission_percentage,
        "frozen_unit_price_applied": row.frozen_unit_price_applied,
        "frozen_snapshot_created_at": row.frozen_snapshot_created_at,
    }
    missing = [name for name, value in required.items() if value is None]
    return {"is_valid": not missing, "missing_fields": missing}
