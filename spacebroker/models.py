import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


def generate_public_id():
    """Generate a unique public ID for secure public access"""
    return str(uuid.uuid4())


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    public_id = Column(String(36), unique=True, index=True, default=generate_public_id)
    email = Column(String(255), unique=True, index=True, nullable=False)
    full_name = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    role = Column(String(20), default="requester", nullable=False)  # requester, owner, admin
    is_active = Column(Boolean, default=True, nullable=False)
    # Legal identity printed on contracts and invoices
    person_type = Column(String(20), nullable=True)  # natural, company
    national_id = Column(String(50), nullable=True)  # required for natural persons
    tax_id = Column(String(50), nullable=True)  # required for companies
    company_name = Column(String(255), nullable=True)
    # Account-level anti-circumvention consent (one-way, never revoked)
    anti_circumvention_accepted = Column(Boolean, default=False, nullable=False)
    anti_circumvention_accepted_at = Column(DateTime, nullable=True)
    anti_circumvention_version = Column(String(20), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    listings = relationship("Listing", back_populates="owner")


class Listing(Base):
    """
    Space listing as published by its owner.

    Everything here is mutable and may be edited at any time; reservations
    and contracts never read it after the deposit snapshot except for
    extension re-pricing.
    """

    __tablename__ = "listings"

    id = Column(Integer, primary_key=True, index=True)
    public_id = Column(String(36), unique=True, index=True, default=generate_public_id)
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String(255), nullable=True)
    listing_type = Column(String(50), nullable=True)  # warehouse, storage, parking, office...
    description = Column(Text, nullable=True)
    # Capacity in rentable units (square metres in practice)
    total_capacity = Column(Numeric(12, 2), nullable=False, default=0)
    available_capacity = Column(Numeric(12, 2), nullable=False, default=0)
    # Location
    address = Column(String(500), nullable=True)
    city = Column(String(100), nullable=True)
    region = Column(String(100), nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    # Structural conditions
    is_open = Column(Boolean, default=False)
    has_roof = Column(Boolean, default=True)
    rain_protected = Column(Boolean, default=True)
    dust_protected = Column(Boolean, default=True)
    access_type = Column(String(50), nullable=True)  # street, private, shared...
    has_security = Column(Boolean, default=False)
    security_description = Column(Text, nullable=True)
    schedule = Column(String(255), nullable=True)
    # Supporting media (validated on upload)
    media_url = Column(String(500), nullable=True)
    media_duration = Column(Integer, nullable=True)  # seconds
    # Price tiers per unit
    price_per_unit_day = Column(Numeric(12, 2), nullable=True)
    price_per_unit_week = Column(Numeric(12, 2), nullable=True)
    price_per_unit_month = Column(Numeric(12, 2), nullable=True)
    price_per_unit_quarter = Column(Numeric(12, 2), nullable=True)
    price_per_unit_semester = Column(Numeric(12, 2), nullable=True)
    price_per_unit_year = Column(Numeric(12, 2), nullable=True)
    status = Column(String(20), default="draft", nullable=False)  # draft, published, paused, deleted
    is_calendar_active = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    owner = relationship("User", back_populates="listings")
    availability = relationship(
        "ListingAvailability", back_populates="listing", cascade="all, delete-orphan"
    )


class ListingAvailability(Base):
    """Visit availability window: weekly (day_of_week) or for one specific date"""

    __tablename__ = "listing_availability"

    id = Column(Integer, primary_key=True, index=True)
    listing_id = Column(Integer, ForeignKey("listings.id"), nullable=False, index=True)
    day_of_week = Column(Integer, nullable=True)  # 0=Monday .. 6=Sunday
    specific_date = Column(Date, nullable=True)
    start_time = Column(String(5), nullable=False)  # HH:MM
    end_time = Column(String(5), nullable=False)  # HH:MM
    is_blocked = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    listing = relationship("Listing", back_populates="availability")


class PlatformSetting(Base):
    """Runtime platform configuration (deposit_percentage, commission_percentage...)"""

    __tablename__ = "platform_settings"

    id = Column(Integer, primary_key=True, index=True)
    key = Column(String(100), unique=True, nullable=False)
    value = Column(String(255), nullable=False)
    description = Column(String(500), nullable=True)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class LegalText(Base):
    """Versioned legal clause; one active row per text_type"""

    __tablename__ = "legal_texts"
    __table_args__ = (UniqueConstraint("text_type", "version", name="uq_legal_text_version"),)

    id = Column(Integer, primary_key=True, index=True)
    text_type = Column(String(50), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    content = Column(Text, nullable=False)
    version = Column(String(20), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    effective_date = Column(Date, nullable=True)
    created_at = Column(DateTime, server_default=func.now())


class AuditLog(Base):
    __tablename__ = "audit_log"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    action = Column(String(100), nullable=False)
    entity_type = Column(String(50), nullable=False)
    entity_id = Column(Integer, nullable=True)
    old_data = Column(JSON, nullable=True)
    new_data = Column(JSON, nullable=True)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(500), nullable=True)
    created_at = Column(DateTime, server_default=func.now())


class NotificationLog(Base):
    __tablename__ = "notification_log"

    id = Column(Integer, primary_key=True, index=True)
    recipient_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    event_type = Column(String(100), nullable=False)
    payload = Column(JSON, nullable=True)
    status = Column(String(20), default="pending", nullable=False)  # pending, sent, failed
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
