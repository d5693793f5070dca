"""
Platform configuration lookup

Deposit and commission percentages live in ``platform_settings`` so they can be
changed without a deploy; env defaults apply when no row exists.
"""

import logging
from decimal import Decimal, InvalidOperation

from sqlalchemy.orm import Session

from ..config import DEFAULT_COMMISSION_PERCENTAGE, DEFAULT_DEPOSIT_PERCENTAGE
from ..domain.reservations.pricing import RatePercentages
from ..models import PlatformSetting

logger = logging.getLogger(__name__)

DEPOSIT_PERCENTAGE_KEY = "deposit_percentage"
COMMISSION_PERCENTAGE_KEY = "commission_percentage"


def _read_percentage(db: Session, key: str, default: str) -> Decimal:
    setting = db.query(PlatformSetting).filter(PlatformSetting.key == key).first()
    raw = setting.value if setting else default
    try:
        return Decimal(str(raw))
    except InvalidOperation:
        logger.warning(f"⚠️ Invalid platform setting {key}={raw!r}, using default {default}")
        return Decimal(default)


def get_rate_percentages(db: Session) -> RatePercentages:
    """Current deposit/commission percentages, read at the moment of the monetary event"""
    return RatePercentages(
        deposit_percentage=_read_percentage(db, DEPOSIT_PERCENTAGE_KEY, DEFAULT_DEPOSIT_PERCENTAGE),
        commission_percentage=_read_percentage(
            db, COMMISSION_PERCENTAGE_KEY, DEFAULT_COMMISSION_PERCENTAGE
        ),
    )


def set_platform_setting(db: Session, key: str, value, description: str = None) -> PlatformSetting:
    setting = db.query(PlatformSetting).filter(PlatformSetting.key == key).first()
    if setting:
        setting.value = str(value)
    else:
        setting = PlatformSetting(key=key, value=str(value), description=description)
        db.add(setting)
    db.commit()
    db.refresh(setting)
    logger.info(f"⚙️ Platform setting {key} = {value}")
    return setting
