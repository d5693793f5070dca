"""Calendar arithmetic for rental periods"""

from datetime import date

from dateutil.relativedelta import relativedelta

from ...errors import ValidationError
from ..reservations.pricing import RatePeriod

PERIOD_DELTAS = {
    RatePeriod.DAY: relativedelta(days=1),
    RatePeriod.WEEK: relativedelta(weeks=1),
    RatePeriod.MONTH: relativedelta(months=1),
    RatePeriod.QUARTER: relativedelta(months=3),
    RatePeriod.SEMESTER: relativedelta(months=6),
    RatePeriod.YEAR: relativedelta(years=1),
}


def add_periods(start: date, period: RatePeriod, count: int) -> date:
    """
    ``start`` plus ``count`` periods. Month-based units clamp to the last day
    of the target month (Jan 31 + 1 month -> Feb 28/29).
    """
    if count < 1:
        raise ValidationError("Period count must be a positive integer")
    return start + PERIOD_DELTAS[RatePeriod(period)] * count
