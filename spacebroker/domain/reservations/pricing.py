"""
Pricing calculator

Pure arithmetic over a per-unit price, quantity, period count and the
platform percentages in force at the moment of the monetary event. The
percentages are passed in and echoed back in the result so callers persist
them with the amounts and never recompute from current configuration.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Union

from ...errors import CapacityError, ValidationError

CENT = Decimal("0.01")
HUNDRED = Decimal("100")

Number = Union[Decimal, int, float, str]


class RatePeriod(str, Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    QUARTER = "quarter"
    SEMESTER = "semester"
    YEAR = "year"

    @property
    def price_field(self) -> str:
        return f"price_per_unit_{self.value}"


def to_decimal(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        return value
    try:
        # str() first so floats keep their printed value (0.1 -> "0.1")
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise ValidationError(f"Invalid numeric value: {value!r}") from e


def money(value: Number) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class RatePercentages:
    deposit_percentage: Decimal
    commission_percentage: Decimal

    def __post_init__(self):
        for name in ("deposit_percentage", "commission_percentage"):
            value = to_decimal(getattr(self, name))
            if value < 0 or value > HUNDRED:
                raise ValidationError(f"{name} must be between 0 and 100")
            object.__setattr__(self, name, value)


@dataclass(frozen=True)
class PricingBreakdown:
    unit_price: Decimal
    quantity: Decimal
    periods: int
    total: Decimal
    deposit: Decimal
    remaining: Decimal
    commission: Decimal
    host_payout: Decimal
    rates: RatePercentages


def calculate_pricing(
    unit_price: Number, quantity: Number, periods: int, rates: RatePercentages
) -> PricingBreakdown:
    """
    total = price x quantity x periods
    deposit = total x deposit% / 100, remaining = total - deposit
    commission = total x commission% / 100, host_payout = total - commission

    Amounts are rounded half-up to cents; remaining and host_payout are derived
    by subtraction so deposit + remaining == total exactly.
    """
    price = to_decimal(unit_price)
    qty = to_decimal(quantity)
    if price <= 0:
        raise CapacityError("Price tier is not set for this period", code="missing_price_tier")
    if qty <= 0:
        raise ValidationError("Requested quantity must be greater than zero")
    if not isinstance(periods, int) or isinstance(periods, bool) or periods < 1:
        raise ValidationError("Period count must be a positive integer")

    total = money(price * qty * periods)
    deposit = money(total * rates.deposit_percentage / HUNDRED)
    commission = money(total * rates.commission_percentage / HUNDRED)

    return PricingBreakdown(
        unit_price=money(price),
        quantity=qty,
        periods=periods,
        total=total,
        deposit=deposit,
        remaining=total - deposit,
        commission=commission,
        host_payout=total - commission,
        rates=rates,
    )


def price_tier_table(listing) -> dict[str, str]:
    """Every per-unit price tier of a listing, as strings (None when unset)"""
    table = {}
    for period in RatePeriod:
        value = getattr(listing, period.price_field, None)
        table[period.value] = None if value is None else str(money(value))
    return table


def unit_price_for(price_table: dict, period: RatePeriod) -> Decimal:
    """Resolve the per-unit price for ``period`` or fail with CapacityError"""
    value = price_table.get(period.value)
    if value is None or to_decimal(value) <= 0:
        raise CapacityError(
            f"No price configured for period '{period.value}'", code="missing_price_tier"
        )
    return money(value)
