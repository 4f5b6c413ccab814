"""
Promotion Pricing

Pure discount arithmetic and the apply/revert mutations on variant
pricing fields. Nothing here touches a store; callers persist the
returned variants.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, List, Optional, Tuple, Union

from .models import DiscountType, Variant

Number = Union[Decimal, int, float, str]

ZERO = Decimal("0")
HUNDRED = Decimal("100")
CENT = Decimal("0.01")
DEFAULT_SALE_NOTE = "Promotion"


def to_decimal(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        return value
    # str() keeps floats like 0.1 from dragging binary noise along
    return Decimal(str(value))


def round2(value: Number) -> Decimal:
    """Round to 2 decimal places, half away from zero"""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def clamp(value: Decimal, low: Decimal, high: Decimal) -> Decimal:
    return max(low, min(high, value))


def compute_discount(
    base_price: Number,
    discount_type: DiscountType,
    value: Number,
) -> Tuple[Decimal, Decimal]:
    """
    Compute (discount_price, discount_percent) for one base price.

    Percentage: price = max(0, round2(base * (1 - value / 100))), percent = value.
    Fixed amount: price = max(0, round2(base - value)),
    percent = clamp(round2(value / base * 100), 0, 100), or 0 for a free item.
    """
    base = to_decimal(base_price)
    amount = to_decimal(value)

    if discount_type == DiscountType.PERCENTAGE:
        price = max(ZERO, round2(base * (1 - amount / HUNDRED)))
        return price, amount

    if discount_type == DiscountType.FIXED_AMOUNT:
        price = max(ZERO, round2(base - amount))
        if base > 0:
            percent = clamp(round2(amount / base * HUNDRED), ZERO, HUNDRED)
        else:
            percent = ZERO
        return price, percent

    raise ValueError(f"Unsupported discount type: {discount_type}")


class PricingMutator:
    """Only writer of variant sale pricing fields"""

    def __init__(self, default_note: str = DEFAULT_SALE_NOTE):
        self.default_note = default_note

    def apply(
        self,
        variant: Variant,
        discount_type: DiscountType,
        value: Number,
        note: Optional[str] = None,
    ) -> Variant:
        """Return a copy of the variant carrying the campaign's sale pricing"""
        price, percent = compute_discount(variant.base_price, discount_type, value)
        return variant.model_copy(update={
            "discount_price": price,
            "discount_percent": percent,
            "on_sales": True,
            "sale_note": note or self.default_note,
        })

    def revert(self, variant: Variant) -> Variant:
        """Return a copy of the variant with sale pricing cleared"""
        return variant.model_copy(update={
            "discount_price": ZERO,
            "discount_percent": ZERO,
            "on_sales": False,
            "sale_note": "",
        })

    def apply_all(
        self,
        variants: Iterable[Variant],
        discount_type: DiscountType,
        value: Number,
        note: Optional[str] = None,
    ) -> List[Variant]:
        return [self.apply(v, discount_type, value, note) for v in variants]

    def revert_all(self, variants: Iterable[Variant]) -> List[Variant]:
        return [self.revert(v) for v in variants]


__all__ = [
    "PricingMutator",
    "compute_discount",
    "round2",
    "to_decimal",
    "DEFAULT_SALE_NOTE",
]
