import math
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional


def _is_number(value) -> bool:
    if value is None or isinstance(value, bool):
        return False
    try:
        return math.isfinite(value)
    except TypeError:
        return False


def round_cents(value) -> int:
    """Round to the nearest minor unit, halves away from zero"""
    return int(Decimal(str(value)).quantize(Decimal('1'), rounding=ROUND_HALF_UP))


def clamp_percentage(value) -> float:
    if not _is_number(value):
        return 0
    return min(max(value, 0), 100)


def percentage_of(amount_cents: int, percentage) -> int:
    """round(amount * percentage / 100) computed without float drift"""
    bounded = clamp_percentage(percentage)
    if bounded <= 0:
        return 0
    return round_cents(Decimal(str(amount_cents)) * Decimal(str(bounded)) / Decimal('100'))


@dataclass(frozen=True)
class FeeAdjustments:
    """Fee settings applied on top of a net price. Any field may be unset."""
    tax_percentage: Optional[float] = None
    stripe_fee_percentage: Optional[float] = None
    extra_fee_amount_cents: Optional[int] = None


class PricingCalculator:
    """Calculate booking prices and fees in minor currency units"""

    @staticmethod
    def calculate_discounted_price(price_cents, discount_percentage=None) -> int:
        """Apply a percentage discount; result stays within [0, price]"""
        if not _is_number(price_cents) or price_cents <= 0:
            return 0

        if not _is_number(discount_percentage) or discount_percentage <= 0:
            return round_cents(price_cents)

        bounded = clamp_percentage(discount_percentage)
        discounted = round_cents(
            Decimal(str(price_cents)) * (Decimal('100') - Decimal(str(bounded))) / Decimal('100')
        )
        return max(0, discounted)

    @staticmethod
    def apply_fees_to_price(price_cents, adjustments: Optional[FeeAdjustments] = None) -> int:
        """
        Add tax, payment-processor fee and the flat extra fee to a price.

        Both percentages are taken of the same starting amount and summed; they
        never compound on each other.
        """
        base = max(0, round_cents(price_cents)) if _is_number(price_cents) else 0
        if adjustments is None:
            return base

        total = base
        total += percentage_of(base, adjustments.tax_percentage)
        total += percentage_of(base, adjustments.stripe_fee_percentage)

        extra = adjustments.extra_fee_amount_cents
        if _is_number(extra) and extra > 0:
            total += round_cents(extra)

        return max(0, total)

    @staticmethod
    def fee_breakdown(price_cents, adjustments: Optional[FeeAdjustments] = None) -> dict:
        """Individual fee components for a net price, as added by apply_fees_to_price"""
        base = max(0, round_cents(price_cents)) if _is_number(price_cents) else 0
        adjustments = adjustments or FeeAdjustments()
        extra = adjustments.extra_fee_amount_cents
        return {
            'tax_cents': percentage_of(base, adjustments.tax_percentage),
            'stripe_fee_cents': percentage_of(base, adjustments.stripe_fee_percentage),
            'extra_fee_cents': round_cents(extra) if _is_number(extra) and extra > 0 else 0,
        }

    @staticmethod
    def _non_negative_cents(value) -> int:
        if not _is_number(value):
            return 0
        return max(0, round_cents(value))

    @staticmethod
    def calculate_price_after_credit(
        price_cents,
        discount_percentage=None,
        loyalty_credit_applied_cents=None,
        adjustments: Optional[FeeAdjustments] = None
    ) -> int:
        """Discount, then loyalty credit (floored at 0), then fees on the net"""
        discounted = PricingCalculator.calculate_discounted_price(price_cents, discount_percentage)
        credit = PricingCalculator._non_negative_cents(loyalty_credit_applied_cents)
        net = max(0, discounted - credit)
        return PricingCalculator.apply_fees_to_price(net, adjustments)

    @staticmethod
    def apply_coupon_and_credits(
        price_cents,
        discount_percentage=None,
        coupon_discount_cents=None,
        loyalty_credit_applied_cents=None,
        adjustments: Optional[FeeAdjustments] = None
    ) -> int:
        """Discount, then coupon, then loyalty credit (net floored at 0), then fees"""
        net = PricingCalculator.net_after_coupon_and_credits(
            price_cents, discount_percentage, coupon_discount_cents, loyalty_credit_applied_cents
        )
        return PricingCalculator.apply_fees_to_price(net, adjustments)

    @staticmethod
    def net_after_coupon_and_credits(
        price_cents,
        discount_percentage=None,
        coupon_discount_cents=None,
        loyalty_credit_applied_cents=None
    ) -> int:
        discounted = PricingCalculator.calculate_discounted_price(price_cents, discount_percentage)
        coupon = PricingCalculator._non_negative_cents(coupon_discount_cents)
        credit = PricingCalculator._non_negative_cents(loyalty_credit_applied_cents)
        return max(0, discounted - coupon - credit)
