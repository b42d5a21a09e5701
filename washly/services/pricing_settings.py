"""
Typed snapshot of the admin pricing settings.

Settings are stored as flat key/value rows under stable hand-assigned keys.
They are read once per pricing computation and passed explicitly into the
computation functions; nothing here is cached between requests.
"""
import logging
import math
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from washly.models.settings import Settings
from washly.services.errors import PricingError, PricingErrorKind
from washly.services.pricing import FeeAdjustments, round_cents

logger = logging.getLogger(__name__)

TAX_PERCENTAGE_SETTING_KEY = "64bf00000000000000000002"
DEFAULT_PARTNER_COMMISSION_SETTING_KEY = "64bf00000000000000000003"
LOYALTY_POINTS_PER_UNIT_SETTING_KEY = "64bf00000000000000000005"
FREE_WASH_EVERY_N_BOOKINGS_SETTING_KEY = "64bf00000000000000000006"
LOYALTY_POINTS_PER_CREDIT_UNIT_SETTING_KEY = "64bf00000000000000000007"
STRIPE_FEE_PERCENTAGE_SETTING_KEY = "64bf00000000000000000008"
EXTRA_FEE_AMOUNT_SETTING_KEY = "64bf00000000000000000009"

ENABLE_COUPONS_FLAG_KEY = "enableCoupons"
ENABLE_LOYALTY_FLAG_KEY = "enableLoyalty"

DEFAULT_POINTS_PER_UNIT = 1
DEFAULT_POINTS_PER_CREDIT_UNIT = 10

# (key, data_type, description, seed value)
SETTING_DEFINITIONS = [
    (TAX_PERCENTAGE_SETTING_KEY, 'float', 'Tax percentage added to every booking', '5'),
    (DEFAULT_PARTNER_COMMISSION_SETTING_KEY, 'float', 'Default partner commission percentage', '20'),
    (LOYALTY_POINTS_PER_UNIT_SETTING_KEY, 'int', 'Loyalty points earned per currency unit paid', '1'),
    (FREE_WASH_EVERY_N_BOOKINGS_SETTING_KEY, 'int', 'Free wash every N paid bookings', '10'),
    (LOYALTY_POINTS_PER_CREDIT_UNIT_SETTING_KEY, 'int', 'Loyalty points needed per currency unit of credit', '10'),
    (STRIPE_FEE_PERCENTAGE_SETTING_KEY, 'float', 'Payment processor fee percentage', '0'),
    (EXTRA_FEE_AMOUNT_SETTING_KEY, 'float', 'Extra flat fee per booking, in currency units', '0'),
    (ENABLE_COUPONS_FLAG_KEY, 'bool', 'Allow coupon codes on bookings', 'true'),
    (ENABLE_LOYALTY_FLAG_KEY, 'bool', 'Allow loyalty point redemption', 'true'),
]


def _parse_number(value) -> Optional[float]:
    if value is None:
        return None
    try:
        parsed = float(str(value).strip().replace(',', '.'))
    except ValueError:
        return None
    return parsed if math.isfinite(parsed) else None


def parse_percentage_setting(value) -> Optional[float]:
    parsed = _parse_number(value)
    if parsed is None or parsed < 0 or parsed > 100:
        return None
    return parsed


def parse_non_negative_number_setting(value) -> Optional[float]:
    parsed = _parse_number(value)
    if parsed is None or parsed < 0:
        return None
    return parsed


def parse_positive_int_setting(value) -> Optional[int]:
    parsed = _parse_number(value)
    if parsed is None or parsed <= 0:
        return None
    return int(parsed)


def parse_flag(value, fallback: bool) -> bool:
    if value is None:
        return fallback
    return str(value).strip().lower() == 'true'


@dataclass(frozen=True)
class LoyaltySettings:
    points_per_unit: int = DEFAULT_POINTS_PER_UNIT
    points_per_credit_unit: int = DEFAULT_POINTS_PER_CREDIT_UNIT
    free_wash_interval: Optional[int] = None


@dataclass(frozen=True)
class PricingSettings:
    tax_percentage: Optional[float] = None
    stripe_fee_percentage: Optional[float] = None
    extra_fee_amount_cents: Optional[int] = None
    partner_commission_percentage: Optional[float] = None
    loyalty: LoyaltySettings = LoyaltySettings()
    enable_coupons: bool = True
    enable_loyalty: bool = True

    @property
    def fee_adjustments(self) -> FeeAdjustments:
        return FeeAdjustments(
            tax_percentage=self.tax_percentage,
            stripe_fee_percentage=self.stripe_fee_percentage,
            extra_fee_amount_cents=self.extra_fee_amount_cents
        )

    def to_dict(self):
        return {
            'taxPercentage': self.tax_percentage,
            'stripeFeePercentage': self.stripe_fee_percentage,
            'extraFeeCents': self.extra_fee_amount_cents,
            'partnerCommissionPercentage': self.partner_commission_percentage,
            'loyaltyPointsPerUnit': self.loyalty.points_per_unit,
            'loyaltyPointsPerCreditUnit': self.loyalty.points_per_credit_unit,
            'freeWashInterval': self.loyalty.free_wash_interval,
            'enableCoupons': self.enable_coupons,
            'enableLoyalty': self.enable_loyalty
        }

    @classmethod
    def from_rows(cls, rows: dict) -> 'PricingSettings':
        extra_fee = parse_non_negative_number_setting(rows.get(EXTRA_FEE_AMOUNT_SETTING_KEY))

        loyalty = LoyaltySettings(
            points_per_unit=parse_positive_int_setting(rows.get(LOYALTY_POINTS_PER_UNIT_SETTING_KEY))
            or DEFAULT_POINTS_PER_UNIT,
            points_per_credit_unit=parse_positive_int_setting(rows.get(LOYALTY_POINTS_PER_CREDIT_UNIT_SETTING_KEY))
            or DEFAULT_POINTS_PER_CREDIT_UNIT,
            free_wash_interval=parse_positive_int_setting(rows.get(FREE_WASH_EVERY_N_BOOKINGS_SETTING_KEY))
        )

        return cls(
            tax_percentage=parse_percentage_setting(rows.get(TAX_PERCENTAGE_SETTING_KEY)),
            stripe_fee_percentage=parse_percentage_setting(rows.get(STRIPE_FEE_PERCENTAGE_SETTING_KEY)),
            extra_fee_amount_cents=round_cents(Decimal(str(extra_fee)) * 100) if extra_fee is not None else None,
            partner_commission_percentage=parse_percentage_setting(rows.get(DEFAULT_PARTNER_COMMISSION_SETTING_KEY)),
            loyalty=loyalty,
            enable_coupons=parse_flag(rows.get(ENABLE_COUPONS_FLAG_KEY), True),
            enable_loyalty=parse_flag(rows.get(ENABLE_LOYALTY_FLAG_KEY), True)
        )

    @classmethod
    def load(cls) -> 'PricingSettings':
        """Read all setting rows in one query and parse them"""
        try:
            rows = Settings.find_many()
        except SQLAlchemyError as e:
            logger.error(f"Failed to load pricing settings: {str(e)}")
            raise PricingError(
                PricingErrorKind.SETTINGS_UNAVAILABLE,
                'Pricing settings are unavailable'
            ) from e

        return cls.from_rows(rows)
