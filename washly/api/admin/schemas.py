"""
Admin API Validation Schemas
"""
from typing import Optional, Dict, Any, Tuple

from washly.services.pricing_settings import (
    TAX_PERCENTAGE_SETTING_KEY,
    DEFAULT_PARTNER_COMMISSION_SETTING_KEY,
    LOYALTY_POINTS_PER_UNIT_SETTING_KEY,
    FREE_WASH_EVERY_N_BOOKINGS_SETTING_KEY,
    LOYALTY_POINTS_PER_CREDIT_UNIT_SETTING_KEY,
    STRIPE_FEE_PERCENTAGE_SETTING_KEY,
    EXTRA_FEE_AMOUNT_SETTING_KEY,
    ENABLE_COUPONS_FLAG_KEY,
    ENABLE_LOYALTY_FLAG_KEY,
)

PERCENTAGE_FIELDS = {
    'taxPercentage': TAX_PERCENTAGE_SETTING_KEY,
    'stripeFeePercentage': STRIPE_FEE_PERCENTAGE_SETTING_KEY,
    'partnerCommissionPercentage': DEFAULT_PARTNER_COMMISSION_SETTING_KEY,
}

POSITIVE_INT_FIELDS = {
    'loyaltyPointsPerUnit': LOYALTY_POINTS_PER_UNIT_SETTING_KEY,
    'loyaltyPointsPerCreditUnit': LOYALTY_POINTS_PER_CREDIT_UNIT_SETTING_KEY,
    'freeWashInterval': FREE_WASH_EVERY_N_BOOKINGS_SETTING_KEY,
}

FLAG_FIELDS = {
    'enableCoupons': ENABLE_COUPONS_FLAG_KEY,
    'enableLoyalty': ENABLE_LOYALTY_FLAG_KEY,
}


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class AdminSchemas:
    """Validation schemas for admin endpoints"""

    @staticmethod
    def validate_pricing_settings(data: Dict[str, Any]) -> Tuple[bool, Optional[Dict[str, str]], Optional[Dict[str, Any]]]:
        """
        Validate a pricing settings update

        Every field is optional; null clears a fee or percentage setting.

        Returns:
            Tuple of (is_valid, errors, cleaned_data) where cleaned_data maps
            setting key to (value, data_type)
        """
        errors = {}
        cleaned_data = {}

        for field, key in PERCENTAGE_FIELDS.items():
            if field not in data:
                continue
            value = data[field]
            if value is None:
                cleaned_data[key] = ('', 'float')
            elif not _is_number(value) or value < 0 or value > 100:
                errors[field] = f'{field} must be a number between 0 and 100'
            else:
                cleaned_data[key] = (value, 'float')

        if 'extraFee' in data:
            value = data['extraFee']
            if value is None:
                cleaned_data[EXTRA_FEE_AMOUNT_SETTING_KEY] = ('', 'float')
            elif not _is_number(value) or value < 0:
                errors['extraFee'] = 'extraFee must be a non-negative amount in currency units'
            else:
                cleaned_data[EXTRA_FEE_AMOUNT_SETTING_KEY] = (value, 'float')

        for field, key in POSITIVE_INT_FIELDS.items():
            if field not in data:
                continue
            value = data[field]
            if value is None and field == 'freeWashInterval':
                cleaned_data[key] = ('', 'int')
            elif not isinstance(value, int) or isinstance(value, bool) or value < 1:
                errors[field] = f'{field} must be a positive integer'
            else:
                cleaned_data[key] = (value, 'int')

        for field, key in FLAG_FIELDS.items():
            if field not in data:
                continue
            value = data[field]
            if not isinstance(value, bool):
                errors[field] = f'{field} must be true or false'
            else:
                cleaned_data[key] = (value, 'bool')

        if not errors and not cleaned_data:
            errors['settings'] = 'No pricing settings supplied'

        return len(errors) == 0, errors if errors else None, cleaned_data if not errors else None
