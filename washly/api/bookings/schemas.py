"""
Booking Pricing API Validation Schemas
Request shape checks for preview, creation, coupon and loyalty endpoints.
Range rules that belong to pricing itself are enforced by the pricing services.
"""
from datetime import datetime
from typing import Optional, Dict, Any, Tuple


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class BookingSchemas:
    """Validation schemas for booking pricing endpoints"""

    @staticmethod
    def _required_string(data, field, errors, cleaned_data, target):
        value = data.get(field)
        if not isinstance(value, str) or not value.strip():
            errors[field] = f'{field} is required'
        else:
            cleaned_data[target] = value.strip()

    @staticmethod
    def validate_pricing_request(data: Dict[str, Any]) -> Tuple[bool, Optional[Dict[str, str]], Optional[Dict[str, Any]]]:
        """
        Validate a pricing preview or booking creation body

        Args:
            data: Request JSON (camelCase keys)

        Returns:
            Tuple of (is_valid, errors, cleaned_data)
        """
        errors = {}
        cleaned_data = {}

        BookingSchemas._required_string(data, 'serviceId', errors, cleaned_data, 'service_id')

        coupon_code = data.get('couponCode')
        if coupon_code is not None:
            if not isinstance(coupon_code, str):
                errors['couponCode'] = 'Coupon code must be a string'
            elif coupon_code.strip():
                cleaned_data['coupon_code'] = coupon_code.strip()

        booking_id = data.get('bookingId')
        if booking_id is not None:
            if not isinstance(booking_id, str) or not booking_id.strip():
                errors['bookingId'] = 'Booking ID must be a string'
            else:
                cleaned_data['booking_id'] = booking_id.strip()

        for field, target in (
            ('loyaltyPoints', 'loyalty_points'),
            ('vehicleCount', 'vehicle_count'),
            ('servicePriceCentsOverride', 'service_price_cents_override'),
        ):
            value = data.get(field)
            if value is None:
                continue
            if not _is_int(value):
                errors[field] = f'{field} must be an integer'
            else:
                cleaned_data[target] = value

        for field in ('latitude', 'longitude'):
            value = data.get(field)
            if value is None:
                continue
            if not _is_number(value):
                errors[field] = f'{field} must be a number'
            else:
                cleaned_data[field] = float(value)

        return len(errors) == 0, errors if errors else None, cleaned_data if not errors else None

    @staticmethod
    def validate_booking_creation(data: Dict[str, Any]) -> Tuple[bool, Optional[Dict[str, str]], Optional[Dict[str, Any]]]:
        """Pricing fields plus the optional schedule and label"""
        is_valid, errors, cleaned_data = BookingSchemas.validate_pricing_request(data)
        errors = errors or {}
        cleaned_data = cleaned_data or {}

        start_at = data.get('startAt')
        if start_at:
            try:
                cleaned_data['start_at'] = datetime.fromisoformat(str(start_at).replace('Z', '+00:00'))
            except ValueError:
                errors['startAt'] = 'Invalid date format. Use ISO 8601'

        location_label = data.get('locationLabel')
        if location_label is not None:
            if not isinstance(location_label, str) or len(location_label) > 120:
                errors['locationLabel'] = 'Location label must be a string of at most 120 characters'
            else:
                cleaned_data['location_label'] = location_label.strip()

        if 'bookingId' in data:
            errors['bookingId'] = 'bookingId is not accepted when creating a booking'

        return len(errors) == 0, errors if errors else None, cleaned_data if not errors else None

    @staticmethod
    def validate_apply_coupon(data: Dict[str, Any]) -> Tuple[bool, Optional[Dict[str, str]], Optional[Dict[str, Any]]]:
        errors = {}
        cleaned_data = {}

        BookingSchemas._required_string(data, 'bookingId', errors, cleaned_data, 'booking_id')

        code = data.get('code')
        if not isinstance(code, str):
            errors['code'] = 'Coupon code must be a string'
        else:
            # Blank codes are rejected by the coupon service as INVALID_CODE
            cleaned_data['code'] = code

        return len(errors) == 0, errors if errors else None, cleaned_data if not errors else None

    @staticmethod
    def validate_remove_coupon(data: Dict[str, Any]) -> Tuple[bool, Optional[Dict[str, str]], Optional[Dict[str, Any]]]:
        errors = {}
        cleaned_data = {}

        BookingSchemas._required_string(data, 'bookingId', errors, cleaned_data, 'booking_id')

        return len(errors) == 0, errors if errors else None, cleaned_data if not errors else None

    @staticmethod
    def validate_apply_loyalty(data: Dict[str, Any]) -> Tuple[bool, Optional[Dict[str, str]], Optional[Dict[str, Any]]]:
        errors = {}
        cleaned_data = {}

        BookingSchemas._required_string(data, 'bookingId', errors, cleaned_data, 'booking_id')

        points = data.get('points')
        if not _is_int(points):
            errors['points'] = 'Points must be an integer'
        else:
            cleaned_data['points'] = points

        return len(errors) == 0, errors if errors else None, cleaned_data if not errors else None
