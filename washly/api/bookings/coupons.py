from flask import request
from flask_jwt_extended import jwt_required, get_jwt_identity

from washly.api.bookings.schemas import BookingSchemas
from washly.services.coupons import CouponService
from washly.utils.api_response import APIResponse
from washly.utils.decorators import handle_pricing_errors

from . import bookings_bp


@bookings_bp.route('/apply-coupon', methods=['POST'])
@jwt_required()
@handle_pricing_errors
def apply_coupon():
    """
    Apply a coupon to one of the caller's pending bookings

    Request Body:
    {
        "bookingId": "uuid",
        "code": "SAVE10"
    }
    """
    data = request.get_json(silent=True) or {}

    is_valid, errors, cleaned_data = BookingSchemas.validate_apply_coupon(data)
    if not is_valid:
        return APIResponse.validation_error(errors)

    result = CouponService.apply_coupon_to_booking(
        cleaned_data['booking_id'],
        get_jwt_identity(),
        cleaned_data['code']
    )

    return APIResponse.success(data=result, message='Coupon applied successfully')


@bookings_bp.route('/apply-coupon', methods=['DELETE'])
@jwt_required()
@handle_pricing_errors
def remove_coupon():
    """Remove the coupon from one of the caller's pending bookings"""
    data = request.get_json(silent=True) or {}

    is_valid, errors, cleaned_data = BookingSchemas.validate_remove_coupon(data)
    if not is_valid:
        return APIResponse.validation_error(errors)

    result = CouponService.remove_coupon_from_booking(cleaned_data['booking_id'], get_jwt_identity())

    return APIResponse.success(data=result, message='Coupon removed successfully')
