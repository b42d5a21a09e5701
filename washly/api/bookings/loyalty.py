from flask import request
from flask_jwt_extended import jwt_required, get_jwt_identity

from washly.api.bookings.schemas import BookingSchemas
from washly.services.loyalty import LoyaltyService
from washly.utils.api_response import APIResponse
from washly.utils.decorators import handle_pricing_errors

from . import bookings_bp


@bookings_bp.route('/apply-loyalty', methods=['POST'])
@jwt_required()
@handle_pricing_errors
def apply_loyalty():
    """
    Redeem loyalty points against a pending booking

    Request Body:
    {
        "bookingId": "uuid",
        "points": 100
    }
    """
    data = request.get_json(silent=True) or {}

    is_valid, errors, cleaned_data = BookingSchemas.validate_apply_loyalty(data)
    if not is_valid:
        return APIResponse.validation_error(errors)

    result = LoyaltyService.apply_points_to_booking(
        cleaned_data['booking_id'],
        get_jwt_identity(),
        cleaned_data['points']
    )

    message = 'Loyalty points applied successfully'
    if result['loyaltyPointsApplied'] == 0:
        message = 'No loyalty points could be applied'

    return APIResponse.success(data=result, message=message)
