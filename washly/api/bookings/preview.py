from flask import request, current_app
from flask_jwt_extended import jwt_required, get_jwt_identity

from washly.api.bookings.schemas import BookingSchemas
from washly.services.booking_pricing import PricingRequest, calculate_booking_pricing
from washly.utils.api_response import APIResponse
from washly.utils.decorators import handle_pricing_errors

from . import bookings_bp


@bookings_bp.route('/preview', methods=['POST'])
@jwt_required()
@handle_pricing_errors
def preview_pricing():
    """
    Quote a booking without saving anything

    Request Body:
    {
        "serviceId": "uuid",
        "couponCode": "SAVE10",
        "loyaltyPoints": 100,
        "vehicleCount": 1,
        "latitude": 25.2,
        "longitude": 55.27
    }
    """
    data = request.get_json(silent=True) or {}

    is_valid, errors, cleaned_data = BookingSchemas.validate_pricing_request(data)
    if not is_valid:
        return APIResponse.validation_error(errors)

    breakdown = calculate_booking_pricing(
        PricingRequest(user_id=get_jwt_identity(), **cleaned_data)
    )

    current_app.logger.debug(f"Preview for service {cleaned_data['service_id']}: {breakdown.final_price_cents}")

    return APIResponse.success(
        data={'pricing': breakdown.to_dict()},
        message='Pricing calculated successfully'
    )
