from flask import request
from flask_jwt_extended import jwt_required, get_jwt_identity

from washly.api.bookings.schemas import BookingSchemas
from washly.services.booking_pricing import (
    PricingRequest, create_booking_with_pricing, cancel_booking as cancel_pending_booking
)
from washly.utils.api_response import APIResponse
from washly.utils.decorators import handle_pricing_errors

from . import bookings_bp


@bookings_bp.route('', methods=['POST'])
@jwt_required()
@handle_pricing_errors
def create_booking():
    """
    Create a pending booking with its pricing snapshot

    Request Body: the preview body plus optional "startAt" (ISO 8601)
    and "locationLabel"
    """
    data = request.get_json(silent=True) or {}

    is_valid, errors, cleaned_data = BookingSchemas.validate_booking_creation(data)
    if not is_valid:
        return APIResponse.validation_error(errors)

    start_at = cleaned_data.pop('start_at', None)
    location_label = cleaned_data.pop('location_label', None)

    booking, breakdown = create_booking_with_pricing(
        PricingRequest(user_id=get_jwt_identity(), **cleaned_data),
        start_at=start_at,
        location_label=location_label
    )

    return APIResponse.success(
        data={'booking': booking.to_dict(), 'pricing': breakdown.to_dict()},
        message='Booking created successfully',
        status_code=201
    )


@bookings_bp.route('/<booking_id>/cancel', methods=['POST'])
@jwt_required()
@handle_pricing_errors
def cancel_booking(booking_id):
    """Cancel a pending booking; applied loyalty points are returned"""
    booking = cancel_pending_booking(booking_id, get_jwt_identity())

    return APIResponse.success(
        data={'booking': booking.to_dict()},
        message='Booking cancelled successfully'
    )
