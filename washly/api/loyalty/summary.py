from flask_jwt_extended import jwt_required, get_jwt_identity

from washly.services.loyalty import LoyaltyService
from washly.utils.api_response import APIResponse
from washly.utils.decorators import handle_pricing_errors

from . import loyalty_bp


@loyalty_bp.route('/summary', methods=['GET'])
@jwt_required()
@handle_pricing_errors
def loyalty_summary():
    """Loyalty balance of the caller, derived from paid bookings"""
    summary = LoyaltyService.compute_loyalty_summary(get_jwt_identity())

    return APIResponse.success(data={'loyalty': summary}, message='Loyalty summary retrieved successfully')
