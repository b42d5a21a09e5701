from flask import request

from washly.services.area_resolver import AreaResolver
from washly.services.errors import PricingError, PricingErrorKind
from washly.utils.api_response import APIResponse
from washly.utils.decorators import handle_pricing_errors

from . import zones_bp


def parse_coordinate(value):
    try:
        return float(value)
    except (TypeError, ValueError):
        raise PricingError(
            PricingErrorKind.INVALID_COORDINATES,
            'Query parameters lat and lng are required numbers'
        )


@zones_bp.route('/lookup', methods=['GET'])
@handle_pricing_errors
def lookup_zone():
    """
    Tell whether a point is inside a service zone

    Query: ?lat=25.2&lng=55.27
    """
    latitude = parse_coordinate(request.args.get('lat'))
    longitude = parse_coordinate(request.args.get('lng'))

    result = AreaResolver.resolve_zone(latitude, longitude)

    return APIResponse.success(data=result, message='Zone resolved successfully')
