from flask import request

from washly.services.area_resolver import AreaResolver
from washly.utils.api_response import APIResponse
from washly.utils.decorators import handle_pricing_errors

from . import pricing_bp

MAX_SERVICE_IDS = 50


def validate_by_location(data):
    errors = {}
    cleaned_data = {}

    for field in ('lat', 'lng'):
        value = data.get(field)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            errors[field] = f'{field} must be a number'
        else:
            cleaned_data[field] = float(value)

    service_ids = data.get('service_ids')
    if not isinstance(service_ids, list) or not service_ids:
        errors['service_ids'] = 'service_ids must be a non-empty list'
    elif len(service_ids) > MAX_SERVICE_IDS:
        errors['service_ids'] = f'At most {MAX_SERVICE_IDS} services can be priced at once'
    elif not all(isinstance(service_id, str) and service_id for service_id in service_ids):
        errors['service_ids'] = 'service_ids must contain service ID strings'
    else:
        # Keep request order, drop repeats
        cleaned_data['service_ids'] = list(dict.fromkeys(service_ids))

    return len(errors) == 0, errors if errors else None, cleaned_data if not errors else None


@pricing_bp.route('/by-location', methods=['POST'])
@handle_pricing_errors
def prices_by_location():
    """
    Unit prices for several services at one point

    Request Body:
    {
        "lat": 25.2,
        "lng": 55.27,
        "service_ids": ["uuid", "uuid"]
    }
    """
    data = request.get_json(silent=True) or {}

    is_valid, errors, cleaned_data = validate_by_location(data)
    if not is_valid:
        return APIResponse.validation_error(errors)

    result = AreaResolver.prices_by_location(
        cleaned_data['lat'],
        cleaned_data['lng'],
        cleaned_data['service_ids']
    )

    return APIResponse.success(data=result, message='Prices resolved successfully')
