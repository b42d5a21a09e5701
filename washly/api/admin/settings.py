from flask import request, current_app
from flask_jwt_extended import jwt_required, get_jwt_identity

from washly.api.admin.schemas import AdminSchemas
from washly.extensions import db
from washly.models import Settings
from washly.services.pricing_settings import PricingSettings
from washly.utils.api_response import APIResponse
from washly.utils.audit_logging import AuditLogger
from washly.utils.decorators import handle_pricing_errors, role_required

from . import admin_bp


@admin_bp.route('/settings/pricing', methods=['GET'])
@jwt_required()
@role_required('admin')
@handle_pricing_errors
def get_pricing_settings():
    """Current pricing settings as the pricing engine reads them"""
    settings = PricingSettings.load()

    return APIResponse.success(
        data={'settings': settings.to_dict()},
        message='Pricing settings retrieved successfully'
    )


@admin_bp.route('/settings/pricing', methods=['PUT'])
@jwt_required()
@role_required('admin')
@handle_pricing_errors
def update_pricing_settings():
    """
    Update pricing settings

    Existing bookings keep their own fee snapshot; only bookings priced after
    this update see the new values.
    """
    data = request.get_json(silent=True) or {}

    is_valid, errors, cleaned_data = AdminSchemas.validate_pricing_settings(data)
    if not is_valid:
        return APIResponse.validation_error(errors)

    before = Settings.find_many(cleaned_data.keys())

    try:
        for key, (value, data_type) in cleaned_data.items():
            Settings.set_value(key, value, data_type=data_type, commit=False)

        AuditLogger.log_action(
            user_id=get_jwt_identity(),
            action='PRICING_SETTINGS_UPDATED',
            entity_type='settings',
            description='Updated pricing settings',
            changes={
                key: {'before': before.get(key), 'after': str(value)}
                for key, (value, _) in cleaned_data.items()
            },
            commit=False
        )

        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info(f"Pricing settings updated by {get_jwt_identity()}: {sorted(cleaned_data)}")

    return APIResponse.success(
        data={'settings': PricingSettings.load().to_dict()},
        message='Pricing settings updated successfully'
    )
