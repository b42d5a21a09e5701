import logging
from functools import wraps

from flask import jsonify
from flask_jwt_extended import get_jwt_identity, verify_jwt_in_request

from washly.extensions import db
from washly.services.errors import DomainError
from washly.utils.api_response import APIResponse

logger = logging.getLogger(__name__)


def role_required(*roles):
    """Decorator to require specific user roles"""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            from washly.models import User

            verify_jwt_in_request()
            user = db.session.get(User, get_jwt_identity())

            if not user or not user.is_active:
                return APIResponse.unauthorized("Please login to continue")

            if user.role.value not in roles:
                return APIResponse.forbidden("You don't have permission to access this resource")

            return f(*args, **kwargs)
        return decorated_function
    return decorator


def handle_pricing_errors(f):
    """Decorator for consistent pricing error handling"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        try:
            return f(*args, **kwargs)
        except DomainError as e:
            logger.info(f"Pricing request rejected: {e.kind.value} {e.message}")
            return APIResponse.domain_error(e)
        except Exception:
            db.session.rollback()
            logger.exception("Unexpected error in pricing endpoint")
            return jsonify({
                'success': False,
                'error': 'INTERNAL_ERROR',
                'message': 'An unexpected error occurred. Please try again.'
            }), 500
    return decorated_function
