"""
Domain errors raised by the pricing core.

Each error carries a machine-checkable kind, a human readable message and the
HTTP status the API boundary should answer with.
"""
from enum import Enum


class PricingErrorKind(Enum):
    SERVICE_NOT_FOUND = 'SERVICE_NOT_FOUND'
    INVALID_OVERRIDE = 'INVALID_OVERRIDE'
    SETTINGS_UNAVAILABLE = 'SETTINGS_UNAVAILABLE'
    USER_NOT_FOUND = 'USER_NOT_FOUND'
    BOOKING_NOT_FOUND = 'BOOKING_NOT_FOUND'
    NOT_PAYABLE = 'NOT_PAYABLE'
    INVALID_COORDINATES = 'INVALID_COORDINATES'
    INVALID_LOYALTY_POINTS = 'INVALID_LOYALTY_POINTS'
    INVALID_STATE = 'INVALID_STATE'
    LOYALTY_ALREADY_APPLIED = 'LOYALTY_ALREADY_APPLIED'
    SNAPSHOT_LOCKED = 'SNAPSHOT_LOCKED'


class CouponErrorKind(Enum):
    NOT_FOUND = 'NOT_FOUND'
    INACTIVE = 'INACTIVE'
    EXPIRED = 'EXPIRED'
    NOT_YET_VALID = 'NOT_YET_VALID'
    BELOW_MINIMUM = 'BELOW_MINIMUM'
    SERVICE_NOT_ELIGIBLE = 'SERVICE_NOT_ELIGIBLE'
    REDEMPTION_LIMIT_REACHED = 'REDEMPTION_LIMIT_REACHED'
    USER_LIMIT_REACHED = 'USER_LIMIT_REACHED'
    INVALID_STATE = 'INVALID_STATE'
    INVALID_CODE = 'INVALID_CODE'
    NO_DISCOUNT = 'NO_DISCOUNT'
    FEATURE_DISABLED = 'FEATURE_DISABLED'
    BOOKING_NOT_FOUND = 'BOOKING_NOT_FOUND'


# Suggested HTTP status per kind; anything missing answers 400
ERROR_STATUS = {
    PricingErrorKind.SETTINGS_UNAVAILABLE: 500,
    PricingErrorKind.USER_NOT_FOUND: 404,
    PricingErrorKind.BOOKING_NOT_FOUND: 404,
    PricingErrorKind.SNAPSHOT_LOCKED: 409,
    CouponErrorKind.NOT_FOUND: 404,
    CouponErrorKind.USER_LIMIT_REACHED: 403,
    CouponErrorKind.FEATURE_DISABLED: 403,
    CouponErrorKind.BOOKING_NOT_FOUND: 404,
}


class DomainError(Exception):
    """Base exception for pricing core errors"""

    def __init__(self, kind, message, status=None):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.status = status or ERROR_STATUS.get(kind, 400)

    def to_dict(self):
        return {
            'success': False,
            'error': self.kind.value,
            'message': self.message,
            'status': self.status
        }


class PricingError(DomainError):
    """Raised when a price cannot be computed or committed"""
    pass


class CouponError(DomainError):
    """Raised when a coupon cannot be applied or removed"""
    pass
