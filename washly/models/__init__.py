from washly.models.user import User
from washly.models.service import Service
from washly.models.area import Area, ServiceAreaPrice
from washly.models.coupon import Coupon, CouponRedemption
from washly.models.booking import Booking
from washly.models.settings import Settings
from washly.models.notification import Notification
from washly.models.audit_log import AuditLog
