import enum


class UserRole(enum.Enum):
    CUSTOMER = 'customer'
    DRIVER = 'driver'
    PARTNER = 'partner'
    ADMIN = 'admin'


class BookingStatus(enum.Enum):
    PENDING = 'pending'
    PAID = 'paid'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'


class DiscountType(enum.Enum):
    PERCENTAGE = 'percentage'
    AMOUNT = 'amount'
