from datetime import datetime, timezone
import random
import string
import uuid
from sqlalchemy.orm import validates
from washly.extensions import db
from washly.models.enums import BookingStatus
from washly.services.errors import PricingError, PricingErrorKind
from washly.services.pricing import FeeAdjustments, PricingCalculator

# Frozen the first time they are written
FEE_SNAPSHOT_FIELDS = (
    'tax_percentage',
    'stripe_fee_percentage',
    'extra_fee_cents',
    'partner_commission_percentage',
)

# Editable while PENDING, frozen once the booking leaves PENDING
PRICE_FIELDS = (
    'base_price_cents',
    'service_price_cents',
    'service_discount_percentage',
    'coupon_code',
    'coupon_id',
    'coupon_discount_cents',
    'loyalty_points_applied',
    'loyalty_credit_applied_cents',
    'cash_amount_cents',
)


class Booking(db.Model):
    __tablename__ = 'bookings'

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    booking_reference = db.Column(db.String(20), unique=True, nullable=False, index=True)

    user_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=False, index=True)
    service_id = db.Column(db.String(36), db.ForeignKey('services.id'), nullable=False, index=True)
    area_id = db.Column(db.String(36), db.ForeignKey('areas.id'))

    status = db.Column(db.Enum(BookingStatus), default=BookingStatus.PENDING, nullable=False)

    # Where and when
    start_at = db.Column(db.DateTime)
    location_label = db.Column(db.String(120))
    latitude = db.Column(db.Float)
    longitude = db.Column(db.Float)
    vehicle_count = db.Column(db.Integer, default=1, nullable=False)

    # Price inputs captured at commit
    base_price_cents = db.Column(db.Integer)
    service_price_cents = db.Column(db.Integer)
    service_discount_percentage = db.Column(db.Float)

    # Fee snapshot
    tax_percentage = db.Column(db.Float)
    stripe_fee_percentage = db.Column(db.Float)
    extra_fee_cents = db.Column(db.Integer)
    partner_commission_percentage = db.Column(db.Float)

    # Coupon
    coupon_id = db.Column(db.String(36), db.ForeignKey('coupons.id'))
    coupon_code = db.Column(db.String(64))
    coupon_discount_cents = db.Column(db.Integer)

    # Loyalty
    loyalty_points_applied = db.Column(db.Integer, default=0, nullable=False)
    loyalty_credit_applied_cents = db.Column(db.Integer)

    # Final payable amount
    cash_amount_cents = db.Column(db.Integer)
    cash_collected = db.Column(db.Boolean, default=False)

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc), nullable=False)
    updated_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))
    paid_at = db.Column(db.DateTime)
    cancelled_at = db.Column(db.DateTime)

    service = db.relationship('Service')
    area = db.relationship('Area')
    coupon = db.relationship('Coupon')
    coupon_redemption = db.relationship('CouponRedemption', backref='booking', uselist=False, cascade='all, delete-orphan')

    def __init__(self, **kwargs):
        super(Booking, self).__init__(**kwargs)
        if not self.booking_reference:
            self.booking_reference = self.generate_booking_reference()

    @staticmethod
    def generate_booking_reference():
        """Generate unique booking reference like WSH-ABC123"""
        letters = ''.join(random.choices(string.ascii_uppercase, k=3))
        numbers = ''.join(random.choices(string.digits, k=3))
        return f"WSH-{letters}{numbers}"

    @validates(*FEE_SNAPSHOT_FIELDS)
    def validate_fee_snapshot(self, key, value):
        current = getattr(self, key)
        if current is not None and value != current:
            raise PricingError(
                PricingErrorKind.SNAPSHOT_LOCKED,
                f"Booking {key} is frozen at {current}"
            )
        return value

    @validates(*PRICE_FIELDS)
    def validate_price_field(self, key, value):
        current = getattr(self, key)
        if self.status not in (None, BookingStatus.PENDING) and current is not None and value != current:
            raise PricingError(
                PricingErrorKind.SNAPSHOT_LOCKED,
                f"Booking {key} cannot change once the booking is {self.status.value}"
            )
        return value

    def is_pending(self):
        return self.status in (None, BookingStatus.PENDING)

    def has_fee_snapshot(self):
        return any(getattr(self, field) is not None for field in FEE_SNAPSHOT_FIELDS)

    def fee_adjustments(self) -> FeeAdjustments:
        """Fee settings frozen on this booking"""
        return FeeAdjustments(
            tax_percentage=self.tax_percentage,
            stripe_fee_percentage=self.stripe_fee_percentage,
            extra_fee_amount_cents=self.extra_fee_cents
        )

    def discounted_price_cents(self) -> int:
        return PricingCalculator.calculate_discounted_price(
            self.base_price_cents, self.service_discount_percentage
        )

    def remaining_amount_cents(self) -> int:
        """Net after discount, coupon and loyalty credit, before fees"""
        return PricingCalculator.net_after_coupon_and_credits(
            self.base_price_cents,
            self.service_discount_percentage,
            self.coupon_discount_cents,
            self.loyalty_credit_applied_cents
        )

    def refresh_cash_amount(self):
        """Recompute the payable amount against this booking's own fee snapshot"""
        if self.cash_amount_cents is None:
            return
        self.cash_amount_cents = PricingCalculator.apply_fees_to_price(
            self.remaining_amount_cents(), self.fee_adjustments()
        )

    def to_dict(self):
        return {
            'id': self.id,
            'booking_reference': self.booking_reference,
            'user_id': self.user_id,
            'service_id': self.service_id,
            'area_id': self.area_id,
            'status': self.status.value if self.status else None,
            'start_at': self.start_at.isoformat() if self.start_at else None,
            'location_label': self.location_label,
            'vehicle_count': self.vehicle_count,

            # Pricing snapshot
            'base_price_cents': self.base_price_cents,
            'service_price_cents': self.service_price_cents,
            'service_discount_percentage': self.service_discount_percentage,
            'tax_percentage': self.tax_percentage,
            'stripe_fee_percentage': self.stripe_fee_percentage,
            'extra_fee_cents': self.extra_fee_cents,
            'partner_commission_percentage': self.partner_commission_percentage,
            'coupon_code': self.coupon_code,
            'coupon_id': self.coupon_id,
            'coupon_discount_cents': self.coupon_discount_cents,
            'loyalty_points_applied': self.loyalty_points_applied,
            'loyalty_credit_applied_cents': self.loyalty_credit_applied_cents,
            'cash_amount_cents': self.cash_amount_cents,

            'created_at': self.created_at.isoformat() if self.created_at else None,
            'paid_at': self.paid_at.isoformat() if self.paid_at else None,
            'cancelled_at': self.cancelled_at.isoformat() if self.cancelled_at else None,
        }
