from dataclasses import dataclass
from datetime import datetime, timezone
import uuid
from sqlalchemy.orm import validates
from washly.extensions import db
from washly.models.enums import DiscountType
from washly.services.pricing import percentage_of


@dataclass(frozen=True)
class PercentageDiscount:
    percentage: float

    def amount_off(self, price_cents: int) -> int:
        return min(percentage_of(price_cents, self.percentage), price_cents)


@dataclass(frozen=True)
class AmountDiscount:
    amount_cents: int

    def amount_off(self, price_cents: int) -> int:
        return min(max(self.amount_cents, 0), price_cents)


class Coupon(db.Model):
    __tablename__ = 'coupons'

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    code = db.Column(db.String(64), unique=True, nullable=False, index=True)
    description = db.Column(db.String(500))

    discount_type = db.Column(db.Enum(DiscountType), nullable=False)
    discount_value = db.Column(db.Integer, nullable=False)  # percent or minor units

    # Validity window (either bound optional)
    valid_from = db.Column(db.DateTime)
    valid_until = db.Column(db.DateTime)
    active = db.Column(db.Boolean, default=True, nullable=False)

    # Caps (None = unlimited)
    max_redemptions = db.Column(db.Integer)
    max_redemptions_per_user = db.Column(db.Integer)
    min_booking_amount_cents = db.Column(db.Integer, default=0, nullable=False)

    # Eligibility
    applies_to_all_services = db.Column(db.Boolean, default=True, nullable=False)
    applicable_service_ids = db.Column(db.JSON, default=list)

    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc), nullable=False)
    updated_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    redemptions = db.relationship('CouponRedemption', backref='coupon', lazy='dynamic', cascade='all, delete-orphan')

    @staticmethod
    def normalize_code(code) -> str:
        return (code or '').strip().upper()

    @validates('code')
    def validate_code(self, key, value):
        return Coupon.normalize_code(value)

    @property
    def discount(self):
        """Discount as a tagged variant"""
        if self.discount_type == DiscountType.PERCENTAGE:
            return PercentageDiscount(percentage=self.discount_value)
        if self.discount_type == DiscountType.AMOUNT:
            return AmountDiscount(amount_cents=self.discount_value)
        raise ValueError(f"Unknown discount type: {self.discount_type}")

    def is_service_eligible(self, service_id: str) -> bool:
        if self.applies_to_all_services:
            return True
        return service_id in (self.applicable_service_ids or [])

    def to_dict(self):
        return {
            'id': self.id,
            'code': self.code,
            'description': self.description,
            'discount_type': self.discount_type.value,
            'discount_value': self.discount_value,
            'valid_from': self.valid_from.isoformat() if self.valid_from else None,
            'valid_until': self.valid_until.isoformat() if self.valid_until else None,
            'active': self.active,
            'max_redemptions': self.max_redemptions,
            'max_redemptions_per_user': self.max_redemptions_per_user,
            'min_booking_amount_cents': self.min_booking_amount_cents,
            'applies_to_all_services': self.applies_to_all_services,
            'applicable_service_ids': self.applicable_service_ids or []
        }


class CouponRedemption(db.Model):
    """One row per coupon applied to a booking; counted against the caps."""
    __tablename__ = 'coupon_redemptions'

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    coupon_id = db.Column(db.String(36), db.ForeignKey('coupons.id'), nullable=False, index=True)
    booking_id = db.Column(db.String(36), db.ForeignKey('bookings.id'), nullable=False, unique=True, index=True)
    user_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=False, index=True)
    amount_cents = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc), nullable=False)
