from datetime import datetime, timezone
import uuid
from washly.extensions import db
from washly.models.enums import UserRole

class User(db.Model):
    __tablename__ = 'users'

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email = db.Column(db.String(120), unique=True, nullable=False, index=True)
    first_name = db.Column(db.String(50), nullable=False)
    last_name = db.Column(db.String(50), nullable=False)
    phone = db.Column(db.String(20))
    role = db.Column(db.Enum(UserRole), default=UserRole.CUSTOMER, nullable=False)

    # Loyalty (points earned are derived from paid bookings, never stored)
    loyalty_redeemed_points = db.Column(db.Integer, default=0, nullable=False)
    loyalty_credit_cents = db.Column(db.Integer, default=0, nullable=False)

    # Account status
    is_active = db.Column(db.Boolean, default=True)

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc), nullable=False)
    updated_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    # Relationships
    bookings = db.relationship('Booking', backref='customer', lazy='dynamic')
    notifications = db.relationship('Notification', backref='user', lazy='dynamic')

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'first_name': self.first_name,
            'last_name': self.last_name,
            'phone': self.phone,
            'role': self.role.value,
            'loyalty_redeemed_points': self.loyalty_redeemed_points,
            'loyalty_credit_cents': self.loyalty_credit_cents,
            'created_at': self.created_at.isoformat() if self.created_at else None
        }
