from datetime import datetime, timezone
import uuid
from washly.extensions import db

class Service(db.Model):
    """A bookable offering (wash package, home service). Read-only to pricing."""
    __tablename__ = 'services'

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text)
    service_type = db.Column(db.String(50))  # car_wash, home_cleaning, ...
    attributes = db.Column(db.JSON)  # per-service-type attribute values

    # Pricing (minor currency units)
    price_cents = db.Column(db.Integer, nullable=False)
    discount_percentage = db.Column(db.Float)
    duration_min = db.Column(db.Integer, default=60)

    active = db.Column(db.Boolean, default=True, nullable=False)

    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc), nullable=False)
    updated_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    area_prices = db.relationship('ServiceAreaPrice', backref='service', lazy='dynamic', cascade='all, delete-orphan')

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'service_type': self.service_type,
            'attributes': self.attributes or {},
            'price_cents': self.price_cents,
            'discount_percentage': self.discount_percentage,
            'duration_min': self.duration_min,
            'active': self.active
        }
