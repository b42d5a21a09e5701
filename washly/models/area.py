from datetime import datetime, timezone
import uuid
from washly.extensions import db
from washly.utils.geo import (
    haversine_km, parse_geojson_polygon, point_in_polygon,
    polygon_area_km2, circle_area_km2
)

class Area(db.Model):
    """
    Geo-fenced service zone.

    A zone is either a circle (center + radius) or a GeoJSON polygon. When both
    are stored the polygon is authoritative. Zones may override a service's
    price through ServiceAreaPrice rows or scale it with price_multiplier.
    """
    __tablename__ = 'areas'

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    code = db.Column(db.String(50), unique=True, nullable=False, index=True)
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text)

    # Circle geometry
    center_latitude = db.Column(db.Float)
    center_longitude = db.Column(db.Float)
    radius_km = db.Column(db.Float)

    # Polygon geometry (GeoJSON, positions as [lng, lat])
    polygon_json = db.Column(db.Text)

    price_multiplier = db.Column(db.Float, default=1.0, nullable=False)
    priority = db.Column(db.Integer, default=0, nullable=False)
    active = db.Column(db.Boolean, default=True, nullable=False)

    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc), nullable=False)
    updated_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    service_prices = db.relationship('ServiceAreaPrice', backref='area', lazy='dynamic', cascade='all, delete-orphan')

    @property
    def ring(self):
        return parse_geojson_polygon(self.polygon_json)

    @property
    def shape(self):
        if self.ring:
            return 'polygon'
        if self.is_circle():
            return 'circle'
        return None

    def is_circle(self):
        return (
            self.center_latitude is not None
            and self.center_longitude is not None
            and self.radius_km is not None
            and self.radius_km > 0
        )

    def contains(self, latitude: float, longitude: float) -> bool:
        ring = self.ring
        if ring:
            return point_in_polygon(latitude, longitude, ring)
        if self.is_circle():
            distance = haversine_km(self.center_latitude, self.center_longitude, latitude, longitude)
            return distance <= self.radius_km
        return False

    def area_km2(self) -> float:
        ring = self.ring
        if ring:
            return polygon_area_km2(ring)
        if self.is_circle():
            return circle_area_km2(self.radius_km)
        return float('inf')

    def to_dict(self):
        return {
            'id': self.id,
            'code': self.code,
            'name': self.name,
            'description': self.description,
            'shape': self.shape,
            'center_latitude': self.center_latitude,
            'center_longitude': self.center_longitude,
            'radius_km': self.radius_km,
            'price_multiplier': self.price_multiplier,
            'priority': self.priority,
            'active': self.active
        }


class ServiceAreaPrice(db.Model):
    __tablename__ = 'service_area_prices'
    __table_args__ = (
        db.UniqueConstraint('service_id', 'area_id', name='uq_service_area_price'),
    )

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    service_id = db.Column(db.String(36), db.ForeignKey('services.id'), nullable=False, index=True)
    area_id = db.Column(db.String(36), db.ForeignKey('areas.id'), nullable=False, index=True)

    price_cents = db.Column(db.Integer, nullable=False)
    discount_percentage = db.Column(db.Float)
    active = db.Column(db.Boolean, default=True, nullable=False)

    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc), nullable=False)
