import json
from datetime import datetime, timedelta, timezone

import pytest
from flask_jwt_extended import create_access_token

from washly import create_app
from washly.extensions import db as _db
from washly.models import User, Service, Area, ServiceAreaPrice, Coupon, Booking, Settings
from washly.models.enums import BookingStatus, DiscountType, UserRole
from washly.services.pricing_settings import (
    TAX_PERCENTAGE_SETTING_KEY,
    STRIPE_FEE_PERCENTAGE_SETTING_KEY,
    EXTRA_FEE_AMOUNT_SETTING_KEY,
    DEFAULT_PARTNER_COMMISSION_SETTING_KEY,
    LOYALTY_POINTS_PER_UNIT_SETTING_KEY,
    LOYALTY_POINTS_PER_CREDIT_UNIT_SETTING_KEY,
    FREE_WASH_EVERY_N_BOOKINGS_SETTING_KEY,
    ENABLE_COUPONS_FLAG_KEY,
    ENABLE_LOYALTY_FLAG_KEY,
)
from config import Config


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    JWT_SECRET_KEY = 'test-jwt-secret-key-with-enough-length'
    LOG_LEVEL = 'DEBUG'


SETTING_KEYS = {
    'tax': TAX_PERCENTAGE_SETTING_KEY,
    'stripe_fee': STRIPE_FEE_PERCENTAGE_SETTING_KEY,
    'extra_fee': EXTRA_FEE_AMOUNT_SETTING_KEY,
    'partner_commission': DEFAULT_PARTNER_COMMISSION_SETTING_KEY,
    'points_per_unit': LOYALTY_POINTS_PER_UNIT_SETTING_KEY,
    'points_per_credit_unit': LOYALTY_POINTS_PER_CREDIT_UNIT_SETTING_KEY,
    'free_wash_interval': FREE_WASH_EVERY_N_BOOKINGS_SETTING_KEY,
    'enable_coupons': ENABLE_COUPONS_FLAG_KEY,
    'enable_loyalty': ENABLE_LOYALTY_FLAG_KEY,
}


@pytest.fixture
def app():
    app = create_app(TestConfig)

    with app.app_context():
        _db.create_all()
        yield app
        _db.session.remove()
        _db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def runner(app):
    return app.test_cli_runner()


@pytest.fixture
def db(app):
    return _db


@pytest.fixture
def make_user(db):
    counter = {'n': 0}

    def _make(role=UserRole.CUSTOMER, redeemed_points=0):
        counter['n'] += 1
        user = User(
            email=f"user{counter['n']}@example.com",
            first_name='Test',
            last_name=f"User{counter['n']}",
            role=role,
            loyalty_redeemed_points=redeemed_points
        )
        db.session.add(user)
        db.session.commit()
        return user

    return _make


@pytest.fixture
def user(make_user):
    return make_user()


@pytest.fixture
def admin_user(make_user):
    return make_user(role=UserRole.ADMIN)


@pytest.fixture
def auth_headers(app, user):
    token = create_access_token(identity=user.id)
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture
def admin_headers(app, admin_user):
    token = create_access_token(identity=admin_user.id)
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture
def make_service(db):
    def _make(price_cents=10000, discount_percentage=None, active=True, name='Exterior Wash'):
        service = Service(
            name=name,
            service_type='car_wash',
            price_cents=price_cents,
            discount_percentage=discount_percentage,
            active=active
        )
        db.session.add(service)
        db.session.commit()
        return service

    return _make


@pytest.fixture
def service(make_service):
    """10000 cents with a 20% discount"""
    return make_service(price_cents=10000, discount_percentage=20)


@pytest.fixture
def make_area(db):
    counter = {'n': 0}

    def _make(latitude=25.2, longitude=55.27, radius_km=None, polygon=None,
              price_multiplier=1.0, priority=0, active=True, name=None):
        counter['n'] += 1
        area = Area(
            code=f"ZONE-{counter['n']}",
            name=name or f"Zone {counter['n']}",
            center_latitude=latitude if radius_km else None,
            center_longitude=longitude if radius_km else None,
            radius_km=radius_km,
            polygon_json=json.dumps(polygon) if polygon else None,
            price_multiplier=price_multiplier,
            priority=priority,
            active=active
        )
        db.session.add(area)
        db.session.commit()
        return area

    return _make


@pytest.fixture
def make_area_price(db):
    def _make(service, area, price_cents, discount_percentage=None, active=True):
        area_price = ServiceAreaPrice(
            service_id=service.id,
            area_id=area.id,
            price_cents=price_cents,
            discount_percentage=discount_percentage,
            active=active
        )
        db.session.add(area_price)
        db.session.commit()
        return area_price

    return _make


@pytest.fixture
def make_coupon(db):
    def _make(code='SAVE10', discount_type=DiscountType.AMOUNT, discount_value=1000, **kwargs):
        coupon = Coupon(
            code=code,
            discount_type=discount_type,
            discount_value=discount_value,
            **kwargs
        )
        db.session.add(coupon)
        db.session.commit()
        return coupon

    return _make


@pytest.fixture
def make_booking(db):
    """Bookings in a given state, bypassing the pricing services"""
    def _make(user, service, status=BookingStatus.PAID, cash_amount_cents=10000, **kwargs):
        booking = Booking(
            user_id=user.id,
            service_id=service.id,
            status=status,
            cash_amount_cents=cash_amount_cents,
            **kwargs
        )
        db.session.add(booking)
        db.session.commit()
        return booking

    return _make


@pytest.fixture
def set_settings(db):
    """set_settings(tax='5', extra_fee='2') writes raw setting rows"""
    def _set(**values):
        for name, value in values.items():
            Settings.set_value(SETTING_KEYS[name], value, commit=False)
        db.session.commit()

    return _set


@pytest.fixture
def yesterday():
    return datetime.now(timezone.utc) - timedelta(days=1)


@pytest.fixture
def tomorrow():
    return datetime.now(timezone.utc) + timedelta(days=1)
