# Routes package
from flask import Blueprint

api_bp = Blueprint('api', __name__, url_prefix='/api')

from washly.api.bookings import bookings_bp
from washly.api.zones import zones_bp
from washly.api.pricing import pricing_bp
from washly.api.loyalty import loyalty_bp
from washly.api.admin import admin_bp

api_bp.register_blueprint(bookings_bp)
api_bp.register_blueprint(zones_bp)
api_bp.register_blueprint(pricing_bp)
api_bp.register_blueprint(loyalty_bp)
api_bp.register_blueprint(admin_bp)
