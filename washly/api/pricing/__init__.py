from flask import Blueprint

pricing_bp = Blueprint('pricing', __name__, url_prefix='/pricing')

from . import by_location
