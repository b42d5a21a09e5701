from flask import Blueprint

loyalty_bp = Blueprint('loyalty', __name__, url_prefix='/loyalty')

from . import summary
