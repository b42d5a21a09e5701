from flask import Blueprint

zones_bp = Blueprint('zones', __name__, url_prefix='/zones')

from . import lookup
