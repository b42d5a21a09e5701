from flask import Flask
from flask_cors import CORS

from washly.extensions import db, migrate, jwt
from config import Config



def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)
    app.logger.setLevel(app.config.get('LOG_LEVEL', 'INFO'))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)
    CORS(app) # Enable CORS for all routes

    # Models must be imported before create_all / migrations see them
    from washly import models  # noqa: F401

    # Register Blueprint
    from washly.api import api_bp
    app.register_blueprint(api_bp)

    from washly.cli import register_commands
    register_commands(app)

    return app
