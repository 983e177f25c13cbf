from typing import TYPE_CHECKING, Optional

from flask import Flask
from flask_cors import CORS

from .config import Config
from .logging_config import configure_logging

if TYPE_CHECKING:
    from .services.container import Services


def create_app(testing: bool = False, services: Optional["Services"] = None):
    configure_logging(Config.LOG_LEVEL)
    app = Flask(__name__)
    app.config["TESTING"] = testing

    # CORS configuration for development and production
    allowed_origins = [
        "http://localhost:5173",  # Local Vite dev server
        "http://localhost:5175",  # Alternate local port
    ]

    # Add production frontend URL if set
    if Config.FRONTEND_URL:
        allowed_origins.append(Config.FRONTEND_URL)

    # In development, allow all origins for easier testing
    if Config.FLASK_ENV == "development" and not testing:
        CORS(app)
    else:
        CORS(app, origins=allowed_origins)

    if services is None:
        from .services.container import create_services

        services = create_services()
    app.extensions["services"] = services

    from .routes import bp as api_bp
    app.register_blueprint(api_bp, url_prefix="/api")

    return app
