"""
Clearance Portal Application Factory
"""

import os
from typing import Optional

from flask import Flask
from flask_cors import CORS

from clearance_portal.models import db, init_db
from clearance_portal.routes import admin_bp, main_bp, requirement_bp, review_bp, student_bp
from clearance_portal.schemas import ma
from clearance_portal.services.change_feed import ChangeFeed
from clearance_portal.services.storage_service import ObjectStore, create_object_store
from clearance_portal.utils import setup_logging, log_error, log_info


def create_app(config_name: Optional[str] = None, object_store: Optional[ObjectStore] = None) -> Flask:
    """
    Application factory

    Args:
        config_name: Configuration name (development, production, testing)
        object_store: Store to use instead of the configured one

    Returns:
        Flask application instance
    """
    app = Flask(__name__)

    # Load configuration
    if config_name is None:
        config_name = os.environ.get('FLASK_ENV', 'development')

    # Import and set configuration
    from config import config
    config_class = config.get(config_name, config['default'])
    app.config.from_object(config_class)
    config_class.init_app(app)

    # Initialize extensions
    db.init_app(app)
    ma.init_app(app)
    CORS(app)
    ChangeFeed(app)
    app.extensions['object_store'] = object_store or create_object_store(app.config)

    # Setup logging
    with app.app_context():
        setup_logging()
        log_info(f"Application initialized ({config_name})")

    # Register blueprints
    app.register_blueprint(main_bp)
    app.register_blueprint(student_bp, url_prefix='/api/student')
    app.register_blueprint(review_bp, url_prefix='/api/review')
    app.register_blueprint(requirement_bp, url_prefix='/api/requirements')
    app.register_blueprint(admin_bp, url_prefix='/api/admin')

    # Create database tables
    with app.app_context():
        try:
            init_db()
            log_info("Database tables created successfully")
        except Exception as e:
            log_error("Database initialization warning", e)

    return app
