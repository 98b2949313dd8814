"""
Flask Application Factory for the Signage CMS.

This module provides the create_app() factory function that creates and
configures the Flask application. It initializes:
- SQLAlchemy database connection (SQLite by default)
- Security extensions (Flask-Talisman, Flask-Limiter)
- Flask-Login user loading
- Blueprint registration
- Error handlers
- Logging configuration
- Default admin seeding (from environment)

Usage:
    # Development
    python -m signage_cms.app

    # Production
    gunicorn -w 4 -b 0.0.0.0:8000 'signage_cms.app:create_app()'
"""

import logging
import os
from typing import Optional

from flask import Flask, jsonify
from flask_limiter import Limiter
from flask_login import LoginManager
from flask_migrate import Migrate
from flask_talisman import Talisman

from signage_cms.config import get_config
from signage_cms.models import db, utcnow, isoformat
from signage_cms.utils.auth import get_client_ip

# Global migrate instance
migrate = Migrate()


def create_app(config_name: Optional[str] = None) -> Flask:
    """
    Create and configure the Flask application.

    Args:
        config_name: Configuration environment name ('development', 'testing', 'production').
                    If None, reads from FLASK_ENV environment variable.

    Returns:
        Configured Flask application instance.
    """
    app = Flask(__name__)

    # Load configuration
    config_class = get_config(config_name)
    app.config.from_object(config_class)
    config_class.init_app(app)

    # Store config class for reference
    app.config['CONFIG_CLASS'] = config_class

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Initialize security extensions
    _init_security(app, config_class)

    # Initialize Flask-Login
    login_manager = LoginManager()
    login_manager.init_app(app)

    @login_manager.user_loader
    def load_user(user_id):
        from signage_cms.models import User
        return db.session.get(User, int(user_id))

    # Configure logging
    _configure_logging(app)

    # Create database tables and seed the default admin
    with app.app_context():
        db.create_all()
        _seed_default_admin(app)

    # Register blueprints
    _register_blueprints(app)

    # Register error handlers
    _register_error_handlers(app)

    # Register health check endpoint
    @app.route('/health')
    @app.route('/api/health')
    @app.route('/api/v1/health')
    def health_check():
        """Health check endpoint for monitoring."""
        return jsonify({
            'status': 'healthy',
            'service': 'signage-cms',
            'timestamp': isoformat(utcnow()),
        })

    return app


def _init_security(app: Flask, config_class) -> None:
    """
    Initialize security extensions for the application.

    - Flask-Talisman for security headers (production only)
    - Flask-Limiter for rate limiting, keyed by client IP

    Args:
        app: Flask application instance.
        config_class: Configuration class being used.
    """
    is_production = config_class.__name__ == 'ProductionConfig'

    if is_production:
        Talisman(
            app,
            force_https=True,
            strict_transport_security=True,
            strict_transport_security_max_age=31536000,  # 1 year
            content_security_policy={
                'default-src': "'self'",
                'img-src': ["'self'", "data:", "https:"],
                'media-src': ["'self'", "https:"],
            },
            frame_options='DENY',
            content_type_options=True,
        )
        app.logger.info('Security headers enabled (Flask-Talisman)')

    limiter = Limiter(
        key_func=get_client_ip,
        app=app,
        default_limits=[app.config['RATELIMIT_DEFAULT']],
        storage_uri=app.config['RATELIMIT_STORAGE_URI'],
    )
    # Store limiter on app for route-specific limits
    app.limiter = limiter
    if app.config.get('RATELIMIT_ENABLED', True):
        app.logger.info('Rate limiting enabled (Flask-Limiter)')


def _seed_default_admin(app: Flask) -> None:
    """
    Create the first admin from DEFAULT_ADMIN_EMAIL / DEFAULT_ADMIN_PASSWORD.

    Skipped when either variable is unset or when any admin exists.

    Args:
        app: Flask application instance.
    """
    from signage_cms.models import User

    email = app.config.get('DEFAULT_ADMIN_EMAIL')
    password = app.config.get('DEFAULT_ADMIN_PASSWORD')
    if not email or not password:
        return

    if User.query.first() is not None:
        app.logger.debug('Admin users already exist, skipping default admin')
        return

    user = User(email=email.strip().lower(), name='Administrator')
    user.set_password(password)
    db.session.add(user)

    try:
        db.session.commit()
        app.logger.info(f"Created default admin user: {user.email}")
    except Exception as e:
        db.session.rollback()
        app.logger.error(f"Failed to seed default admin: {e}")


def _configure_logging(app: Flask) -> None:
    """
    Configure application logging.

    Adds a file handler under BASE_DIR/logs except when testing.

    Args:
        app: Flask application instance.
    """
    if not app.config.get('TESTING'):
        log_dir = os.path.join(str(app.config.get('BASE_DIR', os.getcwd())), 'logs')

        # Set up file handler if log path is writable
        try:
            os.makedirs(log_dir, exist_ok=True)
            file_handler = logging.FileHandler(os.path.join(log_dir, 'signage_cms.log'))
            file_handler.setLevel(logging.INFO)
            file_handler.setFormatter(logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            ))
            app.logger.addHandler(file_handler)
            logging.getLogger('signage_cms').addHandler(file_handler)
        except OSError as e:
            app.logger.warning(f"File logging disabled: {e}")

    # Set application log level
    app.logger.setLevel(logging.INFO)
    logging.getLogger('signage_cms').setLevel(logging.INFO)


def _register_blueprints(app: Flask) -> None:
    """
    Register API blueprints with the application.

    Admin blueprints are registered under /api/v1/<resource>; the TV app
    blueprint under /api/v1/tv-app.

    Args:
        app: Flask application instance.
    """
    from signage_cms.routes import (
        auth_bp,
        media_bp,
        playlists_bp,
        players_bp,
        tv_app_bp,
        trash_bp,
        analytics_bp,
    )

    blueprints = [
        (auth_bp, '/api/v1/auth'),
        (media_bp, '/api/v1/media'),
        (playlists_bp, '/api/v1/playlists'),
        (players_bp, '/api/v1/players'),
        (tv_app_bp, '/api/v1/tv-app'),
        (trash_bp, '/api/v1/trash'),
        (analytics_bp, '/api/v1/analytics'),
    ]

    for blueprint, url_prefix in blueprints:
        app.register_blueprint(blueprint, url_prefix=url_prefix)
        app.logger.info(f'Registered {blueprint.name} blueprint at {url_prefix}')


def _register_error_handlers(app: Flask) -> None:
    """
    Register error handlers for common HTTP errors.

    Args:
        app: Flask application instance.
    """
    @app.errorhandler(400)
    def bad_request(error):
        return jsonify({
            'status': 'error',
            'error': 'Bad Request',
            'message': str(error.description) if hasattr(error, 'description') else 'Invalid request'
        }), 400

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({
            'status': 'error',
            'error': 'Not Found',
            'message': 'The requested resource was not found'
        }), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({
            'status': 'error',
            'error': 'Method Not Allowed',
            'message': 'The method is not allowed for the requested URL'
        }), 405

    @app.errorhandler(413)
    def request_entity_too_large(error):
        return jsonify({
            'status': 'error',
            'error': 'File Too Large',
            'message': f"File size exceeds the {app.config['MAX_FILE_MB']} MB limit"
        }), 413

    @app.errorhandler(429)
    def rate_limit_exceeded(error):
        return jsonify({
            'status': 'error',
            'error': 'Too Many Requests',
            'message': str(error.description) if hasattr(error, 'description') else 'Rate limit exceeded'
        }), 429

    @app.errorhandler(500)
    def internal_server_error(error):
        return jsonify({
            'status': 'error',
            'error': 'Internal Server Error',
            'message': 'An unexpected error occurred'
        }), 500


if __name__ == '__main__':
    # Development server
    application = create_app()
    config = application.config['CONFIG_CLASS']
    application.run(
        host=config.HOST,
        port=config.PORT,
        debug=config.DEBUG
    )
