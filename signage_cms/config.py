"""
Signage CMS Configuration Module

Configuration settings for database, media storage, presence tracking,
rate limiting and server. All sensitive values are loaded from
environment variables.
"""

import os
from pathlib import Path


def _env_int(name, default):
    value = os.environ.get(name)
    if value is None or value == '':
        return default
    return int(value)


def _env_set(name, default):
    value = os.environ.get(name)
    if not value:
        return set(default)
    return {item.strip() for item in value.split(',') if item.strip()}


class Config:
    """Base configuration class with default settings."""

    # Flask Settings
    SECRET_KEY = os.environ.get('SECRET_KEY', 'dev-secret-key-change-in-production')

    # Base Directory
    BASE_DIR = Path(__file__).parent.resolve()

    # Database Settings (SQLite unless DATABASE_URL is set)
    DATABASE_PATH = Path(os.environ.get('SIGNAGE_DATABASE_PATH', BASE_DIR / 'data' / 'signage.db'))
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        'DATABASE_URL',
        f'sqlite:///{DATABASE_PATH}'
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Media Storage
    # 'local' keeps objects under UPLOADS_PATH, 's3' uses AWS_S3_BUCKET_NAME
    STORAGE_BACKEND = os.environ.get('STORAGE_BACKEND', 'local')
    UPLOADS_PATH = Path(os.environ.get('SIGNAGE_UPLOAD_PATH', BASE_DIR / 'uploads'))
    AWS_REGION = os.environ.get('AWS_REGION', 'us-east-1')
    AWS_S3_BUCKET_NAME = os.environ.get('AWS_S3_BUCKET_NAME')
    SIGNED_URL_TTL_SECONDS = _env_int('SIGNED_URL_TTL_SECONDS', 7 * 24 * 60 * 60)

    # Upload Constraints
    MAX_FILE_MB = _env_int('MAX_FILE_MB', 100)
    MAX_CONTENT_LENGTH = MAX_FILE_MB * 1024 * 1024
    ALLOWED_MIME_TYPES = _env_set('ALLOWED_MIME_TYPES', (
        'image/jpeg',
        'image/png',
        'image/webp',
        'image/gif',
        'video/mp4',
        'video/webm',
        'video/quicktime',
        'application/pdf',
    ))

    # Player presence: a session is online while its heartbeat is this fresh
    ONLINE_THRESHOLD_SECONDS = _env_int('ONLINE_THRESHOLD_SECONDS', 5 * 60)

    # Admin sessions
    SESSION_HOURS = _env_int('SESSION_HOURS', 8)
    REFRESH_DAYS = _env_int('REFRESH_DAYS', 7)
    DEFAULT_ADMIN_EMAIL = os.environ.get('DEFAULT_ADMIN_EMAIL')
    DEFAULT_ADMIN_PASSWORD = os.environ.get('DEFAULT_ADMIN_PASSWORD')

    # Rate Limiting (Flask-Limiter)
    RATELIMIT_ENABLED = True
    RATELIMIT_DEFAULT = os.environ.get('RATELIMIT_DEFAULT', '1000 per hour')
    RATELIMIT_STORAGE_URI = os.environ.get('RATELIMIT_STORAGE_URI', 'memory://')

    # Server Settings
    PORT = _env_int('SIGNAGE_PORT', 8000)
    HOST = os.environ.get('SIGNAGE_HOST', '0.0.0.0')

    @classmethod
    def init_app(cls, app):
        """Initialize application with this configuration."""
        # Ensure storage directories exist
        if cls.SQLALCHEMY_DATABASE_URI.startswith('sqlite:///'):
            cls.DATABASE_PATH.parent.mkdir(parents=True, exist_ok=True)
        if cls.STORAGE_BACKEND == 'local':
            Path(cls.UPLOADS_PATH).mkdir(parents=True, exist_ok=True)


class DevelopmentConfig(Config):
    """Development configuration with debug enabled."""

    DEBUG = True
    TESTING = False


class TestingConfig(Config):
    """Testing configuration with an in-memory database."""

    DEBUG = True
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    STORAGE_BACKEND = 'local'
    RATELIMIT_ENABLED = False
    DEFAULT_ADMIN_EMAIL = None
    DEFAULT_ADMIN_PASSWORD = None

    @classmethod
    def init_app(cls, app):
        """No directories; the test fixtures supply UPLOADS_PATH."""


class ProductionConfig(Config):
    """Production configuration with strict security settings."""

    DEBUG = False
    TESTING = False

    @classmethod
    def init_app(cls, app):
        """Production-specific initialization."""
        Config.init_app(app)

        # Verify required environment variables are set
        required_vars = ['SECRET_KEY']
        if cls.STORAGE_BACKEND == 's3':
            required_vars.append('AWS_S3_BUCKET_NAME')
        missing = [var for var in required_vars if not os.environ.get(var)]
        if missing:
            raise ValueError(f"Missing required environment variables: {', '.join(missing)}")


# Configuration mapping by environment name
config = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': ProductionConfig,
    'default': DevelopmentConfig,
}


def get_config(env_name=None):
    """Get configuration class by environment name.

    Args:
        env_name: Environment name ('development', 'testing', 'production').
                  If None, reads from FLASK_ENV environment variable.

    Returns:
        Configuration class for the specified environment.
    """
    if env_name is None:
        env_name = os.environ.get('FLASK_ENV', 'development')
    return config.get(env_name, config['default'])
