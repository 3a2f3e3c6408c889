"""
Application Configuration

Centralizes all Flask and application configuration settings.
Values come from the environment; a .env file next to this module is
loaded first so local development does not need exported variables.
"""

import os

from dotenv import load_dotenv

# Base directory of the application
BASE_DIR = os.path.dirname(os.path.abspath(__file__))

load_dotenv(os.path.join(BASE_DIR, '.env'))

# Settings that must be present before the app may start in production
REQUIRED_PRODUCTION_SETTINGS = ('FRONTEND_URL', 'JWT_SECRET', 'CSRF_SECRET', 'DB_PASSWORD')

# Local frontend dev servers allowed by CORS outside production
DEV_ORIGINS = ['http://localhost:3000', 'http://localhost:3001', 'http://localhost:5173']


def use_mysql(environ=None):
    """MySQL is used in production or when USE_MYSQL=true."""
    environ = os.environ if environ is None else environ
    return (environ.get('FLASK_ENV') == 'production'
            or environ.get('USE_MYSQL', '').lower() == 'true')


def build_database_uri(environ=None):
    """
    Build the SQLAlchemy URI for the selected storage engine.

    DATABASE_URL wins when set. Otherwise MySQL (PyMySQL driver) is built
    from the DB_* variables, or SQLite at DB_PATH (default data/recipes.db).
    """
    environ = os.environ if environ is None else environ

    if environ.get('DATABASE_URL'):
        return environ['DATABASE_URL']

    if use_mysql(environ):
        return 'mysql+pymysql://{user}:{password}@{host}:{port}/{name}?charset=utf8mb4'.format(
            user=environ.get('DB_USER', 'root'),
            password=environ.get('DB_PASSWORD', ''),
            host=environ.get('DB_HOST', 'localhost'),
            port=environ.get('DB_PORT', '3306'),
            name=environ.get('DB_NAME', 'moms_recipes'),
        )

    db_path = environ.get('DB_PATH')
    if not db_path:
        data_dir = os.path.join(BASE_DIR, 'data')
        os.makedirs(data_dir, exist_ok=True)
        db_path = os.path.join(data_dir, 'recipes.db')
    return f'sqlite:///{db_path}'


def missing_production_settings(environ=None):
    """Return the names of required production settings that are unset."""
    environ = os.environ if environ is None else environ
    return [name for name in REQUIRED_PRODUCTION_SETTINGS if not environ.get(name)]


class Config:
    """Base configuration class."""

    # Flask settings
    SECRET_KEY = os.environ.get('JWT_SECRET') or os.environ.get('SECRET_KEY', 'dev-only-insecure-secret-do-not-use-in-production')
    CSRF_SECRET = os.environ.get('CSRF_SECRET', 'dev-only-csrf-secret-do-not-use-in-production')
    TOKEN_MAX_AGE = 7 * 24 * 60 * 60  # 7 days
    SECURE_COOKIES = False

    # SQLAlchemy settings
    SQLALCHEMY_DATABASE_URI = build_database_uri()
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # CORS
    CORS_ORIGINS = DEV_ORIGINS

    # Upload settings
    UPLOAD_FOLDER = os.environ.get('UPLOAD_FOLDER', os.path.join(BASE_DIR, 'uploads'))
    MAX_CONTENT_LENGTH = 16 * 1024 * 1024  # 16MB max upload

    # AI provider keys (calorie estimation, unstructured recipe parsing).
    # A key stored through the admin AI settings takes precedence.
    ANTHROPIC_API_KEY = os.environ.get('ANTHROPIC_API_KEY', '')
    OPENAI_API_KEY = os.environ.get('OPENAI_API_KEY', '')
    GOOGLE_API_KEY = os.environ.get('GOOGLE_API_KEY', '')

    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')


class DevelopmentConfig(Config):
    """Development configuration."""
    DEBUG = True


class ProductionConfig(Config):
    """Production configuration."""
    DEBUG = False
    SECURE_COOKIES = True
    CORS_ORIGINS = [os.environ.get('FRONTEND_URL', '')]


class TestingConfig(Config):
    """Testing configuration."""
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    SECRET_KEY = 'test-secret-key'
    CSRF_SECRET = 'test-csrf-secret'
    ANTHROPIC_API_KEY = ''
    OPENAI_API_KEY = ''
    GOOGLE_API_KEY = ''


# Configuration dictionary for easy access
config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}


def get_config(env=None):
    """Get configuration based on environment."""
    if env is None:
        env = os.environ.get('FLASK_ENV', 'development')
    return config.get(env, config['default'])
