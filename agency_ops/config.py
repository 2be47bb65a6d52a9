import os
from dotenv import load_dotenv

load_dotenv()


class Config:
    """Base configuration class."""
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'dev-secret-key-change-in-production'

    # Response cache (Redis)
    REDIS_URL = os.environ.get('REDIS_URL', 'redis://localhost:6379/0')
    CACHE_ENABLED = os.environ.get('CACHE_ENABLED', 'true').lower() == 'true'
    CACHE_DEFAULT_TTL = int(os.environ.get('CACHE_DEFAULT_TTL', '300'))

    # Calendar used for "today" when building default client timelines
    BUSINESS_TIMEZONE = os.environ.get('BUSINESS_TIMEZONE', 'UTC')

    # Dashboard configuration
    DASHBOARD_COMPARISON_DAYS = int(os.environ.get('DASHBOARD_COMPARISON_DAYS', '30'))
    DASHBOARD_RECENT_LIMIT = int(os.environ.get('DASHBOARD_RECENT_LIMIT', '5'))

    # CORS configuration
    CORS_ORIGINS = os.environ.get('CORS_ORIGINS', '*').split(',')

    # Logging configuration
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    LOG_DIR = os.environ.get('LOG_DIR', 'logs')


class DevelopmentConfig(Config):
    """Development configuration."""
    DEBUG = True
    TESTING = False
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///agency_ops.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False


class ProductionConfig(Config):
    """Production configuration."""
    DEBUG = False
    TESTING = False

    # Production database (PostgreSQL)
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL')
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {'pool_pre_ping': True}

    SECRET_KEY = os.environ.get('SECRET_KEY')

    # Production CORS (more restrictive)
    CORS_ORIGINS = os.environ.get('CORS_ORIGINS', '').split(',')

    @classmethod
    def validate_config(cls):
        """Validate production configuration."""
        if not cls.SQLALCHEMY_DATABASE_URI:
            raise ValueError("DATABASE_URL environment variable is required for production")

        if not cls.SECRET_KEY:
            raise ValueError("SECRET_KEY environment variable is required for production")

        if not cls.CORS_ORIGINS or cls.CORS_ORIGINS == ['']:
            raise ValueError("CORS_ORIGINS environment variable is required for production")


class TestingConfig(Config):
    """Testing configuration."""
    TESTING = True
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    CACHE_ENABLED = False
    BUSINESS_TIMEZONE = 'UTC'


# Configuration mapping
config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}
