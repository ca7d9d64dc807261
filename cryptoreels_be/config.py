"""
Configuration module with fail-fast validation.

Values are validated once at import time; production environments must
provide every required environment variable.
"""
from cryptoreels_be.config_validator import validate_production_config


class Config:
    """Production-ready configuration with fail-fast validation."""

    _validated_config = validate_production_config()

    # Service API Token - protects catalog administration
    SERVICE_API_TOKEN = _validated_config['SERVICE_API_TOKEN']

    # Rate Limiter
    RATELIMIT_STORAGE_URI = _validated_config['RATELIMIT_STORAGE_URI']
    RATELIMIT_ENABLED = True
    RATELIMIT_DEFAULT = "120 per minute"
    ADMIN_RATE_LIMIT = "30 per minute"

    DEBUG = _validated_config['DEBUG']

    # CORS - platforms allowed to embed the game
    CORS_ORIGINS_LIST = _validated_config['CORS_ORIGINS']

    # Security Headers
    SECURITY_HEADERS = True

    # Game settings
    SYMBOL_CATALOG_PATH = _validated_config['SYMBOL_CATALOG_PATH']
    MAX_BET_AMOUNT = _validated_config['MAX_BET_AMOUNT']
    DEFAULT_BET_AMOUNT = _validated_config['DEFAULT_BET_AMOUNT']
    RANDOM_VALUE_BITS = 4096

    # Feature Flags
    TEST_MODE_ENABLED = _validated_config['TEST_MODE_ENABLED']


class TestingConfig(Config):
    TESTING = True
    DEBUG = False
    SERVICE_API_TOKEN = 'test-service-token-0123456789abcdef'
    RATELIMIT_ENABLED = False
    RATELIMIT_STORAGE_URI = 'memory://'
    CORS_ORIGINS_LIST = ['http://localhost:3000']
    SYMBOL_CATALOG_PATH = None
    MAX_BET_AMOUNT = 1000
    DEFAULT_BET_AMOUNT = 1
    TEST_MODE_ENABLED = True
