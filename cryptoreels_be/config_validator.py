"""
Configuration validation and startup checks.

Fail-fast validation: production deployments must provide a real service
token, shared rate-limit storage and explicit CORS origins before the
application is allowed to start.
"""

import os
import sys
import warnings
from typing import List, Optional

DEFAULT_SERVICE_TOKEN = 'default_service_token_please_change'
TRUTHY = ('true', '1', 't')


class ConfigValidationError(Exception):
    """Raised when critical configuration is missing or invalid."""
    pass


def _env_flag(name, default='False'):
    return os.getenv(name, default).lower() in TRUTHY


class ConfigValidator:
    """Validates application configuration and enforces production security."""

    def __init__(self, is_production: bool = None):
        """
        Args:
            is_production: If None, production is assumed only when APP_ENV or
                FLASK_ENV is 'production'.
        """
        if is_production is None:
            app_env = (os.getenv('APP_ENV') or os.getenv('FLASK_ENV') or '').lower()
            is_production = app_env == 'production'

        self.is_production = is_production
        self.errors: List[str] = []
        self.warnings: List[str] = []

    def validate_service_config(self) -> Optional[str]:
        """The service token guards the catalog administration endpoints."""
        service_token = os.getenv('SERVICE_API_TOKEN')

        if not service_token:
            if self.is_production:
                self.errors.append(
                    "CRITICAL: SERVICE_API_TOKEN must be set in production to protect catalog administration"
                )
                return None
            self.warnings.append(
                "SERVICE_API_TOKEN not set - using development default. "
                "Set a strong, unique token for production!"
            )
            return DEFAULT_SERVICE_TOKEN

        if service_token == DEFAULT_SERVICE_TOKEN:
            if self.is_production:
                self.errors.append(
                    "CRITICAL: Default SERVICE_API_TOKEN detected in production. "
                    "Set a strong, unique SERVICE_API_TOKEN environment variable."
                )
            else:
                self.warnings.append("Using default SERVICE_API_TOKEN in development")
        elif len(service_token) < 24:
            message = "SERVICE_API_TOKEN should be at least 24 characters long"
            if self.is_production:
                self.errors.append(f"CRITICAL: {message}")
            else:
                self.warnings.append(f"WARNING: {message}")
        return service_token

    def validate_rate_limiting_config(self) -> str:
        rate_limit_uri = os.getenv('RATELIMIT_STORAGE_URI', 'memory://')

        if rate_limit_uri == 'memory://':
            if self.is_production:
                self.errors.append(
                    "CRITICAL: Rate limiting uses memory:// storage in production. "
                    "Set RATELIMIT_STORAGE_URI to a Redis URL (e.g., redis://localhost:6379/0)"
                )
            else:
                self.warnings.append("Rate limiting uses memory:// storage in development.")
        return rate_limit_uri

    def validate_cors_config(self) -> List[str]:
        cors_origins = os.getenv('CORS_ORIGINS', '')

        if not cors_origins:
            if self.is_production:
                self.errors.append(
                    "CRITICAL: CORS_ORIGINS must be set in production to specify the embedding platform domains"
                )
            return []

        origins = [origin.strip() for origin in cors_origins.split(',') if origin.strip()]
        for origin in origins:
            if not origin.startswith(('http://', 'https://')):
                self.warnings.append(f"CORS origin '{origin}' should include protocol (http:// or https://)")
        return origins

    def validate_bet_limits(self):
        try:
            max_bet = float(os.getenv('MAX_BET_AMOUNT', '1000'))
            default_bet = float(os.getenv('DEFAULT_BET_AMOUNT', '1'))
        except ValueError:
            raise ConfigValidationError("MAX_BET_AMOUNT and DEFAULT_BET_AMOUNT must be numbers")

        if max_bet <= 0:
            self.errors.append("CRITICAL: MAX_BET_AMOUNT must be positive")
        if not 0 < default_bet <= max_bet:
            self.errors.append("CRITICAL: DEFAULT_BET_AMOUNT must be positive and not exceed MAX_BET_AMOUNT")
        return max_bet, default_bet

    def validate_catalog_path(self) -> Optional[str]:
        catalog_path = os.getenv('SYMBOL_CATALOG_PATH')
        if catalog_path and not os.path.exists(catalog_path):
            self.errors.append(f"CRITICAL: SYMBOL_CATALOG_PATH points to a missing file: {catalog_path}")
        return catalog_path or None

    def validate_all(self) -> dict:
        """
        Validate all configuration settings.

        Returns:
            Dictionary containing validated configuration values

        Raises:
            ConfigValidationError: If critical configuration is missing or invalid
        """
        config = {}

        config['SERVICE_API_TOKEN'] = self.validate_service_config()
        config['RATELIMIT_STORAGE_URI'] = self.validate_rate_limiting_config()
        config['CORS_ORIGINS'] = self.validate_cors_config()
        config['MAX_BET_AMOUNT'], config['DEFAULT_BET_AMOUNT'] = self.validate_bet_limits()
        config['SYMBOL_CATALOG_PATH'] = self.validate_catalog_path()
        config['DEBUG'] = _env_flag('FLASK_DEBUG')
        config['TEST_MODE_ENABLED'] = _env_flag('TEST_MODE_ENABLED', 'False' if self.is_production else 'True')

        if self.is_production:
            if config['DEBUG']:
                self.errors.append("CRITICAL: DEBUG mode must be disabled in production (set FLASK_DEBUG=False)")
            if config['TEST_MODE_ENABLED']:
                self.warnings.append("TEST_MODE_ENABLED is on in production; server-seeded spins are reachable")

        if self.errors:
            error_msg = "Configuration validation failed:\n" + "\n".join(f"  - {error}" for error in self.errors)
            if self.warnings:
                error_msg += "\n\nWarnings:\n" + "\n".join(f"  - {warning}" for warning in self.warnings)
            raise ConfigValidationError(error_msg)

        for warning in self.warnings:
            warnings.warn(warning, UserWarning)

        return config


def validate_production_config() -> dict:
    """
    Validate configuration with fail-fast behavior.

    Raises:
        SystemExit: If validation fails during startup
    """
    try:
        return ConfigValidator().validate_all()
    except ConfigValidationError as e:
        print("\nCONFIGURATION VALIDATION FAILED\n", file=sys.stderr)
        print(str(e), file=sys.stderr)
        print("\nHow to fix:", file=sys.stderr)
        print("1. Set required environment variables (see SERVICE_API_TOKEN, CORS_ORIGINS, RATELIMIT_STORAGE_URI)", file=sys.stderr)
        print("2. Run 'flask validate-catalog' to check the symbol catalog", file=sys.stderr)
        print("\nApplication startup ABORTED\n", file=sys.stderr)
        sys.exit(1)
