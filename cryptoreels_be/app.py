from dotenv import load_dotenv
import os

# Load environment variables from .env file
load_dotenv()

from flask import Flask, request, jsonify, current_app, g
import uuid
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_cors import CORS
from werkzeug.exceptions import HTTPException as WerkzeugHTTPException
from cryptoreels_be.exceptions import AppException
from cryptoreels_be.error_codes import ErrorCodes
import logging
from pythonjsonlogger import jsonlogger
from marshmallow import ValidationError
from http import HTTPStatus
import click

from cryptoreels_be.config import Config
from cryptoreels_be.config_validator import DEFAULT_SERVICE_TOKEN
from cryptoreels_be.utils.symbol_catalog import CatalogStore, load_catalog_config, validate_catalog_config
from cryptoreels_be.utils.slot_tester import SlotTester
from cryptoreels_be.routes.game import game_bp
from cryptoreels_be.routes.catalog import catalog_bp


# Custom Logging Filter for Request ID
class RequestIdFilter(logging.Filter):
    def filter(self, record):
        try:
            record.request_id = g.get('request_id', 'N/A')
        except RuntimeError:
            # CLI commands and startup log outside an app context
            record.request_id = 'N/A'
        return True


def _error_response(error_code, status_message, details=None, action_button=None):
    return jsonify({
        'request_id': g.get('request_id', 'N/A'),
        'status': False,
        'error_code': error_code,
        'status_message': status_message,
        'details': details if details is not None else {},
        'action_button': action_button
    })


def create_app(config_class=Config):
    """Application factory for the CryptoReels game service."""
    app = Flask(__name__)
    app.config.from_object(config_class)

    # --- CORS Setup ---
    allowed_origins = []

    # Development origins
    if app.debug:
        allowed_origins.extend([
            "http://localhost:3000",
            "http://127.0.0.1:3000",
            "http://localhost:8080",
            "http://127.0.0.1:8080"
        ])

    # Embedding platform origins from validated configuration
    if app.config.get('CORS_ORIGINS_LIST'):
        allowed_origins.extend(app.config['CORS_ORIGINS_LIST'])

    if allowed_origins:
        CORS(app,
             origins=allowed_origins,
             supports_credentials=True,
             methods=['GET', 'POST', 'PUT', 'OPTIONS'],
             allow_headers=['Content-Type', 'Authorization', 'X-Service-Token'],
             expose_headers=['X-RateLimit-Limit', 'X-RateLimit-Remaining'],
             max_age=86400)
        app.logger.info(f"CORS configured for origins: {allowed_origins}")
    else:
        app.logger.warning("No CORS origins configured - API will reject cross-origin requests")

    # --- Logging Configuration ---
    if not app.debug:
        logger = app.logger
        handler = logging.StreamHandler()
        formatter = jsonlogger.JsonFormatter(
            '%(asctime)s %(levelname)s %(request_id)s %(module)s %(funcName)s %(lineno)d %(message)s'
        )
        handler.setFormatter(formatter)
        handler.addFilter(RequestIdFilter())
        if logger.hasHandlers():
            logger.handlers.clear()
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)
    else:
        if not app.logger.handlers:
            logging.basicConfig(level=logging.DEBUG)

    # --- Request ID ---
    @app.before_request
    def assign_request_id():
        g.request_id = str(uuid.uuid4())

    # --- Response Security Headers ---
    @app.after_request
    def add_security_headers(response):
        if not app.config.get('SECURITY_HEADERS', True):
            return response
        response.headers['X-Content-Type-Options'] = 'nosniff'
        response.headers['X-Frame-Options'] = 'DENY'

        default_csp = "default-src 'none'; frame-ancestors 'none'; base-uri 'none';"
        response.headers['Content-Security-Policy'] = os.getenv('CONTENT_SECURITY_POLICY', default_csp)

        if request.is_secure and not app.debug:
            response.headers['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains'
        response.headers['X-Request-ID'] = g.get('request_id', 'N/A')
        return response

    # --- Production Warnings ---
    log_production_warnings(app)

    # --- Rate Limiter Setup ---
    if app.config.get("TESTING"):
        app.config['RATELIMIT_ENABLED'] = False
    else:
        app.config.setdefault('RATELIMIT_ENABLED', True)
        app.config.setdefault('RATELIMIT_DEFAULT', "120 per minute")

    limiter = Limiter(key_func=get_remote_address)
    limiter.limit(app.config.get('ADMIN_RATE_LIMIT', "30 per minute"))(catalog_bp)
    limiter.init_app(app)

    # --- Symbol Catalog ---
    # Fails startup on a missing or invalid catalog file.
    app.catalog_store = CatalogStore.from_path(app.config.get('SYMBOL_CATALOG_PATH'))
    app.logger.info(f"Symbol catalog loaded: {app.catalog_store.snapshot()!r}")

    # --- Error Handlers ---
    @app.errorhandler(ValidationError)
    def handle_validation_error(e):
        request_id = g.get('request_id', 'N/A')
        current_app.logger.warning(
            f"Request ID: {request_id} - Validation error: {e.messages} - Error Code: {ErrorCodes.VALIDATION_ERROR}"
        )
        return _error_response(
            ErrorCodes.VALIDATION_ERROR, 'Input validation failed.', details={'errors': e.messages}
        ), HTTPStatus.UNPROCESSABLE_ENTITY

    @app.errorhandler(WerkzeugHTTPException)
    def handle_werkzeug_http_exception(e):
        request_id = g.get('request_id', 'N/A')
        error_code = ErrorCodes.GENERIC_ERROR
        if e.code == 404:
            error_code = ErrorCodes.NOT_FOUND
        elif e.code == 405:
            error_code = ErrorCodes.METHOD_NOT_ALLOWED
        elif e.code == 401:
            error_code = ErrorCodes.UNAUTHENTICATED
        elif e.code == 403:
            error_code = ErrorCodes.FORBIDDEN
        elif e.code >= 500:
            error_code = ErrorCodes.INTERNAL_SERVER_ERROR

        current_app.logger.warning(
            f"Request ID: {request_id} - Werkzeug HTTPException: {e.code} - {e.name}: {e.description} - Error Code: {error_code}"
        )
        response = e.get_response()
        response.data = _error_response(error_code, e.name, details={'description': e.description}).data
        response.content_type = "application/json"
        return response

    # --- Global Error Handler ---
    @app.errorhandler(Exception)
    def handle_global_exception(e):
        request_id = g.get('request_id', 'N/A')

        if isinstance(e, AppException):
            current_app.logger.error(
                f"Request ID: {request_id} - AppException: {e.error_code} - {e.status_message} - Details: {e.details}",
                exc_info=e.status_code >= 500
            )
            return _error_response(e.error_code, e.status_message, e.details, e.action_button), e.status_code

        if isinstance(e, WerkzeugHTTPException):
            return handle_werkzeug_http_exception(e)

        current_app.logger.critical(
            f"Request ID: {request_id} - Unhandled Critical Exception. Error Code: {ErrorCodes.INTERNAL_SERVER_ERROR}",
            exc_info=True
        )
        return _error_response(
            ErrorCodes.INTERNAL_SERVER_ERROR,
            'An unexpected internal server error occurred. Please try again later.'
        ), HTTPStatus.INTERNAL_SERVER_ERROR

    @app.errorhandler(404)
    def handle_flask_not_found(e):
        request_id = g.get('request_id', 'N/A')
        current_app.logger.warning(
            f"Request ID: {request_id} - HTTP 404 Not Found: {request.url} - Error Code: {ErrorCodes.NOT_FOUND}"
        )
        return _error_response(
            ErrorCodes.NOT_FOUND, 'The requested resource was not found.', details={'path': request.path}
        ), HTTPStatus.NOT_FOUND

    # --- Health ---
    @app.route('/health', methods=['GET'])
    @limiter.exempt
    def health():
        catalog = app.catalog_store.snapshot()
        return jsonify({
            'status': True,
            'service': 'cryptoreels',
            'catalog': {'name': catalog.name, 'symbols': len(catalog)}
        }), HTTPStatus.OK

    # Register Blueprints
    app.register_blueprint(game_bp)
    app.register_blueprint(catalog_bp)

    # --- CLI commands ---
    @app.cli.command('validate-catalog')
    @click.option('-p', '--path', default=None, help='Catalog JSON file (defaults to SYMBOL_CATALOG_PATH or the bundled catalog)')
    def validate_catalog_command(path):
        """Validates a symbol catalog file and reports errors and warnings."""
        try:
            config = load_catalog_config(path or app.config.get('SYMBOL_CATALOG_PATH'))
        except (FileNotFoundError, ValueError) as e:
            raise click.ClickException(str(e))

        report = validate_catalog_config(config)
        for error in report['errors']:
            click.echo(f"ERROR: {error}")
        for warning in report['warnings']:
            click.echo(f"WARNING: {warning}")

        if not report['is_valid']:
            raise click.ClickException(f"Catalog has {len(report['errors'])} error(s).")
        click.echo("Symbol catalog is valid.")

    @app.cli.command('simulate')
    @click.option('-n', '--spins', type=int, default=10_000, help='Number of spins to simulate')
    @click.option('-b', '--bet', type=float, default=1.0, help='Bet amount for each spin')
    @click.option('-s', '--seed', type=int, default=None, help='Seed for reproducible runs')
    def simulate_command(spins, bet, seed):
        """Simulates spins against the live catalog and prints RTP statistics."""
        if spins <= 0 or bet <= 0:
            raise click.BadParameter("spins and bet must be positive")
        tester = SlotTester(app.catalog_store.snapshot(), num_spins=spins, bet_amount=bet, seed=seed)
        tester.run_simulation()
        for line in tester.summary_lines():
            click.echo(line)

    return app


def log_production_warnings(app):
    if not app.debug:
        if app.config.get('SERVICE_API_TOKEN') == DEFAULT_SERVICE_TOKEN:
            app.logger.critical(
                "CRITICAL SECURITY WARNING: Default SERVICE_API_TOKEN is in use. "
                "Please set a strong, unique SERVICE_API_TOKEN environment variable to protect catalog administration."
            )

        if app.config.get('RATELIMIT_STORAGE_URI') == 'memory://' and not app.config.get('TESTING'):
            app.logger.warning(
                "PERFORMANCE/SCALABILITY WARNING: RATELIMIT_STORAGE_URI is set to 'memory://'. "
                "This is not suitable for multi-process or multi-instance deployments. "
                "Consider using a persistent store like Redis (e.g., 'redis://localhost:6379/0')."
            )

        if app.config.get('TEST_MODE_ENABLED') and not app.config.get('TESTING'):
            app.logger.warning(
                "TEST_MODE_ENABLED is on: /api/game/test-spin draws server-side random values."
            )


if __name__ == '__main__':
    app = create_app()
    app.run(host='0.0.0.0', port=int(os.getenv('PORT', '5000')), debug=app.debug)
