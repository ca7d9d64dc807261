import hmac
from functools import wraps

from flask import request, current_app

from cryptoreels_be.exceptions import AuthenticationException, AuthorizationException, InternalServerErrorException, NotFoundException
from cryptoreels_be.utils.security_logger import SecurityLogger


def service_token_required(f):
    """
    Decorator to protect routes with a service API token.
    Expects the token to be passed in the 'X-Service-Token' header.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = request.headers.get('X-Service-Token')
        if not token:
            current_app.logger.warning("Service token missing for protected route.")
            raise AuthenticationException("Service token required.")

        expected_token = current_app.config.get('SERVICE_API_TOKEN')
        if not expected_token:
            current_app.logger.error("SERVICE_API_TOKEN is not configured in the application.")
            raise InternalServerErrorException("Service token not configured.")

        if not hmac.compare_digest(token.encode(), expected_token.encode()):
            SecurityLogger.log_security_event('invalid_service_token', details={'path': request.path})
            # 403: a token was sent, it is just not the right one.
            raise AuthorizationException("Invalid service token.")
        return f(*args, **kwargs)
    return decorated_function


def feature_flag_required(flag_name):
    """
    Decorator to enable/disable routes based on a feature flag in Flask app config.
    Disabled routes answer 404 as if they did not exist.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not current_app.config.get(flag_name, False):
                raise NotFoundException("This feature is not currently available.")
            return f(*args, **kwargs)
        return decorated_function
    return decorator
