"""
Security and audit event logging.
Emits JSON event payloads through the Flask app logger.
"""

import json
import logging
from datetime import datetime, timezone

from flask import current_app, g, request


def _request_context():
    try:
        return {
            'request_id': g.get('request_id', 'N/A'),
            'ip_address': request.remote_addr if request else None,
            'user_agent': request.headers.get('User-Agent') if request else None,
        }
    except RuntimeError:
        # Outside application/request context
        return {'request_id': 'N/A', 'ip_address': None, 'user_agent': None}


class SecurityLogger:
    """Centralized audit event logging"""

    @staticmethod
    def log_game_event(event_type: str, player_id: str = None, game_id: str = None,
                       bet_amount: float = None, win_amount: float = None, details: dict = None):
        """Log spin and game lifecycle events"""
        context = _request_context()
        event_data = {
            'event_type': 'game',
            'sub_type': event_type,
            'player_id': player_id,
            'game_id': game_id,
            'bet_amount': bet_amount,
            'win_amount': win_amount,
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'request_id': context['request_id'],
            'ip_address': context['ip_address'],
            'details': details or {}
        }
        current_app.logger.info(f"GAME_EVENT: {json.dumps(event_data, default=str)}")

    @staticmethod
    def log_security_event(event_type: str, severity: str = 'medium', details: dict = None):
        """Log security-related events such as rejected service tokens"""
        context = _request_context()
        event_data = {
            'event_type': 'security',
            'sub_type': event_type,
            'severity': severity,
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'request_id': context['request_id'],
            'ip_address': context['ip_address'],
            'user_agent': context['user_agent'],
            'details': details or {}
        }

        level_map = {
            'low': logging.INFO,
            'medium': logging.WARNING,
            'high': logging.ERROR,
            'critical': logging.CRITICAL
        }
        current_app.logger.log(level_map.get(severity, logging.WARNING), f"SECURITY_EVENT: {json.dumps(event_data)}")

    @staticmethod
    def log_admin_event(event_type: str, symbol_id: str = None, action: str = None,
                        success: bool = True, details: dict = None):
        """Log symbol catalog administration"""
        context = _request_context()
        event_data = {
            'event_type': 'admin',
            'sub_type': event_type,
            'symbol_id': symbol_id,
            'action': action,
            'success': success,
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'request_id': context['request_id'],
            'ip_address': context['ip_address'],
            'details': details or {}
        }
        current_app.logger.warning(f"ADMIN_EVENT: {json.dumps(event_data, default=str)}")
