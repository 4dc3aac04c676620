"""
API Utilities Module

FLOW OVERVIEW
- get_client_ip()
  • First hop of X-Forwarded-For, then X-Real-IP, then the socket address.
- APIRequestValidator
  • validate_json_request → parse/validate JSON and return (ok, data, error).
  • require_fields → (ok, error) for missing or blank parameters.
- error_response(message, code, status)
  • Uniform {"error", "code"} payload used by every JSON route.
"""

import logging
from typing import Dict, Any, Tuple, Optional, Iterable
from flask import request, jsonify


def get_client_ip() -> Optional[str]:
    forwarded = request.headers.get('X-Forwarded-For')
    if forwarded:
        return forwarded.split(',')[0].strip()
    real_ip = request.headers.get('X-Real-IP')
    if real_ip:
        return real_ip.strip()
    return request.remote_addr


def error_response(message: str, code: str, status: int):
    return jsonify({'error': message, 'code': code}), status


class APIRequestValidator:
    """Handles common request validation logic."""

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def validate_json_request(self, client_ip: str = None) -> Tuple[bool, Optional[Dict[str, Any]], Optional[Dict[str, Any]]]:
        """
        Validate and parse JSON request.

        Args:
            client_ip: Client IP for logging

        Returns:
            Tuple of (is_valid, data, error_response)
        """
        data = request.get_json(silent=True)
        if data is None:
            self.logger.warning(f"Invalid or missing JSON from {client_ip}")
            return False, None, {
                'error': '요청 형식이 올바르지 않습니다.',
                'code': 'INVALID_JSON'
            }

        if not isinstance(data, dict):
            self.logger.warning(f"Invalid data type from {client_ip}: {type(data)}")
            return False, None, {
                'error': '요청 형식이 올바르지 않습니다.',
                'code': 'INVALID_JSON'
            }

        return True, data, None

    def require_fields(self, data: Dict[str, Any], fields: Iterable[str]) -> Tuple[bool, Optional[Dict[str, Any]]]:
        missing = [f for f in fields if data.get(f) in (None, '')]
        if missing:
            return False, {
                'error': '필수 파라미터가 누락되었습니다.',
                'code': 'MISSING_PARAMETERS',
                'missing': missing
            }
        return True, None


request_validator = APIRequestValidator()
