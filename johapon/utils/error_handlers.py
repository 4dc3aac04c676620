"""
Error Handlers

Every error is rendered as {"error": <message>, "code": <CODE>}.
"""

import logging

from flask import jsonify
from werkzeug.exceptions import HTTPException


logger = logging.getLogger(__name__)

ERROR_CODES = {
    400: ('BAD_REQUEST', '잘못된 요청입니다.'),
    401: ('UNAUTHORIZED', '인증이 필요합니다.'),
    403: ('FORBIDDEN', '접근 권한이 없습니다.'),
    404: ('NOT_FOUND', '요청한 리소스를 찾을 수 없습니다.'),
    405: ('METHOD_NOT_ALLOWED', '허용되지 않은 메서드입니다.'),
    500: ('INTERNAL_SERVER_ERROR', '서버 오류가 발생했습니다. 잠시 후 다시 시도해주세요.'),
}


def render_error(status_code, message=None):
    code, default_message = ERROR_CODES.get(status_code, ('ERROR', '오류가 발생했습니다.'))
    return jsonify({'error': message or default_message, 'code': code}), status_code


def register_error_handlers(app):
    """Register error handlers with the Flask app"""

    def http_error(error: HTTPException):
        # Use the description only when a route raised with its own message
        message = error.description if error.description != type(error).description else None
        return render_error(error.code, message)

    for status_code in (400, 401, 403, 404, 405):
        app.register_error_handler(status_code, http_error)

    @app.errorhandler(500)
    def internal_error(error):
        from ..models import db
        db.session.rollback()
        logger.error(f"Unhandled error: {error}", exc_info=True)
        return render_error(500)
