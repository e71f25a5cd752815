"""
JSON error envelope for the briefing API.

Every error leaves the API as {"error": "<code>", "message": "<text>"} so
cron jobs and the host app never have to parse HTML error pages.
"""
import logging

from flask import jsonify
from werkzeug.exceptions import HTTPException

logger = logging.getLogger(__name__)

# Error codes the briefing endpoints can return
ERROR_CODES = {
    'bad_request': 'The request was malformed or had invalid parameters.',
    'unauthorized': 'The X-Cron-Secret header is missing or wrong.',
    'not_found': 'The user or route does not exist.',
    'method_not_allowed': 'The route exists but not for this HTTP method.',
    'not_configured': 'The server is missing configuration for this endpoint.',
    'internal_error': 'An unexpected error occurred while handling the request.',
}

_STATUS_CODES = {
    400: 'bad_request',
    401: 'unauthorized',
    404: 'not_found',
    405: 'method_not_allowed',
}


def api_error(code: str, message: str, status_code: int = 400):
    """
    Build an error response in the API envelope.

    Example:
        return api_error('not_found', 'User 42 not found', 404)
    """
    response = jsonify({
        'error': code,
        'message': message
    })
    response.status_code = status_code
    return response


def register_error_handlers(blueprint):
    """Make every error raised inside `blueprint` answer with the JSON envelope."""

    @blueprint.errorhandler(HTTPException)
    def handle_http_exception(e):
        code = _STATUS_CODES.get(e.code) or e.name.lower().replace(' ', '_')
        return api_error(code, e.description or ERROR_CODES.get(code, e.name), e.code)

    @blueprint.errorhandler(Exception)
    def handle_unexpected(e):
        logger.error(f"Unhandled error in {blueprint.name} API: {e}", exc_info=True)
        return api_error('internal_error', ERROR_CODES['internal_error'], 500)
