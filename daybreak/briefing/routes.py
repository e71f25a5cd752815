"""
Briefing Routes

JSON endpoints for running briefings on demand, driving the tick from an
external cron, and reading a user's delivery history.
"""

import hmac
import logging
from functools import wraps

from flask import current_app, jsonify, request

from daybreak import db
from daybreak.models import User
from daybreak.api.errors import api_error
from daybreak.briefing import briefing_bp
from daybreak.briefing.controller import run_briefing_for_user, tick
from daybreak.briefing.ledger import get_delivery_history
from daybreak.briefing.preferences import load_profile
from daybreak.briefing.timezone_utils import get_next_scheduled_time, parse_delivery_time

logger = logging.getLogger(__name__)

MAX_HISTORY_LIMIT = 100


def cron_secret_required(f):
    """Require an X-Cron-Secret header matching CRON_SECRET."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        expected = current_app.config.get('CRON_SECRET')
        if not expected:
            logger.error("CRON_SECRET is not configured; refusing cron request")
            return api_error('not_configured', 'Cron endpoint is not configured.', 503)

        provided = request.headers.get('X-Cron-Secret', '')
        if not hmac.compare_digest(provided.encode(), expected.encode()):
            return api_error('unauthorized', 'Invalid cron secret.', 401)
        return f(*args, **kwargs)
    return decorated_function


@briefing_bp.route('/users/<int:user_id>/run', methods=['POST'])
def run_for_user(user_id):
    """Generate and deliver today's briefing for one user now."""
    try:
        result = run_briefing_for_user(user_id)
    except ValueError as e:
        return api_error('not_found', str(e), 404)

    return jsonify(result.to_dict())


@briefing_bp.route('/tick', methods=['POST'])
@cron_secret_required
def run_tick():
    """Deliver briefings to every user whose window is open."""
    return jsonify(tick())


@briefing_bp.route('/users/<int:user_id>/history', methods=['GET'])
def delivery_history(user_id):
    """Past delivery attempts, newest first, plus the next scheduled delivery."""
    if db.session.get(User, user_id) is None:
        return api_error('not_found', f"User {user_id} not found", 404)

    limit = request.args.get('limit', 30, type=int)
    limit = max(1, min(limit, MAX_HISTORY_LIMIT))

    records = get_delivery_history(user_id, limit=limit)

    next_delivery_at = None
    profile = load_profile(user_id)
    if profile and profile.enabled:
        try:
            hour, minute = parse_delivery_time(profile.delivery_time)
            next_delivery_at = get_next_scheduled_time(profile.timezone, hour, minute).isoformat() + 'Z'
        except ValueError as e:
            logger.warning(f"Cannot compute next delivery for user {user_id}: {e}")

    return jsonify({
        'user_id': user_id,
        'history': [record.to_dict() for record in records],
        'next_delivery_at': next_delivery_at,
    })
