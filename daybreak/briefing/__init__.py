"""
Morning Briefing Module

Aggregates each user's day, writes a short narrative and delivers it once
per local calendar day over the user's preferred channel.
"""

from flask import Blueprint

from daybreak.api.errors import register_error_handlers

briefing_bp = Blueprint('briefing', __name__, url_prefix='/api/briefings')
register_error_handlers(briefing_bp)

from daybreak.briefing import routes  # noqa: E402,F401
