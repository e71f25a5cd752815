"""
Read-only access to briefing delivery preferences.

Preferences are converted to plain BriefingProfile values so they can be
handed to worker threads without carrying a database session along.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from daybreak import db
from daybreak.models import User, DeliveryPreference, BRIEFING_STYLES
from daybreak.briefing.timezone_utils import is_valid_timezone

logger = logging.getLogger(__name__)

DEFAULT_CHANNEL = 'in_app'
DEFAULT_DELIVERY_TIME = '08:00'
DEFAULT_TIMEZONE = 'America/New_York'
DEFAULT_STYLE = 'concise'


@dataclass(frozen=True)
class BriefingProfile:
    user_id: int
    first_name: str
    email: str
    channel: str = DEFAULT_CHANNEL
    address: Optional[str] = None
    delivery_time: str = DEFAULT_DELIVERY_TIME
    timezone: str = DEFAULT_TIMEZONE
    enabled: bool = True
    style: str = DEFAULT_STYLE


def _to_profile(user: User, pref: Optional[DeliveryPreference]) -> BriefingProfile:
    if pref is None:
        return BriefingProfile(user_id=user.id, first_name=user.first_name, email=user.email)

    timezone = pref.timezone or DEFAULT_TIMEZONE
    if not is_valid_timezone(timezone):
        logger.warning(f"User {user.id} has invalid timezone '{timezone}', using UTC")
        timezone = 'UTC'

    return BriefingProfile(
        user_id=user.id,
        first_name=user.first_name,
        email=user.email,
        channel=pref.channel or DEFAULT_CHANNEL,
        address=pref.address,
        delivery_time=pref.delivery_time or DEFAULT_DELIVERY_TIME,
        timezone=timezone,
        enabled=pref.enabled is not False,
        style=pref.style if pref.style in BRIEFING_STYLES else DEFAULT_STYLE,
    )


def load_profile(user_id: int) -> Optional[BriefingProfile]:
    """Briefing profile for one user, or None if the user does not exist."""
    user = db.session.get(User, user_id)
    if not user:
        return None
    return _to_profile(user, user.delivery_preference)


def load_enabled_profiles() -> List[BriefingProfile]:
    """All users who have briefings enabled."""
    rows = db.session.query(User, DeliveryPreference).join(
        DeliveryPreference, DeliveryPreference.user_id == User.id
    ).filter(
        DeliveryPreference.enabled.is_(True)
    ).order_by(User.id).all()

    return [_to_profile(user, pref) for user, pref in rows]
