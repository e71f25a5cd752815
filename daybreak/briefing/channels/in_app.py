"""
In-app channel

Stores the briefing as a Notification row for the dashboard to show.
"""

import logging
from typing import Optional

from daybreak import db
from daybreak.models import Notification
from daybreak.briefing.channels.base import (
    ChannelAdapter, ChannelPayload, SendResult, register_channel, render_plain_text
)

logger = logging.getLogger(__name__)

NOTIFICATION_TYPE = 'morning_briefing'


@register_channel
class InAppChannel(ChannelAdapter):
    name = 'in_app'
    event_cap = 5
    task_cap = 5

    def default_address(self, profile) -> Optional[str]:
        return str(profile.user_id)

    def format(self, snapshot, narrative) -> ChannelPayload:
        return ChannelPayload(
            text=render_plain_text(self, snapshot, narrative),
            subject=f"Good Morning, {snapshot.user.first_name}!",
            data={
                'snapshot': snapshot.to_dict(event_cap=self.event_cap, task_cap=self.task_cap),
                'narrative': narrative.to_dict(),
            },
        )

    def send(self, address, payload) -> SendResult:
        try:
            user_id = int(address)
        except (TypeError, ValueError):
            self.fail(f"Invalid in-app address {address!r}")

        try:
            notification = Notification(
                user_id=user_id,
                type=NOTIFICATION_TYPE,
                title=payload.subject,
                message=payload.text,
                data=payload.data,
                is_read=False,
            )
            db.session.add(notification)
            db.session.commit()
        except Exception as e:
            db.session.rollback()
            self.fail(f"Could not store notification: {e}")

        logger.info(f"Stored in-app briefing notification {notification.id} for user {user_id}")
        return SendResult(delivered=True, external_id=str(notification.id))
