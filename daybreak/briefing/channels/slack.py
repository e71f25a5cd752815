"""
Slack channel

Block Kit message posted with chat.postMessage using the workspace bot
token. The address is a Slack channel or user id.
"""

import logging

import requests

from daybreak.utils.text_processing import escape_slack_mrkdwn, pluralize, truncate_text
from daybreak.briefing.channels.base import (
    ChannelAdapter, ChannelPayload, SendResult, register_channel
)

logger = logging.getLogger(__name__)

SLACK_POST_MESSAGE_URL = 'https://slack.com/api/chat.postMessage'

# Block Kit hard limits
SLACK_SECTION_MAX_LENGTH = 3000
SLACK_HEADER_MAX_LENGTH = 150


def _section(text: str) -> dict:
    return {
        "type": "section",
        "text": {
            "type": "mrkdwn",
            "text": truncate_text(text, SLACK_SECTION_MAX_LENGTH)
        }
    }


@register_channel
class SlackChannel(ChannelAdapter):
    name = 'slack'
    event_cap = 4
    task_cap = 3
    max_length = SLACK_SECTION_MAX_LENGTH

    def format(self, snapshot, narrative) -> ChannelPayload:
        esc = escape_slack_mrkdwn
        blocks = [
            {
                "type": "header",
                "text": {
                    "type": "plain_text",
                    "text": truncate_text(f"☀️ Good Morning, {snapshot.user.first_name}!", SLACK_HEADER_MAX_LENGTH),
                    "emoji": True
                }
            },
            {
                "type": "context",
                "elements": [{
                    "type": "mrkdwn",
                    "text": f"*{snapshot.weekday}, {snapshot.date_label}*"
                }]
            },
            {"type": "divider"},
            _section(esc(narrative.summary)),
        ]

        if snapshot.calendar_events:
            event_lines = [
                f"• *{e.time_label}* - {esc(e.title)} _({e.duration_label})_" + (" :star:" if e.is_important else "")
                for e in snapshot.calendar_events[:self.event_cap]
            ]
            blocks.append(_section(
                f"*:calendar: Today's Schedule* ({pluralize(snapshot.total_events, 'event')})\n"
                + "\n".join(event_lines)
            ))

        overdue, due_today = self.capped_tasks(snapshot)
        if overdue or due_today:
            counts = []
            if snapshot.due_today:
                counts.append(f"*Due Today:* {len(snapshot.due_today)}")
            if snapshot.overdue:
                counts.append(f":warning: *Overdue:* {len(snapshot.overdue)}")
            task_lines = [
                f"• :warning: {esc(t.display_title)} _({pluralize(t.days_overdue, 'day')} overdue)_"
                for t in overdue
            ] + [
                f"• {':red_circle:' if t.priority == 'high' else ':large_blue_circle:'} {esc(t.display_title)}"
                for t in due_today
            ]
            blocks.append(_section(
                "*:white_check_mark: Tasks*\n" + " | ".join(counts) + "\n" + "\n".join(task_lines)
            ))

        if snapshot.email_signals.unread_count:
            blocks.append(_section(f"*:email: Email*\n{esc(narrative.email_section)}"))

        blocks.append({"type": "divider"})
        blocks.append(_section(
            "*:dart: Focus Today*\n"
            + "\n".join(f"{i}. {esc(a)}" for i, a in enumerate(narrative.priority_actions, 1))
        ))

        closing = f"_{esc(narrative.closing)}_"
        app_url = self.config.get('APP_URL')
        if app_url:
            closing += f" • <{app_url.rstrip('/')}/dashboard|Open Dashboard>"
        blocks.append({
            "type": "context",
            "elements": [{"type": "mrkdwn", "text": closing}]
        })

        # Notifications and clients without Block Kit show the text field
        fallback_text = truncate_text(f"{narrative.greeting} {narrative.summary}", SLACK_SECTION_MAX_LENGTH)
        return ChannelPayload(text=fallback_text, blocks=blocks)

    def send(self, address, payload) -> SendResult:
        token = self.config.get('SLACK_BOT_TOKEN')
        if not token:
            self.fail("SLACK_BOT_TOKEN not configured")

        try:
            response = requests.post(
                SLACK_POST_MESSAGE_URL,
                json={
                    "channel": address,
                    "text": payload.text,
                    "blocks": payload.blocks,
                    "unfurl_links": False,
                    "unfurl_media": False
                },
                headers={'Authorization': f'Bearer {token}'},
                timeout=self.timeout
            )
        except requests.exceptions.RequestException as e:
            self.fail(f"Request error: {e}")

        if response.status_code != 200:
            self.fail(f"Slack API returned {response.status_code}: {response.text[:200]}")

        result = response.json()
        if not result.get('ok'):
            self.fail(f"Slack API error: {result.get('error', 'unknown_error')}")

        logger.info(f"Sent Slack briefing to {address}")
        return SendResult(delivered=True, external_id=result.get('ts'))
