"""
Telegram channel

Markdown message sent through the Bot API. The address is the chat id.
"""

import logging

import requests

from daybreak.utils.text_processing import (
    escape_telegram_markdown, pluralize, strip_telegram_markdown, truncate_text
)
from daybreak.briefing.channels.base import (
    ChannelAdapter, ChannelPayload, SendResult, register_channel
)

logger = logging.getLogger(__name__)

TELEGRAM_API_BASE = 'https://api.telegram.org'
TELEGRAM_MAX_LENGTH = 4096


@register_channel
class TelegramChannel(ChannelAdapter):
    name = 'telegram'
    event_cap = 3
    task_cap = 3
    max_length = TELEGRAM_MAX_LENGTH

    def format(self, snapshot, narrative) -> ChannelPayload:
        esc = escape_telegram_markdown
        message = f"☀️ *Good Morning, {strip_telegram_markdown(snapshot.user.first_name)}!*\n"
        message += f"_{snapshot.weekday}, {snapshot.date_label}_\n\n"
        message += f"{esc(narrative.summary)}\n\n"

        if snapshot.calendar_events:
            message += f"📅 *Schedule* ({pluralize(snapshot.total_events, 'event')})\n"
            for event in snapshot.calendar_events[:self.event_cap]:
                message += f"• {event.time_label} - {esc(event.title)}\n"
            message += "\n"

        overdue, due_today = self.capped_tasks(snapshot)
        if overdue or due_today:
            message += "✅ *Tasks*\n"
            if snapshot.overdue:
                message += f"⚠️ {len(snapshot.overdue)} overdue\n"
                for task in overdue:
                    message += f"• {esc(task.display_title)} ({task.days_overdue}d overdue)\n"
            for task in due_today:
                message += f"• {esc(task.display_title)}\n"
            message += "\n"

        message += "🎯 *Focus Today*\n"
        for i, action in enumerate(narrative.priority_actions, 1):
            message += f"{i}. {esc(action)}\n"

        message += f"\n_{strip_telegram_markdown(narrative.closing)}_"

        return ChannelPayload(text=truncate_text(message, TELEGRAM_MAX_LENGTH))

    def send(self, address, payload) -> SendResult:
        token = self.config.get('TELEGRAM_BOT_TOKEN')
        if not token:
            self.fail("TELEGRAM_BOT_TOKEN not configured")

        try:
            response = requests.post(
                f"{TELEGRAM_API_BASE}/bot{token}/sendMessage",
                json={
                    "chat_id": address,
                    "text": payload.text,
                    "parse_mode": "Markdown",
                    "disable_web_page_preview": True
                },
                timeout=self.timeout
            )
        except requests.exceptions.RequestException as e:
            self.fail(f"Request error: {e}")

        try:
            result = response.json()
        except ValueError:
            result = {}
        if response.status_code != 200 or not result.get('ok'):
            self.fail(f"Telegram API error {response.status_code}: {result.get('description', response.text[:200])}")

        message_id = (result.get('result') or {}).get('message_id')
        logger.info(f"Sent Telegram briefing to chat {address}")
        return SendResult(delivered=True, external_id=str(message_id) if message_id is not None else None)
