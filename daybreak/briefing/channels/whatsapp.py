"""
WhatsApp channel

Plain-text message sent through the Twilio Messages API. The address is a
phone number; the whatsapp: prefix is added when missing.
"""

import logging

import requests

from daybreak.utils.text_processing import pluralize, truncate_text
from daybreak.briefing.channels.base import (
    ChannelAdapter, ChannelPayload, SendResult, register_channel
)

logger = logging.getLogger(__name__)

TWILIO_MESSAGES_URL = 'https://api.twilio.com/2010-04-01/Accounts/{sid}/Messages.json'
WHATSAPP_MAX_LENGTH = 1600


def whatsapp_address(number: str) -> str:
    number = number.strip()
    return number if number.startswith('whatsapp:') else f"whatsapp:{number}"


@register_channel
class WhatsAppChannel(ChannelAdapter):
    name = 'whatsapp'
    # Only the next event is shown
    event_cap = 1
    task_cap = 3
    max_length = WHATSAPP_MAX_LENGTH

    def format(self, snapshot, narrative) -> ChannelPayload:
        message = f"☀️ Good Morning, {snapshot.user.first_name}!\n"
        message += f"{snapshot.weekday}, {snapshot.date_label}\n\n"
        message += f"{narrative.summary}\n\n"

        if snapshot.next_event:
            message += f"📅 Next up: {snapshot.next_event.title} at {snapshot.next_event.time_label}\n\n"

        if snapshot.due_today:
            message += f"✅ {pluralize(len(snapshot.due_today), 'task')} due today\n"
        if snapshot.overdue:
            message += f"⚠️ {len(snapshot.overdue)} overdue\n"

        message += "\n🎯 Top priorities:\n"
        for i, action in enumerate(narrative.priority_actions[:3], 1):
            message += f"{i}. {action}\n"

        message += f"\n{narrative.closing}"

        return ChannelPayload(text=truncate_text(message, WHATSAPP_MAX_LENGTH))

    def send(self, address, payload) -> SendResult:
        sid = self.config.get('TWILIO_ACCOUNT_SID')
        auth_token = self.config.get('TWILIO_AUTH_TOKEN')
        from_number = self.config.get('TWILIO_WHATSAPP_FROM')
        if not (sid and auth_token and from_number):
            self.fail("Twilio WhatsApp credentials not configured")

        try:
            response = requests.post(
                TWILIO_MESSAGES_URL.format(sid=sid),
                data={
                    'To': whatsapp_address(address),
                    'From': whatsapp_address(from_number),
                    'Body': payload.text
                },
                auth=(sid, auth_token),
                timeout=self.timeout
            )
        except requests.exceptions.RequestException as e:
            self.fail(f"Request error: {e}")

        try:
            result = response.json()
        except ValueError:
            result = {}
        if response.status_code >= 400 or result.get('error_code'):
            self.fail(f"Twilio error {result.get('code') or response.status_code}: {result.get('message', response.text[:200])}")

        logger.info(f"Sent WhatsApp briefing to {whatsapp_address(address)}")
        return SendResult(delivered=True, external_id=result.get('sid'))
