"""
Delivery channels.

Importing this package registers every built-in channel adapter.
"""

from daybreak.briefing.channels.base import (
    ChannelAdapter,
    ChannelPayload,
    SendResult,
    available_channels,
    get_channel,
    register_channel,
)
from daybreak.briefing.channels import slack, telegram, whatsapp, email, in_app  # noqa: F401

__all__ = [
    'ChannelAdapter',
    'ChannelPayload',
    'SendResult',
    'available_channels',
    'get_channel',
    'register_channel',
]
