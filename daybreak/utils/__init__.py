# daybreak/utils/__init__.py
"""Utility functions package."""

from daybreak.utils.text_processing import (
    pluralize,
    truncate_text,
    escape_slack_mrkdwn,
    escape_telegram_markdown
)

__all__ = [
    'pluralize',
    'truncate_text',
    'escape_slack_mrkdwn',
    'escape_telegram_markdown'
]
