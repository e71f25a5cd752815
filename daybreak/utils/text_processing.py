"""
Centralized Text Processing Utilities

Provides consistent text handling for briefing narratives and channel payloads.
"""

import re
from typing import Optional


ELLIPSIS = '…'


def pluralize(count: int, singular: str, plural: Optional[str] = None) -> str:
    """
    Render a count with the correctly inflected noun.

    pluralize(1, 'overdue task') -> '1 overdue task'
    pluralize(2, 'overdue task') -> '2 overdue tasks'
    """
    if count == 1:
        return f"{count} {singular}"
    return f"{count} {plural or singular + 's'}"


def truncate_text(text: str, max_length: int) -> str:
    """
    Shorten text to at most max_length characters.

    Cuts at the last line break (or space) that keeps the result within the
    limit and appends an ellipsis. Text that already fits is returned as-is.

    Args:
        text: Text to shorten
        max_length: Maximum length of the returned string, ellipsis included

    Returns:
        Text no longer than max_length
    """
    if not text or len(text) <= max_length:
        return text or ''
    if max_length <= len(ELLIPSIS):
        return text[:max_length]

    budget = max_length - len(ELLIPSIS)
    cut = text[:budget]

    # Prefer a line boundary, then a word boundary, in the back half of the budget
    for separator in ('\n', ' '):
        pos = cut.rfind(separator)
        if pos >= budget // 2:
            cut = cut[:pos]
            break

    return cut.rstrip() + ELLIPSIS


def escape_slack_mrkdwn(text: str) -> str:
    """Escape the three control characters Slack requires in mrkdwn text."""
    if not text:
        return ''
    return text.replace('&', '&amp;').replace('<', '&lt;').replace('>', '&gt;')


def escape_telegram_markdown(text: str) -> str:
    """
    Escape user content for Telegram's legacy Markdown parse mode.

    Only _ * ` [ are significant in that mode.
    """
    if not text:
        return ''
    return re.sub(r'([_*`\[])', r'\\\1', text)


def strip_telegram_markdown(text: str) -> str:
    """
    Drop Markdown marker characters from text placed inside a Telegram entity.

    Legacy Markdown ignores backslash escapes inside *bold* and _italic_
    spans, so markers there are removed instead of escaped.
    """
    if not text:
        return ''
    return re.sub(r'[_*`\[]', '', text)
