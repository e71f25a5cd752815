"""
Email channel

HTML + plain-text email sent through the Resend API. The address defaults
to the user's account email.
"""

import time
import logging
import threading
from typing import Any, Dict, Optional, Tuple

import requests
from flask import render_template

from daybreak.utils.text_processing import pluralize
from daybreak.briefing.channels.base import (
    ChannelAdapter, ChannelPayload, SendResult, register_channel, render_plain_text
)

logger = logging.getLogger(__name__)


class RateLimiter:
    """Thread-safe rate limiter for API calls"""
    def __init__(self, rate_per_second: float):
        self.min_interval = 1.0 / rate_per_second
        self.last_call = 0.0
        self.lock = threading.Lock()

    def acquire(self):
        """Wait until we can make another call"""
        with self.lock:
            now = time.monotonic()
            wait = self.min_interval - (now - self.last_call)
            if wait > 0:
                time.sleep(wait)
            self.last_call = time.monotonic()


class ResendMailer:
    """
    Minimal Resend client for briefing emails.

    Shared across worker threads: the rate limiter keeps concurrent
    pipelines under Resend's per-second limit, and 429s and timeouts are
    retried with a growing delay.
    """

    API_URL = 'https://api.resend.com/emails'
    RATE_LIMIT = 14  # emails per second
    MAX_RETRIES = 3
    RETRY_DELAY = 2  # seconds

    _rate_limiter = RateLimiter(RATE_LIMIT)

    def __init__(self, api_key: str, timeout: float):
        self.api_key = api_key
        self.timeout = timeout

    def _get_headers(self) -> Dict[str, str]:
        return {
            'Authorization': f'Bearer {self.api_key}',
            'Content-Type': 'application/json'
        }

    def send(self, email_data: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
        """
        Send a single email with retry logic.

        Returns:
            (success, Resend email id on success or error message on failure)
        """
        for attempt in range(self.MAX_RETRIES):
            try:
                self._rate_limiter.acquire()
                response = requests.post(
                    self.API_URL,
                    json=email_data,
                    headers=self._get_headers(),
                    timeout=self.timeout
                )

                if response.status_code == 200:
                    return True, response.json().get('id')
                elif response.status_code == 429:
                    if attempt < self.MAX_RETRIES - 1:
                        wait_time = self.RETRY_DELAY * (attempt + 1)
                        logger.warning(f"Rate limited, waiting {wait_time}s...")
                        time.sleep(wait_time)
                        continue
                    return False, f"Rate limited after {self.MAX_RETRIES} attempts"
                else:
                    return False, f"Resend API error: {response.status_code} - {response.text[:200]}"

            except requests.exceptions.Timeout:
                if attempt < self.MAX_RETRIES - 1:
                    logger.warning(f"Timeout (attempt {attempt + 1}/{self.MAX_RETRIES}), retrying...")
                    time.sleep(self.RETRY_DELAY * (attempt + 1))
                else:
                    return False, f"Timeout after {self.MAX_RETRIES} attempts"

            except requests.exceptions.RequestException as e:
                return False, f"Request error: {e}"

        return False, "Send failed"


@register_channel
class EmailChannel(ChannelAdapter):
    name = 'email'
    event_cap = 5
    task_cap = 5

    def default_address(self, profile) -> Optional[str]:
        return profile.email

    def format(self, snapshot, narrative) -> ChannelPayload:
        subject = f"☀️ Your {snapshot.weekday} briefing: {pluralize(snapshot.total_events, 'event')}, {pluralize(len(snapshot.due_today), 'task')} due"
        overdue, due_today = self.capped_tasks(snapshot)
        app_url = (self.config.get('APP_URL') or '').rstrip('/')

        html = render_template(
            'emails/morning_briefing.html',
            snapshot=snapshot,
            narrative=narrative,
            events=snapshot.calendar_events[:self.event_cap],
            overdue=overdue,
            due_today=due_today,
            dashboard_url=f"{app_url}/dashboard" if app_url else None,
        )

        return ChannelPayload(
            text=render_plain_text(self, snapshot, narrative),
            subject=subject,
            html=html,
        )

    def send(self, address, payload) -> SendResult:
        api_key = self.config.get('RESEND_API_KEY')
        if not api_key:
            self.fail("RESEND_API_KEY not configured")

        mailer = ResendMailer(api_key, timeout=self.timeout)
        ok, detail = mailer.send({
            'from': self.config.get('RESEND_FROM_EMAIL'),
            'to': [address],
            'subject': payload.subject,
            'html': payload.html,
            'text': payload.text,
        })
        if not ok:
            self.fail(detail)

        logger.info(f"Sent briefing email to {address}")
        return SendResult(delivered=True, external_id=detail)
