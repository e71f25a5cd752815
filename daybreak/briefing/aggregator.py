"""
Briefing Data Aggregator

Builds a point-in-time Snapshot of a user's "today" from independent data
providers. Providers run concurrently, each with its own timeout; a provider
that fails or times out degrades its section to an empty value and never
aborts the snapshot.
"""

import logging
import math
import time
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeout
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence

from flask import current_app, has_app_context

from daybreak.lib.metrics import log_metrics
from daybreak.lib.time import as_aware_utc
from daybreak.briefing.errors import ProviderUnavailable
from daybreak.briefing.preferences import BriefingProfile, load_profile
from daybreak.briefing.providers import DataProvider, DayWindow, default_providers
from daybreak.briefing.snapshot import (
    CalendarEvent, EmailSignals, NextEvent, Snapshot, SnapshotUser, TaskItem
)
from daybreak.briefing.timezone_utils import local_day_bounds, to_local

logger = logging.getLogger(__name__)

DEFAULT_PROVIDER_TIMEOUT = 10.0
HIGH_PRIORITY_LIMIT = 5


def call_with_app_context(app, func, *args):
    """Run func inside its own application context (its own DB session) when an app is given."""
    if app is None:
        return func(*args)
    with app.app_context():
        return func(*args)


class BriefingAggregator:
    """
    Collects calendar, task, email and insight data for a single user.

    Pure read/transform: providers only query, the aggregator only composes.
    """

    def __init__(self, providers: Sequence[DataProvider], timeout: float = DEFAULT_PROVIDER_TIMEOUT):
        self.providers = list(providers)
        self.timeout = timeout

    @classmethod
    def from_config(cls, config) -> 'BriefingAggregator':
        return cls(
            providers=default_providers(config),
            timeout=config.get('BRIEFING_PROVIDER_TIMEOUT_SECONDS', DEFAULT_PROVIDER_TIMEOUT),
        )

    def aggregate(
        self,
        user_id: int,
        as_of: datetime,
        profile: Optional[BriefingProfile] = None
    ) -> Snapshot:
        """
        Build the Snapshot for user_id as of the given moment.

        Args:
            user_id: User to aggregate for
            as_of: Reference moment (naive values are UTC)
            profile: Pre-loaded profile; loaded from the database when omitted

        Returns:
            Snapshot (never raises for provider failures)
        """
        if profile is None:
            profile = load_profile(user_id)
            if profile is None:
                raise ValueError(f"User {user_id} not found")

        as_of = as_aware_utc(as_of)
        start, end = local_day_bounds(profile.timezone, as_of)
        window = DayWindow(
            timezone=profile.timezone,
            as_of=to_local(profile.timezone, as_of),
            start=start,
            end=end,
        )

        results, degraded = self._fetch_all(user_id, window)
        return self._compose(profile, window, results, degraded)

    def _fetch_all(self, user_id: int, window: DayWindow):
        """
        Query every provider concurrently and wait for all of them.

        Returns:
            (results keyed by provider name, names of degraded providers)
        """
        if not self.providers:
            return {}, []

        app = current_app._get_current_object() if has_app_context() else None
        executor = ThreadPoolExecutor(
            max_workers=len(self.providers),
            thread_name_prefix='briefing-provider'
        )
        results: Dict[str, Any] = {}
        degraded: List[str] = []

        try:
            started = time.monotonic()
            futures = [
                (provider, executor.submit(call_with_app_context, app, provider.fetch, user_id, window))
                for provider in self.providers
            ]

            for provider, future in futures:
                timeout = provider.timeout or self.timeout
                remaining = max(0.0, started + timeout - time.monotonic())
                try:
                    results[provider.name] = future.result(timeout=remaining)
                except FuturesTimeout:
                    error = ProviderUnavailable(provider.name, f"timed out after {timeout}s")
                    self._degrade(provider, user_id, error, results, degraded)
                except Exception as e:
                    error = ProviderUnavailable(provider.name, str(e) or e.__class__.__name__)
                    self._degrade(provider, user_id, error, results, degraded)
        finally:
            # Stragglers are abandoned, not awaited
            executor.shutdown(wait=False, cancel_futures=True)

        return results, degraded

    def _degrade(self, provider, user_id, error, results, degraded):
        logger.warning(f"Degrading section '{provider.section}' for user {user_id}: {error}")
        log_metrics('provider_degraded', {
            'user_id': user_id,
            'provider': provider.name,
            'reason': error.reason,
        }, logger)
        results[provider.name] = provider.empty()
        degraded.append(provider.name)

    def _section(self, results: Dict[str, Any], section: str) -> List[Any]:
        return [
            results[provider.name]
            for provider in self.providers
            if provider.section == section and provider.name in results
        ]

    def _compose(
        self,
        profile: BriefingProfile,
        window: DayWindow,
        results: Dict[str, Any],
        degraded: List[str]
    ) -> Snapshot:
        events: List[CalendarEvent] = []
        for chunk in self._section(results, 'calendar'):
            events.extend(chunk or [])
        events.sort(key=lambda e: e.start)

        tasks: List[TaskItem] = []
        for chunk in self._section(results, 'tasks'):
            tasks.extend(chunk or [])
        tasks = [self._with_days_overdue(task, window.start) for task in tasks]

        email_results = self._section(results, 'email')
        email_signals = email_results[0] if email_results else EmailSignals()

        insights: List[str] = []
        for chunk in self._section(results, 'insights'):
            insights.extend(chunk or [])

        completed = sum(int(count or 0) for count in self._section(results, 'completed'))

        due_today = sorted(
            (t for t in tasks if t.due is not None and window.start <= t.due < window.end),
            key=lambda t: (t.priority_rank, t.due)
        )
        overdue = sorted(
            (t for t in tasks if t.due is not None and t.due < window.start),
            key=lambda t: (-t.days_overdue, t.priority_rank)
        )
        high_priority = [t for t in tasks if t.priority == 'high'][:HIGH_PRIORITY_LIMIT]

        return Snapshot(
            user=SnapshotUser(
                id=profile.user_id,
                first_name=profile.first_name,
                email=profile.email,
                timezone=profile.timezone,
            ),
            date=window.start.date(),
            as_of=window.as_of,
            calendar_events=tuple(events),
            task_items=tuple(tasks),
            email_signals=email_signals,
            insights=tuple(insights),
            next_event=self._next_event(events, window.as_of),
            due_today=tuple(due_today),
            overdue=tuple(overdue),
            high_priority=tuple(high_priority),
            completed_yesterday=completed,
            degraded_sections=tuple(degraded),
        )

    @staticmethod
    def _with_days_overdue(task: TaskItem, today_start: datetime) -> TaskItem:
        if task.due is None or task.due >= today_start:
            return task
        days = math.ceil((today_start - task.due) / timedelta(days=1))
        return replace(task, days_overdue=days)

    @staticmethod
    def _next_event(events: List[CalendarEvent], as_of: datetime) -> Optional[NextEvent]:
        """Earliest event starting strictly after as_of."""
        upcoming = [e for e in events if e.start > as_of]
        if not upcoming:
            return None
        first = min(upcoming, key=lambda e: e.start)
        return NextEvent(
            title=first.title,
            time_label=first.time_label,
            minutes_until=round((first.start - as_of).total_seconds() / 60),
        )
