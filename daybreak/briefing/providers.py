"""
Briefing data providers

One provider per independent data source. Each provider is a read-only,
time-ranged query for a single user that converts rows into snapshot types.
The aggregator runs providers concurrently and owns timeouts and error
handling; providers simply raise when something goes wrong.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, List

from daybreak import db
from daybreak.models import (
    CalendarEvent as CalendarEventRow, Task, ExternalTask, Email, Insight
)
from daybreak.lib.time import as_aware_utc, to_naive_utc
from daybreak.briefing.timezone_utils import get_timezone
from daybreak.briefing.snapshot import (
    CalendarEvent, TaskItem, EmailSignals, ImportantEmail
)

logger = logging.getLogger(__name__)

DEFAULT_EVENT_MINUTES = 60
SNIPPET_MAX_LENGTH = 100
HIGH_PRIORITY_LIMIT = 5
EXTERNAL_TASK_LIMIT = 10
IMPORTANT_EMAIL_LIMIT = 3
INSIGHT_LIMIT = 5

# External providers rank 1 as most urgent
_EXTERNAL_PRIORITY = {1: 'high', 2: 'high', 3: 'medium', 4: 'low'}


@dataclass(frozen=True)
class DayWindow:
    """The user's local "today", in both local and naive-UTC form."""
    timezone: str
    as_of: datetime  # aware
    start: datetime  # aware, local midnight
    end: datetime  # aware, next local midnight

    @property
    def tz(self):
        return get_timezone(self.timezone)

    @property
    def start_utc(self) -> datetime:
        return to_naive_utc(self.start)

    @property
    def end_utc(self) -> datetime:
        return to_naive_utc(self.end)


class DataProvider:
    """
    Base class for snapshot data sources.

    Attributes:
        name: Unique provider name (used in logs and degraded_sections)
        section: Snapshot section the result feeds: calendar, tasks, email,
            insights or completed
        timeout: Optional per-provider timeout override in seconds
    """

    name = 'base'
    section = None
    timeout = None

    def fetch(self, user_id: int, window: DayWindow) -> Any:
        raise NotImplementedError

    def empty(self) -> Any:
        """Value used when the provider fails or times out."""
        return []


class CalendarProvider(DataProvider):
    name = 'calendar'
    section = 'calendar'

    def fetch(self, user_id: int, window: DayWindow) -> List[CalendarEvent]:
        rows = CalendarEventRow.query.filter(
            CalendarEventRow.user_id == user_id,
            CalendarEventRow.start_time >= window.start_utc,
            CalendarEventRow.start_time < window.end_utc
        ).order_by(CalendarEventRow.start_time.asc()).all()

        events = []
        for row in rows:
            start = as_aware_utc(row.start_time).astimezone(window.tz)
            if row.end_time:
                duration = round((row.end_time - row.start_time).total_seconds() / 60)
            else:
                duration = DEFAULT_EVENT_MINUTES
            events.append(CalendarEvent(
                title=row.title or 'Untitled Event',
                start=start,
                duration_minutes=max(duration, 0),
                attendee_count=len(row.attendees or []),
            ))
        return events


def _localize_due(due, window: DayWindow):
    if due is None:
        return None
    return as_aware_utc(due).astimezone(window.tz)


class InternalTaskProvider(DataProvider):
    """Open tasks due before the end of today, plus open high-priority tasks."""

    name = 'tasks'
    section = 'tasks'

    def fetch(self, user_id: int, window: DayWindow) -> List[TaskItem]:
        due_rows = Task.query.filter(
            Task.user_id == user_id,
            Task.status != 'completed',
            Task.due_date.isnot(None),
            Task.due_date < window.end_utc
        ).order_by(Task.due_date.asc()).all()

        high_rows = Task.query.filter(
            Task.user_id == user_id,
            Task.status != 'completed',
            Task.priority == 'high'
        ).order_by(Task.due_date.asc().nullslast(), Task.id.asc()).limit(HIGH_PRIORITY_LIMIT).all()

        items = []
        seen = set()
        for row in list(due_rows) + list(high_rows):
            if row.id in seen:
                continue
            seen.add(row.id)
            items.append(TaskItem(
                id=f"task:{row.id}",
                title=row.title,
                priority=row.priority if row.priority in ('low', 'medium', 'high') else 'medium',
                due=_localize_due(row.due_date, window),
                source='internal',
                status=row.status,
            ))
        return items


class CompletedTasksProvider(DataProvider):
    """Number of tasks completed during the user's local yesterday."""

    name = 'completed'
    section = 'completed'

    def fetch(self, user_id: int, window: DayWindow) -> int:
        yesterday_start = window.start_utc - timedelta(days=1)
        return Task.query.filter(
            Task.user_id == user_id,
            Task.status == 'completed',
            Task.completed_at >= yesterday_start,
            Task.completed_at < window.start_utc
        ).count()

    def empty(self) -> int:
        return 0


class ExternalTaskProvider(DataProvider):
    """Open tasks synced from one external provider (Todoist, Linear, ...)."""

    section = 'tasks'

    def __init__(self, provider_name: str):
        self.provider_name = provider_name
        self.name = f"external:{provider_name}"

    def fetch(self, user_id: int, window: DayWindow) -> List[TaskItem]:
        rows = ExternalTask.query.filter(
            ExternalTask.user_id == user_id,
            ExternalTask.provider == self.provider_name,
            ExternalTask.status.in_(['open', 'in_progress']),
            db.or_(ExternalTask.due_date.is_(None), ExternalTask.due_date < window.end_utc)
        ).order_by(
            ExternalTask.priority.asc().nullslast(), ExternalTask.id.asc()
        ).limit(EXTERNAL_TASK_LIMIT).all()

        return [
            TaskItem(
                id=f"{self.provider_name}:{row.external_id}",
                title=row.title,
                priority=_EXTERNAL_PRIORITY.get(row.priority, 'medium'),
                due=_localize_due(row.due_date, window),
                source=self.provider_name,
                status=row.state_name or row.status,
                identifier=row.identifier or None,
            )
            for row in rows
        ]


class EmailSignalProvider(DataProvider):
    name = 'email'
    section = 'email'

    def fetch(self, user_id: int, window: DayWindow) -> EmailSignals:
        unread = Email.query.filter(
            Email.user_id == user_id,
            Email.is_read.is_(False)
        ).count()

        important = Email.query.filter(
            Email.user_id == user_id,
            Email.is_read.is_(False),
            Email.is_important.is_(True)
        ).order_by(Email.received_at.desc()).limit(IMPORTANT_EMAIL_LIMIT).all()

        return EmailSignals(
            unread_count=unread,
            important_unread=tuple(
                ImportantEmail(
                    subject=row.subject or '(no subject)',
                    sender=row.from_email or 'unknown sender',
                    snippet=(row.snippet or '')[:SNIPPET_MAX_LENGTH],
                )
                for row in important
            ),
        )

    def empty(self) -> EmailSignals:
        return EmailSignals()


class InsightProvider(DataProvider):
    name = 'insights'
    section = 'insights'

    def fetch(self, user_id: int, window: DayWindow) -> List[str]:
        rows = Insight.query.filter(
            Insight.user_id == user_id,
            Insight.dismissed.is_(False)
        ).order_by(Insight.created_at.desc()).limit(INSIGHT_LIMIT).all()

        return [
            f"{row.title}: {row.description}" if row.description else row.title
            for row in rows
        ]


def default_providers(config) -> List[DataProvider]:
    """Calendar, internal tasks, each configured external task provider, email and insights."""
    providers = [
        CalendarProvider(),
        InternalTaskProvider(),
        CompletedTasksProvider(),
    ]
    for provider_name in config.get('BRIEFING_EXTERNAL_TASK_PROVIDERS') or []:
        providers.append(ExternalTaskProvider(provider_name))
    providers.extend([
        EmailSignalProvider(),
        InsightProvider(),
    ])
    return providers
