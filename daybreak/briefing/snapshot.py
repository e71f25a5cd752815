"""
Snapshot types

Immutable, point-in-time view of a user's day. Built once per pipeline run
by the aggregator and discarded afterwards. Nothing here touches the
database; providers convert ORM rows into these types inside their own
session.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional, Tuple


PRIORITY_RANK = {'high': 0, 'medium': 1, 'low': 2}

# Events with more than this many attendees are flagged important
IMPORTANT_ATTENDEE_THRESHOLD = 2


@dataclass(frozen=True)
class SnapshotUser:
    id: int
    first_name: str
    email: str
    timezone: str


@dataclass(frozen=True)
class CalendarEvent:
    title: str
    start: datetime  # aware, user's timezone
    duration_minutes: int
    attendee_count: int = 0

    @property
    def is_important(self) -> bool:
        return self.attendee_count > IMPORTANT_ATTENDEE_THRESHOLD

    @property
    def time_label(self) -> str:
        return format_time_label(self.start)

    @property
    def duration_label(self) -> str:
        if self.duration_minutes >= 60:
            return f"{round(self.duration_minutes / 60)}h"
        return f"{self.duration_minutes}m"


@dataclass(frozen=True)
class NextEvent:
    title: str
    time_label: str
    minutes_until: int


@dataclass(frozen=True)
class TaskItem:
    id: str
    title: str
    priority: str = 'medium'
    due: Optional[datetime] = None  # aware
    source: str = 'internal'
    status: str = 'open'
    identifier: Optional[str] = None
    days_overdue: int = 0

    @property
    def priority_rank(self) -> int:
        return PRIORITY_RANK.get(self.priority, PRIORITY_RANK['medium'])

    @property
    def display_title(self) -> str:
        if self.identifier:
            return f"{self.identifier}: {self.title}"
        return self.title


@dataclass(frozen=True)
class ImportantEmail:
    subject: str
    sender: str
    snippet: str = ''


@dataclass(frozen=True)
class EmailSignals:
    unread_count: int = 0
    important_unread: Tuple[ImportantEmail, ...] = ()

    @property
    def needs_response(self) -> int:
        return len(self.important_unread)


@dataclass(frozen=True)
class Snapshot:
    """Aggregated view of one user's day."""
    user: SnapshotUser
    date: date
    as_of: datetime
    calendar_events: Tuple[CalendarEvent, ...] = ()
    task_items: Tuple[TaskItem, ...] = ()
    email_signals: EmailSignals = field(default_factory=EmailSignals)
    insights: Tuple[str, ...] = ()
    next_event: Optional[NextEvent] = None
    due_today: Tuple[TaskItem, ...] = ()
    overdue: Tuple[TaskItem, ...] = ()
    high_priority: Tuple[TaskItem, ...] = ()
    completed_yesterday: int = 0
    degraded_sections: Tuple[str, ...] = ()

    @property
    def total_events(self) -> int:
        return len(self.calendar_events)

    @property
    def weekday(self) -> str:
        return self.date.strftime('%A')

    @property
    def date_label(self) -> str:
        return f"{self.date.strftime('%B')} {self.date.day}, {self.date.year}"

    def to_dict(self, event_cap: Optional[int] = None, task_cap: Optional[int] = None) -> dict:
        """
        Compact JSON-safe summary, stored with notifications and delivery records.

        Event and task lists are cut to the caps when given; the counts
        always describe the whole day.
        """
        return {
            'date': self.date.isoformat(),
            'total_events': self.total_events,
            'events': [
                {'title': e.title, 'time': e.time_label, 'duration': e.duration_label, 'important': e.is_important}
                for e in self.calendar_events[:event_cap]
            ],
            'next_event': {
                'title': self.next_event.title,
                'time': self.next_event.time_label,
                'minutes_until': self.next_event.minutes_until,
            } if self.next_event else None,
            'total_due_today': len(self.due_today),
            'total_overdue': len(self.overdue),
            'due_today': [{'id': t.id, 'title': t.display_title, 'priority': t.priority} for t in self.due_today[:task_cap]],
            'overdue': [{'id': t.id, 'title': t.display_title, 'days_overdue': t.days_overdue} for t in self.overdue[:task_cap]],
            'unread_emails': self.email_signals.unread_count,
            'needs_response': self.email_signals.needs_response,
            'completed_yesterday': self.completed_yesterday,
            'insights': list(self.insights),
            'degraded_sections': list(self.degraded_sections),
        }


def format_time_label(moment: datetime) -> str:
    """'09:30 AM' -> '9:30 AM'"""
    return moment.strftime('%I:%M %p').lstrip('0')
