"""
Pytest configuration and shared fixtures.
"""

import pytest
import os
import sys
import itertools
from datetime import date, datetime, timedelta

import pytz

# Add the project root to the path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

# Set DATABASE_URL before Config class is imported (it validates at class-definition time)
os.environ.setdefault('DATABASE_URL', 'sqlite:///:memory:')

BOGOTA = pytz.timezone('America/Bogota')  # UTC-5, no DST


@pytest.fixture
def app(tmp_path, monkeypatch):
    """Create application for testing."""
    from config import TestingConfig

    # A file-backed SQLite database so pipeline worker threads, each with
    # their own session, see the same data as the test.
    monkeypatch.setattr(
        TestingConfig, 'SQLALCHEMY_DATABASE_URI', f"sqlite:///{tmp_path / 'daybreak.db'}"
    )
    # No generative backend unless a test injects one
    monkeypatch.delenv('OPENAI_API_KEY', raising=False)
    monkeypatch.delenv('ANTHROPIC_API_KEY', raising=False)

    from daybreak import create_app
    app = create_app('testing')
    return app


@pytest.fixture
def app_context(app):
    """Application context for testing."""
    with app.app_context():
        yield


@pytest.fixture
def db(app, app_context):
    """Database for testing."""
    from daybreak import db as _db

    _db.create_all()
    yield _db
    _db.session.remove()
    _db.drop_all()


@pytest.fixture
def client(app, db):
    return app.test_client()


@pytest.fixture
def make_user(db):
    """Factory creating a user with (by default) a delivery preference."""
    from daybreak.models import User, DeliveryPreference

    counter = itertools.count(1)

    def _make_user(
        full_name='Ada Lovelace',
        channel='in_app',
        address=None,
        delivery_time='08:00',
        timezone='America/Bogota',
        enabled=True,
        style='concise',
        with_preference=True,
    ):
        user = User(full_name=full_name, email=f"user{next(counter)}@example.com")
        db.session.add(user)
        db.session.flush()
        if with_preference:
            db.session.add(DeliveryPreference(
                user_id=user.id,
                channel=channel,
                address=address,
                delivery_time=delivery_time,
                timezone=timezone,
                enabled=enabled,
                style=style,
            ))
        db.session.commit()
        return user

    return _make_user


def bogota(year, month, day, hour=0, minute=0):
    """Aware America/Bogota datetime."""
    return BOGOTA.localize(datetime(year, month, day, hour, minute))


def utc_naive(local_dt):
    """Aware local datetime -> naive UTC, the storage convention."""
    return local_dt.astimezone(pytz.UTC).replace(tzinfo=None)


@pytest.fixture
def make_snapshot():
    """Factory for in-memory snapshots on Monday 19 October 2026 in Bogota."""
    from daybreak.briefing.snapshot import (
        CalendarEvent, EmailSignals, NextEvent, Snapshot, SnapshotUser, TaskItem
    )

    def _make_snapshot(events=0, due_today=(), overdue=(), unread=0, insights=(), first_name='Ada'):
        start = bogota(2026, 10, 19, 9)
        calendar_events = tuple(
            CalendarEvent(
                title=f"Meeting {i + 1}",
                start=start + timedelta(minutes=30 * i),
                duration_minutes=30,
                attendee_count=3 if i == 0 else 1,
            )
            for i in range(events)
        )
        due_items = tuple(
            TaskItem(id=f"task:{i}", title=title, priority=priority, due=bogota(2026, 10, 19, 17))
            for i, (title, priority) in enumerate(due_today)
        )
        overdue_items = tuple(
            TaskItem(id=f"task:o{i}", title=title, priority='medium',
                     due=bogota(2026, 10, 19) - timedelta(days=days), days_overdue=days)
            for i, (title, days) in enumerate(overdue)
        )
        next_event = None
        if calendar_events:
            next_event = NextEvent(
                title=calendar_events[0].title,
                time_label=calendar_events[0].time_label,
                minutes_until=55,
            )
        return Snapshot(
            user=SnapshotUser(id=1, first_name=first_name, email='ada@example.com', timezone='America/Bogota'),
            date=date(2026, 10, 19),
            as_of=bogota(2026, 10, 19, 8, 5),
            calendar_events=calendar_events,
            task_items=due_items + overdue_items,
            email_signals=EmailSignals(unread_count=unread),
            insights=tuple(insights),
            next_event=next_event,
            due_today=due_items,
            overdue=overdue_items,
        )

    return _make_snapshot
