"""
Tests for the briefing aggregator: partial-failure isolation, timeouts and
derived snapshot fields.
"""

import time
from datetime import date, datetime

import pytest

from conftest import bogota, utc_naive
from daybreak.briefing.aggregator import BriefingAggregator
from daybreak.briefing.preferences import BriefingProfile
from daybreak.briefing.providers import DataProvider, default_providers
from daybreak.briefing.snapshot import CalendarEvent, EmailSignals, TaskItem

PROFILE = BriefingProfile(user_id=1, first_name='Ada', email='ada@example.com', timezone='America/Bogota')
AS_OF = bogota(2026, 10, 19, 8, 5)


class StaticProvider(DataProvider):
    def __init__(self, name, section, value):
        self.name = name
        self.section = section
        self.value = value

    def fetch(self, user_id, window):
        return self.value


class BrokenProvider(DataProvider):
    name = 'calendar'
    section = 'calendar'

    def fetch(self, user_id, window):
        raise ConnectionError("calendar API unreachable")


class SlowProvider(DataProvider):
    name = 'email'
    section = 'email'

    def fetch(self, user_id, window):
        time.sleep(1.0)
        return EmailSignals(unread_count=99)

    def empty(self):
        return EmailSignals()


def _task(task_id, priority='medium', due=None, title=None):
    return TaskItem(id=task_id, title=title or task_id, priority=priority, due=due)


class TestPartialFailure:

    def test_failing_provider_degrades_only_its_section(self):
        tasks = [_task('task:1', due=bogota(2026, 10, 19, 17))]
        aggregator = BriefingAggregator([
            BrokenProvider(),
            StaticProvider('tasks', 'tasks', tasks),
            StaticProvider('insights', 'insights', ['Deep work before noon']),
        ], timeout=1.0)

        snapshot = aggregator.aggregate(1, AS_OF, profile=PROFILE)

        assert snapshot.calendar_events == ()
        assert snapshot.degraded_sections == ('calendar',)
        assert [t.id for t in snapshot.due_today] == ['task:1']
        assert snapshot.insights == ('Deep work before noon',)

    def test_timed_out_provider_is_abandoned(self):
        aggregator = BriefingAggregator([
            SlowProvider(),
            StaticProvider('insights', 'insights', ['x']),
        ], timeout=0.1)

        started = time.monotonic()
        snapshot = aggregator.aggregate(1, AS_OF, profile=PROFILE)
        elapsed = time.monotonic() - started

        assert elapsed < 0.8
        assert snapshot.email_signals == EmailSignals()
        assert snapshot.degraded_sections == ('email',)
        assert snapshot.insights == ('x',)

    def test_all_providers_failing_still_yields_snapshot(self):
        snapshot = BriefingAggregator([BrokenProvider()], timeout=1.0).aggregate(1, AS_OF, profile=PROFILE)
        assert snapshot.user.first_name == 'Ada'
        assert snapshot.next_event is None
        assert snapshot.date == date(2026, 10, 19)


class TestDerivedFields:

    def test_days_overdue_rounds_up_partial_days(self):
        overdue = _task('task:late', due=bogota(2026, 10, 17, 12))  # 1.5 days before today starts
        snapshot = BriefingAggregator(
            [StaticProvider('tasks', 'tasks', [overdue])]
        ).aggregate(1, AS_OF, profile=PROFILE)

        assert len(snapshot.overdue) == 1
        assert snapshot.overdue[0].days_overdue == 2
        assert snapshot.due_today == ()

    def test_due_today_sorted_by_priority(self):
        tasks = [
            _task('task:low', 'low', bogota(2026, 10, 19, 9)),
            _task('task:high', 'high', bogota(2026, 10, 19, 18)),
            _task('task:medium', 'medium', bogota(2026, 10, 19, 10)),
            _task('task:tomorrow', 'high', bogota(2026, 10, 20, 9)),
        ]
        snapshot = BriefingAggregator(
            [StaticProvider('tasks', 'tasks', tasks)]
        ).aggregate(1, AS_OF, profile=PROFILE)

        assert [t.id for t in snapshot.due_today] == ['task:high', 'task:medium', 'task:low']
        assert [t.id for t in snapshot.high_priority] == ['task:high', 'task:tomorrow']

    def test_next_event_is_first_event_after_as_of(self):
        events = [
            CalendarEvent('Standup', bogota(2026, 10, 19, 8, 0), 15),
            CalendarEvent('Design review', bogota(2026, 10, 19, 10, 0), 60, attendee_count=5),
            CalendarEvent('1:1', bogota(2026, 10, 19, 9, 0), 30),
        ]
        snapshot = BriefingAggregator(
            [StaticProvider('calendar', 'calendar', events)]
        ).aggregate(1, AS_OF, profile=PROFILE)

        assert [e.title for e in snapshot.calendar_events] == ['Standup', '1:1', 'Design review']
        assert snapshot.next_event.title == '1:1'
        assert snapshot.next_event.minutes_until == 55
        assert snapshot.next_event.time_label == '9:00 AM'
        assert snapshot.calendar_events[2].is_important

    def test_unknown_user_raises(self, db):
        with pytest.raises(ValueError):
            BriefingAggregator([]).aggregate(404, AS_OF)


class TestDefaultProviders:
    """Full aggregation over the database-backed providers."""

    def test_snapshot_from_database(self, app, db, make_user):
        from daybreak.models import CalendarEvent as EventRow, Task, ExternalTask, Email, Insight

        user = make_user(full_name='Grace Hopper')
        day = (2026, 10, 19)
        db.session.add_all([
            EventRow(user_id=user.id, title='Planning', start_time=utc_naive(bogota(*day, 10)),
                     end_time=utc_naive(bogota(*day, 10, 45)), attendees=['a', 'b', 'c']),
            EventRow(user_id=user.id, title=None, start_time=utc_naive(bogota(*day, 14))),
            EventRow(user_id=user.id, title='Tomorrow', start_time=utc_naive(bogota(2026, 10, 20, 9))),
            Task(user_id=user.id, title='Ship release notes', priority='high',
                 due_date=utc_naive(bogota(*day, 17))),
            Task(user_id=user.id, title='Expense report', due_date=utc_naive(bogota(2026, 10, 16, 12))),
            Task(user_id=user.id, title='Already done', status='completed',
                 due_date=utc_naive(bogota(*day, 9)), completed_at=utc_naive(bogota(2026, 10, 18, 15))),
            ExternalTask(user_id=user.id, provider='linear', external_id='abc', identifier='ENG-42',
                         title='Fix login bug', priority=1, status='in_progress', state_name='In Progress',
                         due_date=utc_naive(bogota(*day, 12))),
            Email(user_id=user.id, subject='Contract', from_email='legal@example.com',
                  snippet='x' * 300, is_important=True),
            Email(user_id=user.id, subject='Newsletter', from_email='news@example.com'),
            Email(user_id=user.id, subject='Old', from_email='a@example.com', is_read=True),
            Insight(user_id=user.id, title='Busy afternoon', description='Block focus time'),
            Insight(user_id=user.id, title='Dismissed', dismissed=True),
        ])
        db.session.commit()

        aggregator = BriefingAggregator(default_providers(app.config), timeout=5.0)
        snapshot = aggregator.aggregate(user.id, datetime(2026, 10, 19, 13, 5))

        assert snapshot.user.first_name == 'Grace'
        assert [e.title for e in snapshot.calendar_events] == ['Planning', 'Untitled Event']
        assert snapshot.calendar_events[0].duration_label == '45m'
        assert snapshot.calendar_events[0].is_important
        assert snapshot.calendar_events[1].duration_minutes == 60
        assert snapshot.next_event.title == 'Planning'

        # Equal priority, so earlier due time first
        assert [t.display_title for t in snapshot.due_today] == ['ENG-42: Fix login bug', 'Ship release notes']
        assert [t.title for t in snapshot.overdue] == ['Expense report']
        assert snapshot.overdue[0].days_overdue == 3
        assert snapshot.completed_yesterday == 1

        assert snapshot.email_signals.unread_count == 2
        assert snapshot.email_signals.needs_response == 1
        assert len(snapshot.email_signals.important_unread[0].snippet) == 100
        assert snapshot.insights == ('Busy afternoon: Block focus time',)
        assert snapshot.degraded_sections == ()

    def test_completed_tasks_excluded(self, app, db, make_user):
        from daybreak.models import Task

        user = make_user()
        db.session.add(Task(user_id=user.id, title='Done', status='completed',
                            due_date=utc_naive(bogota(2026, 10, 17))))
        db.session.commit()

        snapshot = BriefingAggregator(default_providers(app.config)).aggregate(
            user.id, datetime(2026, 10, 19, 13, 5)
        )
        assert snapshot.overdue == ()
        assert snapshot.due_today == ()
