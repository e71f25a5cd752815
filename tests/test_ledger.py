"""
Tests for the delivery ledger and delivery claims.
"""

from datetime import date, datetime, timedelta

import pytest

from daybreak.briefing.errors import LedgerWriteConflict
from daybreak.briefing.ledger import (
    claim_delivery,
    get_delivery_history,
    has_delivered,
    record_attempt,
    release_claim,
)

DAY = date(2026, 10, 19)
NOW = datetime(2026, 10, 19, 13, 5)


class TestDeliveryRecords:

    def test_one_delivered_record_per_user_day(self, db, make_user):
        user = make_user()
        record_attempt(user.id, DAY, 'in_app', delivered=True, narrative_source='fallback')

        with pytest.raises(LedgerWriteConflict):
            record_attempt(user.id, DAY, 'in_app', delivered=True, narrative_source='generated')

        assert has_delivered(user.id, DAY)
        assert len(get_delivery_history(user.id)) == 1

    def test_failed_attempts_do_not_count(self, db, make_user):
        user = make_user()
        record_attempt(user.id, DAY, 'slack', delivered=False, failure_reason='channel_not_found')
        record_attempt(user.id, DAY, 'slack', delivered=False, failure_reason='channel_not_found')

        assert not has_delivered(user.id, DAY)

        record_attempt(user.id, DAY, 'slack', delivered=True)
        assert has_delivered(user.id, DAY)
        assert len(get_delivery_history(user.id)) == 3

    def test_delivered_is_scoped_to_user_and_day(self, db, make_user):
        ada, grace = make_user(), make_user(full_name='Grace Hopper')
        record_attempt(ada.id, DAY, 'in_app', delivered=True)

        assert not has_delivered(grace.id, DAY)
        assert not has_delivered(ada.id, DAY + timedelta(days=1))
        record_attempt(ada.id, DAY + timedelta(days=1), 'in_app', delivered=True)

    def test_records_are_append_only(self, db, make_user):
        user = make_user()
        record = record_attempt(user.id, DAY, 'in_app', delivered=False, failure_reason='boom')

        record.failure_reason = 'rewritten'
        with pytest.raises(ValueError):
            db.session.commit()
        db.session.rollback()

    def test_delivered_record_keeps_what_was_sent(self, db, make_user):
        user = make_user()
        content = {'narrative': {'greeting': 'Morning!'}, 'snapshot': {'events': []}, 'external_id': '7'}

        failed = record_attempt(user.id, DAY, 'in_app', delivered=False, failure_reason='boom')
        delivered = record_attempt(user.id, DAY, 'in_app', delivered=True, content=content, delivered_at=NOW)

        assert failed.delivered_at is None
        assert failed.content is None
        assert delivered.delivered_at == NOW
        data = get_delivery_history(user.id)[0].to_dict()
        assert data['content'] == content
        assert data['delivered_at'] == '2026-10-19T13:05:00'

    def test_history_is_newest_first_and_limited(self, db, make_user):
        user = make_user()
        for i in range(5):
            record_attempt(user.id, DAY + timedelta(days=i), 'in_app', delivered=True)

        history = get_delivery_history(user.id, limit=3)

        assert [r.calendar_day for r in history] == [DAY + timedelta(days=i) for i in (4, 3, 2)]
        assert history[0].to_dict()['calendar_day'] == '2026-10-23'


class TestClaims:

    def test_live_claim_blocks_second_claimant(self, db, make_user):
        user = make_user()
        token = claim_delivery(user.id, DAY, now=NOW, ttl_seconds=600)

        assert token
        assert claim_delivery(user.id, DAY, now=NOW + timedelta(seconds=30), ttl_seconds=600) is None

    def test_released_claim_can_be_taken_again(self, db, make_user):
        user = make_user()
        token = claim_delivery(user.id, DAY, now=NOW, ttl_seconds=600)
        release_claim(token)

        assert claim_delivery(user.id, DAY, now=NOW, ttl_seconds=600) not in (None, token)

    def test_stale_claim_is_taken_over_once(self, db, make_user):
        user = make_user()
        first = claim_delivery(user.id, DAY, now=NOW, ttl_seconds=600)

        later = NOW + timedelta(seconds=601)
        second = claim_delivery(user.id, DAY, now=later, ttl_seconds=600)

        assert second and second != first
        # The takeover refreshed claimed_at, so the claim is live again
        assert claim_delivery(user.id, DAY, now=later, ttl_seconds=600) is None

    def test_ttl_defaults_to_app_config(self, app, db, make_user):
        user = make_user()
        app.config['BRIEFING_CLAIM_TTL_SECONDS'] = 60
        claim_delivery(user.id, DAY, now=NOW)

        assert claim_delivery(user.id, DAY, now=NOW + timedelta(seconds=30)) is None
        assert claim_delivery(user.id, DAY, now=NOW + timedelta(seconds=61))

    def test_claims_are_per_day(self, db, make_user):
        user = make_user()
        assert claim_delivery(user.id, DAY, now=NOW, ttl_seconds=600)
        assert claim_delivery(user.id, DAY + timedelta(days=1), now=NOW, ttl_seconds=600)
