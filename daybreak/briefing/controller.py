"""
Briefing Scheduling Controller

Decides who is due for a briefing and runs the per-user pipeline:

    resolve channel -> claim (user, day) -> aggregate -> generate
    -> format -> send -> record -> release claim

Every user is independent. A failure in one pipeline becomes a failed
DeliveryRecord and never aborts the tick.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Tuple

from flask import current_app

from daybreak import db
from daybreak.lib.metrics import log_metrics
from daybreak.lib.time import as_aware_utc, utcnow
from daybreak.briefing.aggregator import BriefingAggregator, call_with_app_context
from daybreak.briefing.channels import get_channel
from daybreak.briefing.errors import LedgerWriteConflict, NoChannelConfigured
from daybreak.briefing.ledger import claim_delivery, has_delivered, record_attempt, release_claim
from daybreak.briefing.narrative import NarrativeGenerator
from daybreak.briefing.preferences import BriefingProfile, load_enabled_profiles, load_profile
from daybreak.briefing.timezone_utils import delivery_window_day, local_date

logger = logging.getLogger(__name__)

STATUS_DELIVERED = 'delivered'
STATUS_FAILED = 'failed'
STATUS_SKIPPED = 'skipped'


@dataclass(frozen=True)
class DeliveryResult:
    user_id: int
    channel: Optional[str]
    status: str
    calendar_day: Optional[date] = None
    error: Optional[str] = None
    narrative_source: Optional[str] = None

    @property
    def delivered(self) -> bool:
        return self.status == STATUS_DELIVERED

    def to_dict(self) -> Dict[str, Any]:
        return {
            'user_id': self.user_id,
            'channel': self.channel,
            'status': self.status,
            'calendar_day': self.calendar_day.isoformat() if self.calendar_day else None,
            'error': self.error,
            'narrative_source': self.narrative_source,
        }


class BriefingController:
    """
    Runs the briefing pipeline for due users.

    Args:
        aggregator: Builds snapshots
        generator: Produces narratives
        config: Mapping with the BRIEFING_* settings and channel credentials
        channel_factory: (channel name, config) -> ChannelAdapter

    Raises:
        ValueError: if the delivery window is shorter than the tick interval,
            which would let a user fall between two ticks
    """

    def __init__(
        self,
        aggregator: BriefingAggregator,
        generator: NarrativeGenerator,
        config=None,
        channel_factory: Callable = get_channel
    ):
        self.aggregator = aggregator
        self.generator = generator
        self.config = config or {}
        self.channel_factory = channel_factory

        window_minutes = self.config.get('BRIEFING_WINDOW_MINUTES', 15)
        tick_minutes = self.config.get('BRIEFING_TICK_INTERVAL_MINUTES', 5)
        if window_minutes < tick_minutes:
            raise ValueError(
                f"BRIEFING_WINDOW_MINUTES ({window_minutes}) must be at least "
                f"BRIEFING_TICK_INTERVAL_MINUTES ({tick_minutes})"
            )

        self.window = timedelta(minutes=window_minutes)
        self.max_workers = max(1, int(self.config.get('BRIEFING_MAX_WORKERS', 4)))
        self.claim_ttl = self.config.get('BRIEFING_CLAIM_TTL_SECONDS')

    @classmethod
    def from_config(cls, config) -> 'BriefingController':
        return cls(
            aggregator=BriefingAggregator.from_config(config),
            generator=NarrativeGenerator.from_config(config),
            config=config,
        )

    # -------------------------------------------------------------------------
    # Scheduling
    # -------------------------------------------------------------------------

    def due_day(self, profile: BriefingProfile, now: datetime) -> Optional[date]:
        """Local calendar day the user is due for at `now`, or None."""
        try:
            return delivery_window_day(profile.timezone, profile.delivery_time, now, self.window)
        except ValueError as e:
            logger.warning(f"Skipping user {profile.user_id}: {e}")
            return None

    def tick(self, now: Optional[datetime] = None) -> Dict[str, int]:
        """
        Deliver briefings to every user whose window contains `now`.

        Safe to call repeatedly and concurrently: the ledger and claims make
        sure each user gets at most one briefing per local day.

        Returns:
            {'processed': n, 'delivered': n, 'failed': n}
        """
        now = as_aware_utc(now or utcnow())
        profiles = load_enabled_profiles()

        due: List[Tuple[BriefingProfile, date]] = []
        for profile in profiles:
            day = self.due_day(profile, now)
            if day is None:
                continue
            if has_delivered(profile.user_id, day):
                logger.debug(f"User {profile.user_id} already has a briefing for {day}")
                continue
            due.append((profile, day))

        results = self._run_pipelines(due, now)

        summary = {
            'processed': len(results),
            'delivered': sum(1 for r in results if r.status == STATUS_DELIVERED),
            'failed': sum(1 for r in results if r.status == STATUS_FAILED),
        }
        log_metrics('tick_complete', {
            'enabled_users': len(profiles),
            'due_users': len(due),
            'skipped': sum(1 for r in results if r.status == STATUS_SKIPPED),
            **summary,
        }, logger)
        if results:
            logger.info(
                f"Briefing tick at {now.isoformat()}: {summary['delivered']} delivered, "
                f"{summary['failed']} failed of {summary['processed']}"
            )
        return summary

    def _run_pipelines(self, due: List[Tuple[BriefingProfile, date]], now: datetime) -> List[DeliveryResult]:
        """Run due pipelines on a bounded pool, one app context (and DB session) per worker call."""
        if not due:
            return []

        app = current_app._get_current_object()
        results = []
        with ThreadPoolExecutor(
            max_workers=min(self.max_workers, len(due)),
            thread_name_prefix='briefing-user'
        ) as executor:
            futures = {
                executor.submit(call_with_app_context, app, self._run_pipeline, profile, day, now): profile
                for profile, day in due
            }
            for future in as_completed(futures):
                profile = futures[future]
                try:
                    results.append(future.result())
                except Exception as e:
                    logger.error(f"Briefing pipeline for user {profile.user_id} crashed: {e}", exc_info=True)
                    results.append(DeliveryResult(
                        user_id=profile.user_id,
                        channel=profile.channel,
                        status=STATUS_FAILED,
                        error=str(e),
                    ))
        return results

    # -------------------------------------------------------------------------
    # On demand
    # -------------------------------------------------------------------------

    def run_briefing_for_user(self, user_id: int, now: Optional[datetime] = None) -> DeliveryResult:
        """
        Run the pipeline for one user right now, ignoring the delivery window.

        Still honours the ledger: a user who already received today's
        briefing gets a 'skipped' result.

        Raises:
            ValueError: if the user does not exist
        """
        now = as_aware_utc(now or utcnow())
        profile = load_profile(user_id)
        if profile is None:
            raise ValueError(f"User {user_id} not found")

        day = local_date(profile.timezone, now)
        if has_delivered(user_id, day):
            return self._skipped(profile, day, 'already delivered')
        return self._run_pipeline(profile, day, now)

    # -------------------------------------------------------------------------
    # Pipeline
    # -------------------------------------------------------------------------

    def _run_pipeline(self, profile: BriefingProfile, day: date, now: datetime) -> DeliveryResult:
        try:
            adapter = self.channel_factory(profile.channel, self.config)
            address = adapter.resolve_address(profile)
        except NoChannelConfigured as e:
            return self._failed(profile, day, str(e))

        token = claim_delivery(profile.user_id, day, now=now, ttl_seconds=self.claim_ttl)
        if token is None:
            return self._skipped(profile, day, 'claimed by another run')

        narrative_source = None
        try:
            # A run that finished between our ledger check and the claim
            if has_delivered(profile.user_id, day):
                return self._skipped(profile, day, 'already delivered')

            snapshot = self.aggregator.aggregate(profile.user_id, now, profile=profile)
            narrative = self.generator.generate(snapshot, profile.style)
            narrative_source = narrative.source

            payload = adapter.format(snapshot, narrative.content)
            sent = adapter.deliver(address, payload)
            if not sent.delivered:
                return self._failed(profile, day, sent.error or 'send failed', narrative_source)

            try:
                record_attempt(
                    profile.user_id, day, profile.channel,
                    delivered=True,
                    narrative_source=narrative_source,
                    content={
                        'narrative': narrative.content.to_dict(),
                        'snapshot': snapshot.to_dict(event_cap=adapter.event_cap, task_cap=adapter.task_cap),
                        'external_id': sent.external_id,
                    },
                    delivered_at=now,
                )
            except LedgerWriteConflict as e:
                logger.warning(str(e))
                return self._skipped(profile, day, 'already delivered')

            log_metrics('briefing_delivered', {
                'user_id': profile.user_id,
                'channel': profile.channel,
                'calendar_day': day.isoformat(),
                'narrative_source': narrative_source,
                'degraded_sections': list(snapshot.degraded_sections),
            }, logger)
            return DeliveryResult(
                user_id=profile.user_id,
                channel=profile.channel,
                status=STATUS_DELIVERED,
                calendar_day=day,
                narrative_source=narrative_source,
            )

        except Exception as e:
            db.session.rollback()
            logger.error(f"Briefing pipeline failed for user {profile.user_id}: {e}", exc_info=True)
            return self._failed(profile, day, f"{e.__class__.__name__}: {e}", narrative_source)

        finally:
            release_claim(token)

    def _failed(
        self,
        profile: BriefingProfile,
        day: date,
        reason: str,
        narrative_source: Optional[str] = None
    ) -> DeliveryResult:
        try:
            record_attempt(
                profile.user_id, day, profile.channel,
                delivered=False,
                narrative_source=narrative_source,
                failure_reason=reason,
            )
        except Exception as e:
            logger.error(f"Could not record failed briefing for user {profile.user_id}: {e}", exc_info=True)

        log_metrics('briefing_failed', {
            'user_id': profile.user_id,
            'channel': profile.channel,
            'calendar_day': day.isoformat(),
            'reason': reason,
        }, logger)
        return DeliveryResult(
            user_id=profile.user_id,
            channel=profile.channel,
            status=STATUS_FAILED,
            calendar_day=day,
            error=reason,
            narrative_source=narrative_source,
        )

    def _skipped(self, profile: BriefingProfile, day: date, reason: str) -> DeliveryResult:
        log_metrics('briefing_skipped', {
            'user_id': profile.user_id,
            'calendar_day': day.isoformat(),
            'reason': reason,
        }, logger)
        return DeliveryResult(
            user_id=profile.user_id,
            channel=profile.channel,
            status=STATUS_SKIPPED,
            calendar_day=day,
            error=reason,
        )


def get_controller() -> BriefingController:
    """Controller for the current app, built once and cached on the app."""
    controller = current_app.extensions.get('briefing_controller')
    if controller is None:
        controller = BriefingController.from_config(current_app.config)
        current_app.extensions['briefing_controller'] = controller
    return controller


def tick(now: Optional[datetime] = None) -> Dict[str, int]:
    return get_controller().tick(now)


def run_briefing_for_user(user_id: int, now: Optional[datetime] = None) -> DeliveryResult:
    return get_controller().run_briefing_for_user(user_id, now)
