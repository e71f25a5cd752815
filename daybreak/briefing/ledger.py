"""
Delivery Ledger

Append-only record of briefing delivery attempts, plus the short-lived
claims that keep two pipelines from sending the same (user, day) at once.

The database enforces both guarantees: a partial unique index allows one
delivered record per (user, calendar day), and a unique constraint allows
one live claim.
"""

import uuid
import logging
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from daybreak import db
from daybreak.models import DeliveryRecord, DeliveryClaim
from daybreak.lib.time import to_naive_utc, utcnow_naive
from daybreak.briefing.errors import LedgerWriteConflict

logger = logging.getLogger(__name__)

DEFAULT_CLAIM_TTL_SECONDS = 600
DEFAULT_HISTORY_LIMIT = 30


def has_delivered(user_id: int, calendar_day: date) -> bool:
    """True if a successful delivery is recorded for the user on that local day."""
    return db.session.query(
        DeliveryRecord.query.filter_by(
            user_id=user_id,
            calendar_day=calendar_day,
            delivered=True
        ).exists()
    ).scalar()


def record_attempt(
    user_id: int,
    calendar_day: date,
    channel: str,
    delivered: bool,
    narrative_source: Optional[str] = None,
    failure_reason: Optional[str] = None,
    content: Optional[Dict[str, Any]] = None,
    delivered_at: Optional[datetime] = None
) -> DeliveryRecord:
    """
    Append one delivery attempt to the ledger.

    Delivered records carry what was sent (`content`) and when; delivered_at
    defaults to now.

    Raises:
        LedgerWriteConflict: a delivered record already exists for (user, day)
    """
    if delivered:
        delivered_at = to_naive_utc(delivered_at) if delivered_at else utcnow_naive()
    else:
        delivered_at = None

    record = DeliveryRecord(
        user_id=user_id,
        calendar_day=calendar_day,
        channel=channel,
        delivered=delivered,
        narrative_source=narrative_source,
        failure_reason=failure_reason,
        content=content,
        delivered_at=delivered_at,
    )
    db.session.add(record)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        if delivered:
            raise LedgerWriteConflict(user_id, calendar_day)
        raise

    logger.debug(
        f"Recorded {'delivered' if delivered else 'failed'} briefing for user {user_id} "
        f"on {calendar_day} via {channel}"
    )
    return record


def claim_delivery(
    user_id: int,
    calendar_day: date,
    now: Optional[datetime] = None,
    ttl_seconds: Optional[int] = None
) -> Optional[str]:
    """
    Atomically claim (user, day) for sending.

    A claim older than ttl_seconds belongs to a pipeline that died mid-send
    and is taken over using UPDATE with a WHERE clause on claimed_at, so only
    one contender can win it.

    Returns:
        Claim token if this caller now holds the claim, None if another
        pipeline holds a live claim
    """
    now = to_naive_utc(now) if now else utcnow_naive()
    if ttl_seconds is None:
        ttl_seconds = current_app.config.get('BRIEFING_CLAIM_TTL_SECONDS', DEFAULT_CLAIM_TTL_SECONDS)
    token = uuid.uuid4().hex

    db.session.add(DeliveryClaim(
        user_id=user_id,
        calendar_day=calendar_day,
        claim_token=token,
        claimed_at=now,
    ))
    try:
        db.session.commit()
        return token
    except IntegrityError:
        db.session.rollback()

    result = db.session.execute(
        update(DeliveryClaim)
        .where(DeliveryClaim.user_id == user_id)
        .where(DeliveryClaim.calendar_day == calendar_day)
        .where(DeliveryClaim.claimed_at < now - timedelta(seconds=ttl_seconds))
        .values(claim_token=token, claimed_at=now)
    )
    db.session.commit()

    if result.rowcount == 0:
        logger.info(f"Briefing for user {user_id} on {calendar_day} is already claimed by another run")
        return None

    logger.warning(f"Took over stale delivery claim for user {user_id} on {calendar_day}")
    return token


def release_claim(token: str) -> None:
    """Drop a claim once its pipeline has finished, successfully or not."""
    try:
        DeliveryClaim.query.filter_by(claim_token=token).delete()
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        # The claim expires on its own after the TTL
        logger.error(f"Failed to release delivery claim {token}: {e}")


def get_delivery_history(user_id: int, limit: int = DEFAULT_HISTORY_LIMIT) -> List[DeliveryRecord]:
    """Delivery attempts for a user, newest first."""
    return DeliveryRecord.query.filter_by(user_id=user_id).order_by(
        DeliveryRecord.created_at.desc(),
        DeliveryRecord.id.desc()
    ).limit(limit).all()
