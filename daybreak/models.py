from daybreak import db
from daybreak.lib.time import utcnow_naive
from sqlalchemy import event
from sqlalchemy.orm import validates
import re


BRIEFING_CHANNELS = ('slack', 'telegram', 'whatsapp', 'email', 'in_app')
BRIEFING_STYLES = ('concise', 'detailed', 'bullets')
TASK_PRIORITIES = ('low', 'medium', 'high')

_DELIVERY_TIME_RE = re.compile(r'^([01]\d|2[0-3]):([0-5]\d)$')


class User(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    full_name = db.Column(db.String(200))
    email = db.Column(db.String(150), nullable=False, unique=True)
    created_at = db.Column(db.DateTime, default=utcnow_naive)

    delivery_preference = db.relationship(
        'DeliveryPreference', backref='user', uselist=False, cascade='all, delete-orphan'
    )
    notifications = db.relationship('Notification', backref='user', lazy='dynamic')

    @property
    def first_name(self):
        if self.full_name and self.full_name.strip():
            return self.full_name.strip().split()[0]
        return 'there'


class DeliveryPreference(db.Model):
    """
    Briefing delivery preferences for a user.

    Owned by the settings UI; the briefing pipeline only reads it.
    """
    __tablename__ = 'delivery_preference'
    __table_args__ = (
        db.Index('idx_delivery_pref_enabled', 'enabled'),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id', ondelete='CASCADE'), nullable=False, unique=True)
    channel = db.Column(db.String(20), nullable=False, default='in_app')
    address = db.Column(db.String(255))  # Slack channel id, Telegram chat id, phone number or email
    delivery_time = db.Column(db.String(5), nullable=False, default='08:00')  # HH:MM local time
    timezone = db.Column(db.String(64), nullable=False, default='America/New_York')
    enabled = db.Column(db.Boolean, nullable=False, default=True)
    style = db.Column(db.String(20), nullable=False, default='concise')
    updated_at = db.Column(db.DateTime, default=utcnow_naive, onupdate=utcnow_naive)

    @validates('delivery_time')
    def validate_delivery_time(self, key, value):
        if not value or not _DELIVERY_TIME_RE.match(value):
            raise ValueError(f"delivery_time must be HH:MM, got {value!r}")
        return value

    @validates('style')
    def validate_style(self, key, value):
        if value not in BRIEFING_STYLES:
            raise ValueError(f"Unknown briefing style {value!r}")
        return value


class CalendarEvent(db.Model):
    __tablename__ = 'calendar_event'
    __table_args__ = (
        db.Index('idx_calendar_event_user_start', 'user_id', 'start_time'),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id', ondelete='CASCADE'), nullable=False)
    title = db.Column(db.String(500))
    start_time = db.Column(db.DateTime, nullable=False)  # naive UTC
    end_time = db.Column(db.DateTime)  # naive UTC
    attendees = db.Column(db.JSON, default=list)


class Task(db.Model):
    __tablename__ = 'task'
    __table_args__ = (
        db.Index('idx_task_user_status', 'user_id', 'status'),
        db.Index('idx_task_user_due', 'user_id', 'due_date'),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id', ondelete='CASCADE'), nullable=False)
    title = db.Column(db.String(500), nullable=False)
    priority = db.Column(db.String(10), default='medium')
    status = db.Column(db.String(20), nullable=False, default='open')  # open, in_progress, completed
    due_date = db.Column(db.DateTime)  # naive UTC
    completed_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=utcnow_naive)


class ExternalTask(db.Model):
    """Tasks synced from external providers (Todoist, Linear, ...)."""
    __tablename__ = 'external_task'
    __table_args__ = (
        db.Index('idx_external_task_user_provider', 'user_id', 'provider'),
        db.UniqueConstraint('provider', 'external_id', name='uq_external_task'),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id', ondelete='CASCADE'), nullable=False)
    provider = db.Column(db.String(50), nullable=False)
    external_id = db.Column(db.String(100), nullable=False)
    identifier = db.Column(db.String(50))  # e.g. Linear "ENG-123"
    title = db.Column(db.String(500), nullable=False)
    priority = db.Column(db.Integer)  # provider scale, 1 = most urgent
    status = db.Column(db.String(20), nullable=False, default='open')
    state_name = db.Column(db.String(100))
    due_date = db.Column(db.DateTime)  # naive UTC
    synced_at = db.Column(db.DateTime, default=utcnow_naive)


class Email(db.Model):
    __tablename__ = 'email'
    __table_args__ = (
        db.Index('idx_email_user_read', 'user_id', 'is_read'),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id', ondelete='CASCADE'), nullable=False)
    subject = db.Column(db.String(500))
    from_email = db.Column(db.String(255))
    snippet = db.Column(db.Text)
    is_read = db.Column(db.Boolean, nullable=False, default=False)
    is_important = db.Column(db.Boolean, nullable=False, default=False)
    received_at = db.Column(db.DateTime, default=utcnow_naive)


class Insight(db.Model):
    __tablename__ = 'insight'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id', ondelete='CASCADE'), nullable=False)
    type = db.Column(db.String(50))
    title = db.Column(db.String(300), nullable=False)
    description = db.Column(db.Text)
    dismissed = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, default=utcnow_naive)


class Notification(db.Model):
    """In-app notification store; the in_app channel delivers by inserting here."""
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id', ondelete='CASCADE'), nullable=False)
    type = db.Column(db.String(50), nullable=False)  # 'morning_briefing', ...
    title = db.Column(db.String(200), nullable=False)
    message = db.Column(db.Text, nullable=False)
    data = db.Column(db.JSON)
    is_read = db.Column(db.Boolean, default=False)
    created_at = db.Column(db.DateTime, default=utcnow_naive)


class DeliveryRecord(db.Model):
    """
    Append-only briefing delivery ledger.

    One row per delivery attempt. The partial unique index guarantees at most
    one successful delivery per (user, calendar day in the user's timezone).
    """
    __tablename__ = 'delivery_record'
    __table_args__ = (
        db.Index('idx_delivery_record_user_day', 'user_id', 'calendar_day'),
        db.Index(
            'uq_delivery_record_delivered',
            'user_id', 'calendar_day',
            unique=True,
            sqlite_where=db.text('delivered = 1'),
            postgresql_where=db.text('delivered'),
        ),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id', ondelete='CASCADE'), nullable=False)
    calendar_day = db.Column(db.Date, nullable=False)
    channel = db.Column(db.String(20), nullable=False)
    delivered = db.Column(db.Boolean, nullable=False)
    narrative_source = db.Column(db.String(20))  # generated, fallback
    failure_reason = db.Column(db.Text)
    content = db.Column(db.JSON)  # {'narrative', 'snapshot', 'external_id'} of what was sent
    delivered_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive)

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'calendar_day': self.calendar_day.isoformat(),
            'channel': self.channel,
            'delivered': self.delivered,
            'narrative_source': self.narrative_source,
            'failure_reason': self.failure_reason,
            'content': self.content,
            'delivered_at': self.delivered_at.isoformat() if self.delivered_at else None,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }


@event.listens_for(DeliveryRecord, 'before_update')
def _delivery_records_are_append_only(mapper, connection, target):
    raise ValueError("DeliveryRecord rows are append-only")


class DeliveryClaim(db.Model):
    """
    Short-lived lease held while a briefing for (user, day) is being sent.

    Taken before sending and deleted afterwards. A lease older than
    BRIEFING_CLAIM_TTL_SECONDS is considered abandoned and may be taken over.
    """
    __tablename__ = 'delivery_claim'
    __table_args__ = (
        db.UniqueConstraint('user_id', 'calendar_day', name='uq_delivery_claim_user_day'),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id', ondelete='CASCADE'), nullable=False)
    calendar_day = db.Column(db.Date, nullable=False)
    claim_token = db.Column(db.String(64), nullable=False)
    claimed_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive)
