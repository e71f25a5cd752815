"""
Channel adapter base and registry.

A channel adapter pairs a pure formatter (snapshot + narrative -> payload)
with a sender (address + payload -> SendResult). Adapters register
themselves by name; the controller looks them up and never branches on
channel names.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Type

from daybreak.utils.text_processing import pluralize
from daybreak.briefing.errors import ChannelSendFailure, NoChannelConfigured
from daybreak.briefing.narrative import NarrativeContent
from daybreak.briefing.snapshot import Snapshot, TaskItem

logger = logging.getLogger(__name__)

DEFAULT_CHANNEL_TIMEOUT = 10.0

_REGISTRY: Dict[str, Type['ChannelAdapter']] = {}


@dataclass(frozen=True)
class ChannelPayload:
    text: str
    blocks: Optional[List[Dict[str, Any]]] = None
    subject: Optional[str] = None
    html: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class SendResult:
    delivered: bool
    error: Optional[str] = None
    external_id: Optional[str] = None


class ChannelAdapter:
    """
    Formatter and sender for one delivery channel.

    Attributes:
        name: Registry key, matches DeliveryPreference.channel
        event_cap: Maximum number of calendar events rendered
        task_cap: Maximum number of tasks rendered per task list
        max_length: Hard limit on the text body, or None
    """

    name = None
    event_cap = 5
    task_cap = 3
    max_length = None

    def __init__(self, config=None):
        self.config = config or {}
        self.timeout = self.config.get('BRIEFING_CHANNEL_TIMEOUT_SECONDS', DEFAULT_CHANNEL_TIMEOUT)

    def default_address(self, profile) -> Optional[str]:
        """Address used when the preference has none. Most channels have no default."""
        return None

    def resolve_address(self, profile) -> str:
        """
        Raises:
            NoChannelConfigured: if there is nowhere to send the briefing
        """
        address = profile.address or self.default_address(profile)
        if not address:
            raise NoChannelConfigured(f"No {self.name} address configured for user {profile.user_id}")
        return address

    def format(self, snapshot: Snapshot, narrative: NarrativeContent) -> ChannelPayload:
        raise NotImplementedError

    def send(self, address: str, payload: ChannelPayload) -> SendResult:
        """Raises ChannelSendFailure (or anything else) on failure; use deliver()."""
        raise NotImplementedError

    def deliver(self, address: str, payload: ChannelPayload) -> SendResult:
        """Send without ever raising: every failure becomes SendResult(delivered=False)."""
        try:
            return self.send(address, payload)
        except ChannelSendFailure as e:
            logger.warning(f"{self.name} delivery failed: {e.reason}")
            return SendResult(delivered=False, error=e.reason)
        except Exception as e:
            logger.error(f"Unexpected error sending via {self.name}: {e}", exc_info=True)
            return SendResult(delivered=False, error=f"{e.__class__.__name__}: {e}")

    def fail(self, reason: str):
        raise ChannelSendFailure(self.name, reason)

    def capped_tasks(self, snapshot: Snapshot) -> Tuple[Tuple[TaskItem, ...], Tuple[TaskItem, ...]]:
        """(overdue, due_today), each capped at task_cap."""
        return snapshot.overdue[:self.task_cap], snapshot.due_today[:self.task_cap]


def register_channel(cls: Type[ChannelAdapter]) -> Type[ChannelAdapter]:
    """Class decorator adding an adapter to the registry under its name."""
    if not cls.name:
        raise ValueError(f"{cls.__name__} has no channel name")
    _REGISTRY[cls.name] = cls
    return cls


def get_channel(name: str, config=None) -> ChannelAdapter:
    """
    Instantiate the adapter registered under name.

    Raises:
        NoChannelConfigured: if no adapter is registered for name
    """
    cls = _REGISTRY.get(name)
    if cls is None:
        raise NoChannelConfigured(f"Unknown delivery channel '{name}'")
    return cls(config)


def available_channels() -> List[str]:
    return sorted(_REGISTRY)


def render_plain_text(adapter: ChannelAdapter, snapshot: Snapshot, narrative: NarrativeContent) -> str:
    """Shared plain-text body used by the email and in-app channels."""
    lines = [narrative.greeting, f"{snapshot.weekday}, {snapshot.date_label}", "", narrative.summary, ""]

    if snapshot.calendar_events:
        lines.append(f"Schedule ({pluralize(snapshot.total_events, 'event')})")
        for event in snapshot.calendar_events[:adapter.event_cap]:
            marker = " (important)" if event.is_important else ""
            lines.append(f"• {event.time_label} - {event.title} ({event.duration_label}){marker}")
        lines.append("")
    lines.append(narrative.calendar_section)
    lines.append("")

    overdue, due_today = adapter.capped_tasks(snapshot)
    if overdue or due_today:
        lines.append("Tasks")
        for task in overdue:
            lines.append(f"• Overdue: {task.display_title} ({pluralize(task.days_overdue, 'day')} late)")
        for task in due_today:
            lines.append(f"• Due today: {task.display_title}")
        lines.append("")
    lines.append(narrative.tasks_section)
    lines.append("")

    lines.append(narrative.email_section)
    lines.append(narrative.insights_section)
    lines.append("")

    lines.append("Focus Today")
    for i, action in enumerate(narrative.priority_actions, 1):
        lines.append(f"{i}. {action}")
    lines.append("")
    lines.append(narrative.closing)

    return "\n".join(lines)
