"""
Narrative Generator

Turns a Snapshot into the prose of a morning briefing. The generative
backend is tried first under a hard deadline; any timeout, transport error
or malformed response falls back to a deterministic template so a briefing
is always produced.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeout
from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional, Tuple

from daybreak.lib.llm_utils import GenerativeBackend, get_generative_backend
from daybreak.lib.metrics import log_metrics
from daybreak.utils.text_processing import pluralize
from daybreak.briefing.errors import GenerationError, GenerationSchemaError, GenerationTimeout
from daybreak.briefing.snapshot import Snapshot

logger = logging.getLogger(__name__)

DEFAULT_GENERATION_TIMEOUT = 20.0
MAX_PRIORITY_ACTIONS = 3

SOURCE_GENERATED = 'generated'
SOURCE_FALLBACK = 'fallback'

FALLBACK_CALENDAR_CLEAR = "Your calendar is clear today."
FALLBACK_INBOX_OK = "Inbox is manageable."
FALLBACK_INSIGHT = "Focus on high-priority items first."
FALLBACK_ACTION = "Review your task list and pick one thing to finish today."
FALLBACK_CLOSING = "Let's make it a great day!"

SECTION_KEYS = ('calendar', 'tasks', 'emails', 'insights')

NARRATIVE_SCHEMA = {
    "greeting": "Warm, personalized morning greeting (mention day of week, be encouraging)",
    "summary": "2-3 sentence overview of the day ahead",
    "sections": {
        "calendar": "Brief calendar summary (what's ahead, any gaps)",
        "tasks": "Task summary with focus areas",
        "emails": "Email summary",
        "insights": "1-2 proactive observations or suggestions"
    },
    "priorityActions": ["Top 3 things to focus on today"],
    "closingMessage": "Motivating closing line"
}


@dataclass(frozen=True)
class NarrativeContent:
    greeting: str
    summary: str
    calendar_section: str
    tasks_section: str
    email_section: str
    insights_section: str
    priority_actions: Tuple[str, ...]
    closing: str

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['priority_actions'] = list(self.priority_actions)
        return data


@dataclass(frozen=True)
class NarrativeResult:
    """Narrative plus where it came from: 'generated' or 'fallback' (with the reason)."""
    content: NarrativeContent
    source: str
    reason: Optional[str] = None

    @property
    def is_fallback(self) -> bool:
        return self.source == SOURCE_FALLBACK


def get_style_instructions(style: str) -> str:
    """Get writing style instructions based on the user's briefing style."""
    style_map = {
        'concise': 'Keep every field short: one or two sentences at most. Skip anything that is not actionable.',
        'detailed': 'Give a fuller picture: mention specific meetings, tasks and senders, and explain why they matter today.',
        'bullets': 'Write each section as short bullet-style fragments separated by line breaks, no full paragraphs.'
    }
    return style_map.get(style, style_map['concise'])


def build_prompt(snapshot: Snapshot, style: str = 'concise') -> str:
    """Build the generation prompt from a snapshot."""
    name = snapshot.user.first_name
    lines = [
        f"Generate a morning briefing for {name}. Today is {snapshot.weekday}, {snapshot.date_label}.",
        "",
        "DATA:",
        f"- Calendar: {snapshot.total_events} events today",
    ]
    for event in snapshot.calendar_events:
        flag = " [IMPORTANT]" if event.is_important else ""
        lines.append(f"  • {event.time_label}: {event.title} ({event.duration_label}){flag}")
    if snapshot.next_event:
        lines.append(
            f"  Next up: {snapshot.next_event.title} in {snapshot.next_event.minutes_until} minutes"
        )

    lines.append(f"- Tasks due today: {len(snapshot.due_today)}")
    for task in snapshot.due_today:
        lines.append(f"  • [{task.priority.upper()}] {task.display_title}")

    lines.append(f"- Overdue tasks: {len(snapshot.overdue)}")
    for task in snapshot.overdue:
        lines.append(f"  • {task.display_title} ({task.days_overdue} days overdue)")

    external = [t for t in snapshot.task_items if t.source != 'internal']
    if external:
        lines.append(f"- External tasks: {len(external)}")
        for task in external[:5]:
            lines.append(f"  • {task.display_title} ({task.source}, {task.status})")

    signals = snapshot.email_signals
    lines.append(f"- Emails: {signals.unread_count} unread, {signals.needs_response} need response")
    for email in signals.important_unread:
        lines.append(f"  • {email.sender}: {email.subject}")

    if snapshot.insights:
        lines.append("- Insights:")
        for insight in snapshot.insights:
            lines.append(f"  • {insight}")

    lines.append(f"- Yesterday: Completed {snapshot.completed_yesterday} tasks")
    lines.extend([
        "",
        f"WRITING STYLE: {get_style_instructions(style)}",
        "",
        f"Be warm but professional. Use {name}'s name. Make it feel personal, not robotic.",
        "priorityActions must contain one to three items.",
    ])
    return "\n".join(lines)


def _require_text(data: Dict[str, Any], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value.strip():
        raise GenerationSchemaError(f"Field '{key}' must be a non-empty string")
    return value.strip()


def parse_narrative(data: Any) -> NarrativeContent:
    """
    Validate a backend response against the narrative schema.

    Raises:
        GenerationSchemaError: on any missing, empty or ill-typed field
    """
    if not isinstance(data, dict):
        raise GenerationSchemaError(f"Expected a JSON object, got {type(data).__name__}")

    sections = data.get('sections')
    if not isinstance(sections, dict):
        raise GenerationSchemaError("Field 'sections' must be an object")
    section_text = {key: _require_text(sections, key) for key in SECTION_KEYS}

    actions = data.get('priorityActions')
    if not isinstance(actions, list) or not all(isinstance(a, str) for a in actions):
        raise GenerationSchemaError("Field 'priorityActions' must be a list of strings")
    actions = [a.strip() for a in actions if a.strip()]
    if not actions:
        raise GenerationSchemaError("Field 'priorityActions' is empty")

    return NarrativeContent(
        greeting=_require_text(data, 'greeting'),
        summary=_require_text(data, 'summary'),
        calendar_section=section_text['calendar'],
        tasks_section=section_text['tasks'],
        email_section=section_text['emails'],
        insights_section=section_text['insights'],
        priority_actions=tuple(actions[:MAX_PRIORITY_ACTIONS]),
        closing=_require_text(data, 'closingMessage'),
    )


def fallback_narrative(snapshot: Snapshot) -> NarrativeContent:
    """Deterministic, always-complete narrative built only from the snapshot."""
    events = snapshot.calendar_events
    due_today = snapshot.due_today
    overdue = snapshot.overdue
    unread = snapshot.email_signals.unread_count

    summary = f"You have {pluralize(len(events), 'event')} and {pluralize(len(due_today), 'task')} due today."

    if events:
        first = events[0]
        calendar = f"{pluralize(len(events), 'event')} today, starting with {first.title} at {first.time_label}."
    else:
        calendar = FALLBACK_CALENDAR_CLEAR

    tasks = f"{pluralize(len(due_today), 'task')} due today."
    if overdue:
        verb = 'needs' if len(overdue) == 1 else 'need'
        tasks += f" {pluralize(len(overdue), 'overdue task')} {verb} attention."

    if unread > 0:
        emails = f"{pluralize(unread, 'unread email')}."
        if snapshot.email_signals.needs_response:
            emails += f" {pluralize(snapshot.email_signals.needs_response, 'important message')} may need a reply."
    else:
        emails = FALLBACK_INBOX_OK

    insights = snapshot.insights[0] if snapshot.insights else FALLBACK_INSIGHT

    # sorted() is stable, so equal priorities keep their due-time order
    ranked = sorted(due_today, key=lambda t: t.priority_rank)
    actions = [t.display_title for t in ranked[:MAX_PRIORITY_ACTIONS]]
    if not actions:
        actions = [f"Catch up on {t.display_title}" for t in overdue[:MAX_PRIORITY_ACTIONS]]
    if not actions:
        actions = [FALLBACK_ACTION]

    return NarrativeContent(
        greeting=f"Good morning, {snapshot.user.first_name}! Happy {snapshot.weekday}.",
        summary=summary,
        calendar_section=calendar,
        tasks_section=tasks,
        email_section=emails,
        insights_section=insights,
        priority_actions=tuple(actions),
        closing=FALLBACK_CLOSING,
    )


class NarrativeGenerator:
    """
    Produces a NarrativeResult for a snapshot.

    Without a backend every result is a fallback.
    """

    def __init__(self, backend: Optional[GenerativeBackend] = None, timeout: float = DEFAULT_GENERATION_TIMEOUT):
        self.backend = backend
        self.timeout = timeout

    @classmethod
    def from_config(cls, config) -> 'NarrativeGenerator':
        return cls(
            backend=get_generative_backend(config),
            timeout=config.get('BRIEFING_GENERATION_TIMEOUT_SECONDS', DEFAULT_GENERATION_TIMEOUT),
        )

    def generate(self, snapshot: Snapshot, style: str = 'concise') -> NarrativeResult:
        if self.backend is None:
            return self._fallback(snapshot, 'no generative backend configured')

        try:
            content = parse_narrative(self._call_backend(build_prompt(snapshot, style)))
        except GenerationError as e:
            return self._fallback(snapshot, f"{e.__class__.__name__}: {e}")

        return NarrativeResult(content=content, source=SOURCE_GENERATED)

    def _call_backend(self, prompt: str) -> Any:
        """
        Run the backend under a hard deadline.

        Raises:
            GenerationTimeout: the deadline passed
            GenerationError: the backend raised
        """
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix='briefing-narrative')
        try:
            future = executor.submit(self.backend.generate, prompt, NARRATIVE_SCHEMA, self.timeout)
            return future.result(timeout=self.timeout)
        except FuturesTimeout:
            raise GenerationTimeout(f"{self.backend.name} did not answer within {self.timeout}s")
        except GenerationError:
            raise
        except Exception as e:
            raise GenerationError(f"{self.backend.name} failed: {e}") from e
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

    def _fallback(self, snapshot: Snapshot, reason: str) -> NarrativeResult:
        logger.info(f"Using fallback narrative for user {snapshot.user.id}: {reason}")
        log_metrics('narrative_fallback', {
            'user_id': snapshot.user.id,
            'reason': reason,
        }, logger)
        return NarrativeResult(
            content=fallback_narrative(snapshot),
            source=SOURCE_FALLBACK,
            reason=reason,
        )
