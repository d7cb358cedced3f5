"""Data contracts shared across sessions, storage and orchestration.

Architectural role:
    Defines the structural types passed between components. The classes are
    state-free containers; lifecycle rules (TTL, chat-ID assignment) are enforced
    by the owning components (`SessionRegistry`, `ContinuityStore`).

Serialization:
    `StudentInfo.to_dict()` and `ChatReply.to_dict()` emit the camelCase keys used
    on the HTTP surface.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any

USER_TYPE_CURRENT = "current"
USER_TYPE_PROSPECTIVE = "prospective"

INTENTS = (
    "fee_inquiry",
    "course_question",
    "emotional_support",
    "academic_policy",
    "prospective_student",
    "general_inquiry",
    "technical_support",
)

EMOTIONAL_STATES = ("neutral", "positive", "stressed", "frustrated", "crisis")

DEFAULT_INTENT = "general_inquiry"
DEFAULT_EMOTIONAL_STATE = "neutral"
DEFAULT_CATEGORY = "general"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def utc_now_iso() -> str:
    return utc_now().isoformat()


@dataclass(frozen=True)
class StudentInfo:
    """Snapshot of enrolment details taken when the session is created."""

    level: Any = "Unknown"
    semester: str = "Unknown"
    course_count: int = 0
    program: str = "Unknown"
    enrollment_status: str = "unknown"

    @property
    def known(self) -> bool:
        return self.level != "Unknown"

    def to_dict(self) -> dict:
        return {
            "level": self.level,
            "semester": self.semester,
            "courseCount": self.course_count,
            "program": self.program,
            "enrollmentStatus": self.enrollment_status,
        }

    @classmethod
    def from_dict(cls, data: dict | None) -> "StudentInfo":
        if not data:
            return cls()
        return cls(
            level=data.get("level", "Unknown"),
            semester=data.get("semester", "Unknown"),
            course_count=data.get("courseCount", data.get("course_count", 0)),
            program=data.get("program", "Unknown"),
            enrollment_status=data.get("enrollmentStatus", data.get("enrollment_status", "unknown")),
        )


@dataclass(frozen=True)
class Session:
    """One live interaction.

    Instances are immutable; the registry swaps in updated copies so readers never
    observe a half-applied update.
    """

    session_id: str
    name: str
    user_type: str
    student_info: StudentInfo
    student_number: str | None = None
    chat_id: str | None = None
    previous_context: str | None = None
    created_at: str = field(default_factory=utc_now_iso)

    def with_updates(self, **fields) -> "Session":
        return replace(self, **fields)


@dataclass
class IntentDescriptor:
    """Per-message classification consumed within the same request."""

    intent: str = DEFAULT_INTENT
    emotional_state: str = DEFAULT_EMOTIONAL_STATE
    needs_retrieval: bool = True
    requires_escalation: bool = False
    category: str = DEFAULT_CATEGORY
    keywords: list[str] = field(default_factory=list)

    @property
    def escalation_needed(self) -> bool:
        return self.requires_escalation or self.emotional_state == "crisis"


@dataclass(frozen=True)
class Exchange:
    """One completed user/assistant turn, ready for persistence."""

    user_message: str
    assistant_message: str
    intent: str | None = None
    emotional_state: str | None = None


@dataclass
class ContinuityRecord:
    """Cache-form continuity record keyed by chat ID.

    Carries identity and the full message history because the cache backend
    cannot join against session rows the way the durable backend does.
    """

    chat_id: str
    summary: str = ""
    last_session_id: str | None = None
    last_interaction: str = field(default_factory=utc_now_iso)
    name: str | None = None
    student_number: str | None = None
    message_history: list[dict] = field(default_factory=list)


@dataclass(frozen=True)
class ContinuityRecovery:
    """What a chat ID lookup yields, independent of the backend that served it."""

    chat_id: str
    summary: str | None = None
    name: str | None = None
    student_number: str | None = None
    message_history: tuple[dict, ...] = ()


@dataclass(frozen=True)
class ChatReply:
    """Outcome of one processed chat message."""

    response: str
    session_id: str
    chat_id: str | None
    intent: str
    emotional_state: str
    escalation_required: bool
    timestamp: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> dict:
        return {
            "response": self.response,
            "sessionId": self.session_id,
            "chatId": self.chat_id,
            "intent": self.intent,
            "emotionalState": self.emotional_state,
            "escalationRequired": self.escalation_required,
            "timestamp": self.timestamp,
        }
