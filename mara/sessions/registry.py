"""Session registry: session ID -> live session.

Purpose:
    Owns every live `Session` of the process. Sessions are created on first
    contact (or explicitly via `POST /api/session`), resolved on each chat
    request, and expire 24 h after their last write.

Continuity at creation:
    When a chat ID is supplied, the continuity record held under it is recovered
    through the `ContinuityStore` interface (whichever backend is active).
    Caller-supplied identity wins; blanks are backfilled from the record, and any
    recovered message history is replayed into the new session's conversation
    buffer.

Chat-ID rules:
    - A chat ID is a 5-digit string in 40000-49999.
    - It is attached at most once per session and never replaced afterwards.
    - Freshly minted IDs are checked against the continuity store, with a bounded
      number of regeneration attempts.

Concurrency:
    Sessions are immutable; `update` swaps a merged copy in under the store lock.
"""

import logging
import random
import time
import uuid
from typing import Callable

from mara.core.errors import NotFoundError, ValidationError
from mara.core.models import Session
from mara.memory.conversation_memory import ConversationMemory
from mara.memory.expiring_store import ExpiringStore
from mara.sessions.student_directory import determine_user_type, lookup_student
from mara.storage.continuity import ContinuityStore


logger = logging.getLogger(__name__)


CHAT_ID_MIN = 40000
CHAT_ID_MAX = 49999
CHAT_ID_ATTEMPTS = 10

UPDATABLE_FIELDS = frozenset({
    "name",
    "student_number",
    "user_type",
    "student_info",
    "chat_id",
    "previous_context",
})


def _clean(value):
    if value is None:
        return None
    value = str(value).strip()
    return value or None


class SessionRegistry:
    """Time-bounded map of live sessions."""

    def __init__(
        self,
        continuity: ContinuityStore,
        memory: ConversationMemory,
        ttl_seconds: float = 86400,
        clock: Callable[[], float] = time.monotonic,
        rng: random.Random | None = None,
    ):
        self.continuity = continuity
        self.memory = memory
        self._sessions = ExpiringStore(ttl_seconds, clock=clock)
        self._random = rng or random.Random()

    def resolve_or_create(self, session_id=None, name=None, student_number=None, chat_id=None) -> Session | None:
        """Return the live session for `session_id`, or create one.

        Returns `None` only when `session_id` was supplied, cannot be resolved
        (neither live nor rehydratable from the durable backend) and nothing to
        create a session from was supplied.
        """
        session_id = _clean(session_id)

        if session_id:
            existing = self.get(session_id)
            if existing is not None:
                return existing

            rehydrated = self._rehydrate(session_id)
            if rehydrated is not None:
                return rehydrated

            if not (_clean(name) or _clean(student_number) or _clean(chat_id)):
                return None

            logger.info("Session %s not found; starting a new one", session_id)

        return self.create(name, student_number, chat_id)

    def create(self, name=None, student_number=None, chat_id=None, require_identity=False) -> Session:
        """Create and register a session, recovering continuity for `chat_id`."""
        chat_id = _clean(chat_id)
        recovered = self.continuity.recover(chat_id) if chat_id else None

        name = _clean(name) or (recovered.name if recovered else None) or ""
        student_number = _clean(student_number) or (recovered.student_number if recovered else None)

        if require_identity and not name:
            raise ValidationError("Name is required (or a chat ID with a saved name)")

        session = Session(
            session_id=str(uuid.uuid4()),
            name=name,
            student_number=student_number,
            user_type=determine_user_type(student_number),
            student_info=lookup_student(student_number),
            chat_id=chat_id,
            previous_context=recovered.summary if recovered else None,
        )
        self._sessions.set(session.session_id, session)

        if recovered is not None:
            replayed = self.memory.replay(session.session_id, list(recovered.message_history))
            logger.info(
                "Recovered chat %s into session %s (%d messages)",
                chat_id,
                session.session_id,
                replayed,
            )
        elif chat_id:
            logger.info("No previous context for chat %s", chat_id)

        return session

    def _rehydrate(self, session_id: str) -> Session | None:
        session = self.continuity.load_session(session_id)
        if session is None:
            return None

        self._sessions.set(session_id, session)

        if not self.memory.full(session_id):
            self.memory.replay(session_id, self.continuity.session_history(session_id))

        logger.info("Rehydrated session %s from the durable backend", session_id)
        return session

    def get(self, session_id) -> Session | None:
        if not session_id:
            return None
        return self._sessions.get(session_id)

    def update(self, session_id, /, **fields) -> Session | None:
        """Shallow-merge `fields` into the session and refresh its ttl.

        The session ID is never changed and an existing chat ID is never replaced.
        """
        current = self.get(session_id)
        if current is None:
            return None

        fields.pop("session_id", None)
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown session fields: {sorted(unknown)}")
        changes = dict(fields)

        def _merge(live):
            base = live or current
            applied = dict(changes)
            if base.chat_id:
                applied.pop("chat_id", None)
            return base.with_updates(**applied)

        return self._sessions.update(session_id, _merge)

    def assign_chat_id(self, session_id) -> str:
        """Return the session's chat ID, minting one if it has none."""
        session = self.get(session_id)
        if session is None:
            raise NotFoundError("Session not found")
        if session.chat_id:
            return session.chat_id

        updated = self.update(session_id, chat_id=self.generate_chat_id())
        logger.info("Assigned chat ID %s to session %s", updated.chat_id, session_id)
        return updated.chat_id

    def generate_chat_id(self) -> str:
        candidate = ""
        for _ in range(CHAT_ID_ATTEMPTS):
            candidate = str(self._random.randint(CHAT_ID_MIN, CHAT_ID_MAX))
            if not self.continuity.exists(candidate):
                return candidate

        logger.warning("No unused chat ID after %d attempts; reusing %s", CHAT_ID_ATTEMPTS, candidate)
        return candidate

    def sweep(self) -> int:
        return self._sessions.sweep()

    def __len__(self) -> int:
        return len(self._sessions)
