"""Chat-ID continuity store with durable and cache-backed implementations.

Purpose:
    Map a short, human-shareable chat ID to a summary of the conversation held
    under it, plus the identity needed to resume it in a later session.

Backend selection:
    `build_continuity_store` runs once at startup. A reachable `DATABASE_URL`
    yields `DurableContinuityStore`; anything else yields `CacheContinuityStore`
    for the whole process lifetime. Callers use the `ContinuityStore` interface
    only; `durable` is a capability flag for reporting, not for branching.

Record shapes (intentionally asymmetric):
    - Durable: `chat_history(chat_id, session_summary, last_session_id)`. Identity
      and messages are recovered by joining through the `sessions` and `messages`
      tables on `last_session_id`.
    - Cache: one `ContinuityRecord` carrying identity, summary and the *full*
      message history, since there is nothing to join against.

Write semantics:
    Last-write-wins on every backend. No concurrency control across sessions that
    share a chat ID.

Degradation:
    The durable store embeds a cache store. A durable read or write that raises is
    treated as "backend unavailable for this call": reads consult the cache, writes
    land in the cache, the error is logged and never propagated.
"""

import logging
import time
from abc import ABC, abstractmethod
from datetime import timedelta
from typing import Callable

from sqlalchemy import case, distinct, func
from sqlalchemy.exc import SQLAlchemyError

from mara.config import Settings
from mara.core.errors import BackendUnavailableError
from mara.core.models import (
    ContinuityRecord,
    ContinuityRecovery,
    Exchange,
    Session,
    StudentInfo,
    USER_TYPE_PROSPECTIVE,
    utc_now_iso,
)
from mara.memory.conversation_memory import MAX_HISTORY
from mara.memory.expiring_store import ExpiringStore
from mara.storage.database import Database, init_database
from mara.storage.models import ChatHistoryRow, MessageRow, SessionRow, utc_naive_now


logger = logging.getLogger(__name__)


class ContinuityStore(ABC):
    """Interface shared by both continuity backends."""

    durable: bool = False

    @abstractmethod
    def recover(self, chat_id: str) -> ContinuityRecovery | None:
        """Return what is known about `chat_id`, or `None` for an unknown ID."""

    @abstractmethod
    def exists(self, chat_id: str) -> bool:
        """Whether any record is held under `chat_id`."""

    @abstractmethod
    def save_exchange(self, session: Session, exchange: Exchange, summary: str, history: list[dict]) -> None:
        """Persist one completed exchange for `session` under its chat ID."""

    def load_session(self, session_id: str) -> Session | None:
        """Rehydrate a recently active session evicted from process memory."""
        return None

    def session_history(self, session_id: str) -> list[dict]:
        """Most recent messages written by `session_id` itself, oldest first."""
        return []

    def analytics(self, days: int) -> list[dict]:
        raise BackendUnavailableError("Analytics require the database backend")

    def sweep(self) -> int:
        return 0

    def cleanup(self, retention_days: int) -> int:
        return 0

    def close(self) -> None:
        return None


class CacheContinuityStore(ContinuityStore):
    """Process-local fallback; records expire after `ttl_seconds` (30 days)."""

    durable = False

    def __init__(self, ttl_seconds: float = 2592000, clock: Callable[[], float] = time.monotonic):
        self._records = ExpiringStore(ttl_seconds, clock=clock)

    def record(self, chat_id: str) -> ContinuityRecord | None:
        return self._records.get(chat_id)

    def recover(self, chat_id: str) -> ContinuityRecovery | None:
        record = self._records.get(chat_id)
        if record is None:
            return None

        return ContinuityRecovery(
            chat_id=chat_id,
            summary=record.summary or None,
            name=record.name or None,
            student_number=record.student_number or None,
            message_history=tuple(dict(m) for m in record.message_history),
        )

    def exists(self, chat_id: str) -> bool:
        return chat_id in self._records

    def save_exchange(self, session: Session, exchange: Exchange, summary: str, history: list[dict]) -> None:
        if not session.chat_id:
            logger.warning("Session %s has no chat ID; continuity record skipped", session.session_id)
            return

        self._records.set(session.chat_id, ContinuityRecord(
            chat_id=session.chat_id,
            summary=summary or "",
            last_session_id=session.session_id,
            last_interaction=utc_now_iso(),
            name=session.name,
            student_number=session.student_number,
            message_history=[dict(m) for m in history][-MAX_HISTORY:],
        ))

    def sweep(self) -> int:
        return self._records.sweep()


class DurableContinuityStore(ContinuityStore):
    """SQLAlchemy-backed store with an embedded cache for failed calls."""

    durable = True

    def __init__(self, database: Database, fallback: CacheContinuityStore | None = None,
                 session_ttl_seconds: float = 86400):
        self.database = database
        self.fallback = fallback or CacheContinuityStore()
        self.session_ttl_seconds = session_ttl_seconds

    # -----------------------------------------------------
    # Read path
    # -----------------------------------------------------

    def recover(self, chat_id: str) -> ContinuityRecovery | None:
        try:
            recovered = self._recover_from_database(chat_id)
        except SQLAlchemyError:
            logger.exception("Durable continuity read failed for chat %s; using cache", chat_id)
            return self.fallback.recover(chat_id)

        if recovered is None:
            return self.fallback.recover(chat_id)
        return recovered

    def _recover_from_database(self, chat_id: str) -> ContinuityRecovery | None:
        with self.database.session() as db:
            chat = db.get(ChatHistoryRow, chat_id)
            if chat is None:
                return None

            name = None
            student_number = None
            history: list[dict] = []

            if chat.last_session_id:
                row = db.get(SessionRow, chat.last_session_id)
                if row is not None:
                    name = row.name or None
                    student_number = row.student_number or None

                history = self._recent_messages(db, chat.last_session_id)

            return ContinuityRecovery(
                chat_id=chat_id,
                summary=chat.session_summary or None,
                name=name,
                student_number=student_number,
                message_history=tuple(history),
            )

    @staticmethod
    def _recent_messages(db, session_id: str, limit: int = MAX_HISTORY) -> list[dict]:
        rows = (
            db.query(MessageRow)
            .filter(MessageRow.session_id == session_id)
            .order_by(MessageRow.created_at.desc(), MessageRow.id.desc())
            .limit(limit)
            .all()
        )
        return [
            {
                "role": row.role,
                "content": row.content,
                "timestamp": row.created_at.isoformat() if row.created_at else utc_now_iso(),
            }
            for row in reversed(rows)
        ]

    def exists(self, chat_id: str) -> bool:
        try:
            with self.database.session() as db:
                if db.get(ChatHistoryRow, chat_id) is not None:
                    return True
                taken = db.query(SessionRow.session_id).filter(SessionRow.chat_id == chat_id).first()
                if taken is not None:
                    return True
        except SQLAlchemyError:
            logger.exception("Durable chat ID lookup failed for %s; using cache", chat_id)
        return self.fallback.exists(chat_id)

    def load_session(self, session_id: str) -> Session | None:
        cutoff = utc_naive_now() - timedelta(seconds=self.session_ttl_seconds)

        try:
            with self.database.session() as db:
                row = db.get(SessionRow, session_id)
                if row is None or row.last_active is None or row.last_active <= cutoff:
                    return None

                previous_context = None
                if row.chat_id:
                    chat = db.get(ChatHistoryRow, row.chat_id)
                    if chat is not None:
                        previous_context = chat.session_summary or None

                return Session(
                    session_id=row.session_id,
                    name=row.name or "",
                    student_number=row.student_number,
                    user_type=row.user_type or USER_TYPE_PROSPECTIVE,
                    student_info=StudentInfo.from_dict(row.student_info),
                    chat_id=row.chat_id,
                    previous_context=previous_context,
                    created_at=row.created_at.isoformat() if row.created_at else utc_now_iso(),
                )
        except SQLAlchemyError:
            logger.exception("Durable session lookup failed for %s", session_id)
            return None

    def session_history(self, session_id: str) -> list[dict]:
        try:
            with self.database.session() as db:
                return self._recent_messages(db, session_id)
        except SQLAlchemyError:
            logger.exception("Durable message lookup failed for %s", session_id)
            return []

    # -----------------------------------------------------
    # Write path
    # -----------------------------------------------------

    def save_exchange(self, session: Session, exchange: Exchange, summary: str, history: list[dict]) -> None:
        try:
            self._write_to_database(session, exchange, summary)
        except SQLAlchemyError:
            logger.exception(
                "Durable continuity write failed for session %s; keeping exchange in cache",
                session.session_id,
            )
            self.fallback.save_exchange(session, exchange, summary, history)

    def _write_to_database(self, session: Session, exchange: Exchange, summary: str) -> None:
        now = utc_naive_now()

        with self.database.session() as db:
            row = db.get(SessionRow, session.session_id)
            if row is None:
                row = SessionRow(session_id=session.session_id, created_at=now)
                db.add(row)

            row.name = session.name or ""
            row.student_number = session.student_number or None
            row.chat_id = session.chat_id
            row.user_type = session.user_type
            row.student_info = session.student_info.to_dict()
            row.last_active = now
            db.flush()

            db.add(MessageRow(
                session_id=session.session_id,
                role="user",
                content=exchange.user_message,
                intent=exchange.intent,
                emotional_state=exchange.emotional_state,
                created_at=now,
            ))
            db.add(MessageRow(
                session_id=session.session_id,
                role="assistant",
                content=exchange.assistant_message,
                created_at=now,
            ))

            if session.chat_id:
                chat = db.get(ChatHistoryRow, session.chat_id)
                if chat is None:
                    chat = ChatHistoryRow(chat_id=session.chat_id, created_at=now)
                    db.add(chat)
                chat.session_summary = summary or ""
                chat.last_session_id = session.session_id
                chat.updated_at = now

    # -----------------------------------------------------
    # Reporting and housekeeping
    # -----------------------------------------------------

    def analytics(self, days: int) -> list[dict]:
        """Message counts grouped by intent and emotional state over `days`."""
        since = utc_naive_now() - timedelta(days=days)

        count = func.count(MessageRow.id).label("count")
        active = case((MessageRow.role == "user", MessageRow.session_id))

        try:
            with self.database.session() as db:
                rows = (
                    db.query(
                        MessageRow.intent,
                        MessageRow.emotional_state,
                        func.count(distinct(MessageRow.session_id)),
                        func.count(distinct(active)),
                        count,
                    )
                    .filter(MessageRow.created_at > since)
                    .group_by(MessageRow.intent, MessageRow.emotional_state)
                    .order_by(count.desc())
                    .all()
                )
        except SQLAlchemyError as err:
            logger.exception("Analytics query failed")
            raise BackendUnavailableError("Analytics query failed") from err

        return [
            {
                "intent": intent,
                "emotionalState": state,
                "totalSessions": int(sessions),
                "activeUsers": int(users),
                "count": int(n),
            }
            for intent, state, sessions, users, n in rows
        ]

    def sweep(self) -> int:
        return self.fallback.sweep()

    def cleanup(self, retention_days: int) -> int:
        """Delete sessions (and their messages) inactive for `retention_days`."""
        cutoff = utc_naive_now() - timedelta(days=retention_days)

        try:
            with self.database.session() as db:
                stale = [
                    sid for (sid,) in
                    db.query(SessionRow.session_id).filter(SessionRow.last_active < cutoff).all()
                ]
                if not stale:
                    return 0
                db.query(MessageRow).filter(MessageRow.session_id.in_(stale)).delete(synchronize_session=False)
                db.query(SessionRow).filter(SessionRow.session_id.in_(stale)).delete(synchronize_session=False)
        except SQLAlchemyError:
            logger.exception("Durable cleanup failed")
            return 0

        logger.info("Cleaned up %d old sessions", len(stale))
        return len(stale)

    def close(self) -> None:
        self.database.close()


def build_continuity_store(settings: Settings, clock: Callable[[], float] = time.monotonic) -> ContinuityStore:
    """Pick the authoritative continuity backend for this process."""
    cache = CacheContinuityStore(settings.chat_id_ttl_seconds, clock=clock)

    database = init_database(settings.database_url)
    if database is None:
        return cache

    return DurableContinuityStore(database, fallback=cache, session_ttl_seconds=settings.session_ttl_seconds)
