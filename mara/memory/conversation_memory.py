"""Per-session short-term conversation memory and summarization trigger.

Purpose:
    Own the ordered message buffer of every live session. The buffer feeds the
    classifier (last 5 entries), the generator (last 10), the summarizer (all)
    and history replay for resuming clients.

Buffer rules:
    - Entries are `{role, content, timestamp}`; at most `MAX_HISTORY` (20) are kept
      and the oldest are dropped first.
    - A whole buffer expires `ttl_seconds` after its last write.
    - Callers only ever receive copies; nothing outside this module mutates a
      stored buffer.

Summarization:
    `summarize` is invoked by the continuity write path only when
    `should_summarize` holds (at least `SUMMARY_MIN_MESSAGES` buffered entries).
    Provider failures degrade to a deterministic transcript digest.

External dependencies:
    - `mara.memory.expiring_store.ExpiringStore` for TTL bookkeeping.
    - Any object exposing `complete(messages, **params) -> str` (normally
      `mara.llm.service.LLMService`) for summaries.
"""

import logging
import time
from datetime import datetime
from typing import Callable

from mara.core.errors import UpstreamError
from mara.core.models import utc_now_iso
from mara.core.results import Degraded, Ok, Result
from mara.memory.expiring_store import ExpiringStore


logger = logging.getLogger(__name__)


MAX_HISTORY = 20
SUMMARY_MIN_MESSAGES = 3
SUMMARY_PROMPT_CHAR_BUDGET = 12000
DIGEST_CHAR_LIMIT = 600
SUMMARY_SYSTEM_PROMPT = (
    "Summarize this conversation in 2-3 sentences, focusing on the main topics "
    "discussed and any action items or escalations."
)


def summarize_messages_pure(messages):
    """Build a normalized transcript string from message dictionaries.

    Args:
        messages: List of chat message dictionaries with `role` and `content`.

    Returns:
        Newline-joined transcript (`role: content`) or empty string.

    Edge cases:
        - Non-list or empty input returns `""`.
        - Non-dict items and empty content are skipped.
    """
    if not messages or not isinstance(messages, list):
        return ""

    lines = []
    for message in messages:
        if not isinstance(message, dict):
            continue

        role = str(message.get("role", "")).strip() or "unknown"
        content = str(message.get("content", "")).strip()
        if not content:
            continue

        lines.append(f"{role}: {content}")

    return "\n".join(lines).strip()


def _enforce_summary_prompt_budget(prompt):
    """Trim the transcript to the character budget, keeping head and tail."""
    if not prompt:
        return ""

    if len(prompt) <= SUMMARY_PROMPT_CHAR_BUDGET:
        return prompt

    marker = "\n\n[TRUNCATED]\n\n"
    head_budget = int(SUMMARY_PROMPT_CHAR_BUDGET * 0.55)
    tail_budget = SUMMARY_PROMPT_CHAR_BUDGET - head_budget - len(marker)

    head = prompt[:head_budget].rstrip()
    tail = prompt[-tail_budget:].lstrip()
    return f"{head}{marker}{tail}"


def transcript_digest(messages) -> str:
    """Deterministic stand-in summary used when the provider is unavailable."""
    user_lines = [
        str(m.get("content", "")).strip()
        for m in messages
        if isinstance(m, dict) and m.get("role") == "user" and str(m.get("content", "")).strip()
    ]
    if not user_lines:
        return ""

    digest = "Student asked about: " + " | ".join(user_lines[-3:])
    if len(digest) > DIGEST_CHAR_LIMIT:
        digest = digest[:DIGEST_CHAR_LIMIT - 3].rstrip() + "..."
    return digest


class ConversationMemory:
    """Time-bounded per-session message buffers."""

    def __init__(self, ttl_seconds: float = 86400, clock: Callable[[], float] = time.monotonic):
        self._store = ExpiringStore(ttl_seconds, clock=clock)

    def append(self, session_id: str, role: str, content: str) -> list[dict]:
        """Append one message and return a copy of the resulting buffer."""
        message = {
            "role": str(role),
            "content": str(content),
            "timestamp": utc_now_iso(),
        }

        def _push(history):
            history = list(history or [])
            history.append(message)
            return history[-MAX_HISTORY:]

        stored = self._store.update(session_id, _push, default=[])
        return [dict(m) for m in stored]

    def replay(self, session_id: str, messages) -> int:
        """Seed a buffer with recovered history; returns the number kept."""
        seeded = []
        for msg in messages or []:
            if not isinstance(msg, dict) or msg.get("role") not in ("user", "assistant"):
                continue
            seeded.append({
                "role": msg["role"],
                "content": str(msg.get("content", "")),
                "timestamp": msg.get("timestamp") or utc_now_iso(),
            })

        if not seeded:
            return 0

        seeded = seeded[-MAX_HISTORY:]
        self._store.set(session_id, seeded)
        return len(seeded)

    def recent(self, session_id: str, n: int = 10) -> list[dict]:
        """Return the last `n` entries, oldest first, reduced to `{role, content}`."""
        if n <= 0:
            return []
        history = self._store.get(session_id) or []
        return [{"role": m["role"], "content": m["content"]} for m in history[-n:]]

    def full(self, session_id: str) -> list[dict]:
        return [dict(m) for m in (self._store.get(session_id) or [])]

    def stats(self, session_id: str) -> dict:
        history = self._store.get(session_id) or []

        duration = 0
        if history:
            try:
                first = datetime.fromisoformat(history[0]["timestamp"])
                last = datetime.fromisoformat(history[-1]["timestamp"])
                duration = int((last - first).total_seconds() * 1000)
            except (KeyError, TypeError, ValueError):
                duration = 0

        return {
            "messageCount": len(history),
            "userMessages": sum(1 for m in history if m.get("role") == "user"),
            "assistantMessages": sum(1 for m in history if m.get("role") == "assistant"),
            "duration": duration,
        }

    def clear(self, session_id: str) -> None:
        self._store.delete(session_id)

    def sweep(self) -> int:
        return self._store.sweep()

    def should_summarize(self, session_id: str) -> bool:
        return len(self._store.get(session_id) or []) >= SUMMARY_MIN_MESSAGES

    def summarize(self, session_id: str, llm) -> Result[str]:
        """Summarize the session buffer.

        Returns:
            `Ok("")` below the threshold (no provider call), `Ok(summary)` on
            success, `Degraded(digest)` when the provider fails or returns nothing.
        """
        history = self.full(session_id)
        if len(history) < SUMMARY_MIN_MESSAGES:
            return Ok("")

        transcript = _enforce_summary_prompt_budget(summarize_messages_pure(history))

        try:
            summary = llm.complete(
                [
                    {"role": "system", "content": SUMMARY_SYSTEM_PROMPT},
                    {"role": "user", "content": transcript},
                ],
                max_tokens=150,
                temperature=0.3,
            )
        except UpstreamError as err:
            logger.warning("Summarization failed for session %s: %s", session_id, err.message)
            return Degraded(transcript_digest(history), reason=err.message)

        summary = (summary or "").strip()
        if not summary:
            return Degraded(transcript_digest(history), reason="empty summary")
        return Ok(summary)
