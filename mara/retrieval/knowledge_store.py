"""Static knowledge corpus with keyword scoring.

Retrieval strategy:
    Lexical only. Each entry is scored against the lowercased query:
    - +5 when the entry topic appears in the query,
    - +3 per metadata keyword found in the query,
    - +1 per query word longer than 3 characters found in the entry content.
    Zero-score entries are dropped, the rest sorted descending and capped.

Corpus:
    Loaded once at startup from a JSON list of
    `{topic, content, source, metadata: {category, keywords}}`. A missing or
    invalid file falls back to a small built-in corpus.

Failure handling:
    `load` never raises; `search` on an empty corpus returns `[]` and
    `format_context` turns that into explicit "no information" guidance.
"""

import json
import logging
import re
import threading
from pathlib import Path


logger = logging.getLogger(__name__)


NO_RESULTS_CONTEXT = "No specific information found in knowledge base. Provide general guidance."
DEFAULT_TOP_K = 3

DEFAULT_KNOWLEDGE = [
    {
        "topic": "fees",
        "content": (
            "McMaster full-time students (6+ units) are automatically charged for gym and bus "
            "pass fees. Remote students may qualify for exemptions by contacting the MSU "
            "Student Council or Parking and Transit Office."
        ),
        "source": "McMaster Fee Policy",
        "metadata": {"category": "fees", "keywords": ["gym", "bus pass", "tuition", "remote"]},
    },
    {
        "topic": "remote_learning",
        "content": (
            "McMaster offers degree completion programs for remote learners. Remote students "
            "have access to online resources, virtual advising, and student support services."
        ),
        "source": "Remote Learning Guidelines",
        "metadata": {"category": "academics", "keywords": ["remote", "online", "distance"]},
    },
    {
        "topic": "wellness",
        "content": (
            "Student Wellness Centre provides counseling and mental health support. Available "
            "8am-10pm daily. Services include individual counseling, crisis support, and "
            "wellness workshops."
        ),
        "source": "Student Services",
        "metadata": {"category": "wellness", "keywords": ["mental health", "counseling", "support", "stress"]},
    },
    {
        "topic": "registration",
        "content": (
            "Course registration opens based on your level and program. Contact your academic "
            "advisor for registration assistance. Full-time status requires 6+ units per semester."
        ),
        "source": "Registrar Office",
        "metadata": {"category": "academics", "keywords": ["registration", "courses", "enrollment"]},
    },
]


def _normalize_entry(raw) -> dict | None:
    if not isinstance(raw, dict):
        return None

    topic = str(raw.get("topic", "")).strip()
    content = str(raw.get("content", "")).strip()
    if not topic or not content:
        return None

    metadata = raw.get("metadata") if isinstance(raw.get("metadata"), dict) else {}
    keywords = metadata.get("keywords") if isinstance(metadata.get("keywords"), list) else []

    return {
        "topic": topic,
        "content": content,
        "source": str(raw.get("source", "")).strip() or "Knowledge Base",
        "metadata": {
            "category": metadata.get("category", "general"),
            "keywords": [str(k) for k in keywords],
        },
    }


def score_entry(entry: dict, query: str) -> int:
    query_lower = query.lower()
    query_words = [w for w in re.split(r"\s+", query_lower) if len(w) > 3]
    content_lower = entry["content"].lower()

    score = 0
    if entry["topic"].lower() in query_lower:
        score += 5

    for keyword in entry["metadata"].get("keywords", []):
        if keyword.lower() in query_lower:
            score += 3

    for word in query_words:
        if word in content_lower:
            score += 1

    return score


class KnowledgeStore:
    """In-memory topic corpus."""

    def __init__(self, entries=None):
        self._lock = threading.Lock()
        self._entries: list[dict] = []
        for raw in entries or []:
            entry = _normalize_entry(raw)
            if entry is not None:
                self._entries.append(entry)

    @classmethod
    def load(cls, path) -> "KnowledgeStore":
        """Load the corpus from `path`, or the built-in one on any failure."""
        try:
            data = json.loads(Path(path).read_text(encoding="utf-8"))
            if not isinstance(data, list):
                raise ValueError("knowledge file must hold a JSON list")
        except (OSError, ValueError) as err:
            logger.error("Failed to load knowledge base from %s: %s", path, err)
            return cls(DEFAULT_KNOWLEDGE)

        store = cls(data)
        logger.info("Loaded %d knowledge entries", len(store))
        return store

    def search(self, query: str, top_k: int = DEFAULT_TOP_K) -> list[dict]:
        if not query or top_k <= 0:
            return []

        with self._lock:
            entries = list(self._entries)

        scored = []
        for entry in entries:
            score = score_entry(entry, query)
            if score > 0:
                scored.append({**entry, "score": score})

        scored.sort(key=lambda e: e["score"], reverse=True)
        return scored[:top_k]

    @staticmethod
    def format_context(results) -> str:
        if not results:
            return NO_RESULTS_CONTEXT

        return "\n\n".join(
            f"[Source {idx}: {result['source']}]\n{result['content']}"
            for idx, result in enumerate(results, start=1)
        )

    def add(self, topic: str, content: str, source: str, metadata: dict | None = None) -> dict:
        entry = _normalize_entry({
            "topic": topic,
            "content": content,
            "source": source,
            "metadata": metadata or {},
        })
        if entry is None:
            raise ValueError("topic and content are required")

        with self._lock:
            self._entries.append(entry)
        return entry

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
