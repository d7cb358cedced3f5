"""One-time construction of the service graph.

Architectural role:
    Builds every component exactly once at startup and hands references to the
    components that need them. No module holds a process-global instance; the
    HTTP app and the CLI both receive a `ServiceContainer`.

Backend selection:
    The continuity backend is chosen here (via `build_continuity_store`) and is
    authoritative for the process lifetime.

Test seams:
    `build_services` accepts a pre-built LLM, continuity store, knowledge store and
    clock so tests can wire fakes without touching the network or a database.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable

from mara.config import Settings, get_settings
from mara.core.engine import Orchestrator
from mara.core.generator import ResponseGenerator
from mara.llm.service import LLMService
from mara.memory.conversation_memory import ConversationMemory
from mara.nlp.intent_classifier import IntentClassifier
from mara.retrieval.knowledge_store import KnowledgeStore
from mara.sessions.registry import SessionRegistry
from mara.storage.continuity import ContinuityStore, build_continuity_store


logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    settings: Settings
    llm: object
    continuity: ContinuityStore
    memory: ConversationMemory
    sessions: SessionRegistry
    knowledge: KnowledgeStore
    classifier: IntentClassifier
    generator: ResponseGenerator
    orchestrator: Orchestrator

    @property
    def persistence(self) -> str:
        return "database" if self.continuity.durable else "memory"

    def sweep(self) -> dict:
        """Drop expired entries everywhere and clean up stale durable sessions."""
        swept = {
            "sessions": self.sessions.sweep(),
            "histories": self.memory.sweep(),
            "chatIds": self.continuity.sweep(),
            "durableSessions": self.continuity.cleanup(self.settings.retention_days),
        }
        logger.info("Expiry sweep completed: %s", swept)
        return swept

    def close(self) -> None:
        self.continuity.close()


def build_services(
    settings: Settings | None = None,
    llm=None,
    continuity: ContinuityStore | None = None,
    knowledge: KnowledgeStore | None = None,
    clock: Callable[[], float] = time.monotonic,
) -> ServiceContainer:
    settings = settings or get_settings()
    llm = llm if llm is not None else LLMService()
    continuity = continuity if continuity is not None else build_continuity_store(settings, clock=clock)
    knowledge = knowledge if knowledge is not None else KnowledgeStore.load(settings.knowledge_path)

    memory = ConversationMemory(settings.history_ttl_seconds, clock=clock)
    sessions = SessionRegistry(continuity, memory, ttl_seconds=settings.session_ttl_seconds, clock=clock)
    classifier = IntentClassifier(llm)
    generator = ResponseGenerator(llm)

    orchestrator = Orchestrator(
        sessions=sessions,
        memory=memory,
        continuity=continuity,
        classifier=classifier,
        knowledge=knowledge,
        generator=generator,
        llm=llm,
    )

    logger.info(
        "Services ready (persistence=%s, knowledge entries=%d)",
        "database" if continuity.durable else "memory",
        len(knowledge),
    )

    return ServiceContainer(
        settings=settings,
        llm=llm,
        continuity=continuity,
        memory=memory,
        sessions=sessions,
        knowledge=knowledge,
        classifier=classifier,
        generator=generator,
        orchestrator=orchestrator,
    )
