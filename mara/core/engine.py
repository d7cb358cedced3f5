"""Core request orchestration for classification, retrieval, escalation and generation.

Architectural role:
    Provides the per-message pipeline used by the HTTP and CLI layers to turn one
    student message into a reply, with session resolution and continuity writes.

Control-flow model:
    1. Validate the message (`ValidationError` on blank input).
    2. Resolve or create the session (`NotFoundError` when unresolvable).
    3. Classify intent/emotional state with the last 5 history entries.
    4. Retrieve knowledge context when the descriptor asks for it.
    5. Look up the escalation contact on escalation or crisis.
    6. Mint the chat ID on the first exchange.
    7. Generate the reply (post-processed with contact block and chat ID).
    8. Append both messages to conversation memory, summarize, persist.
    9. Return a `ChatReply`.

Error handling strategy:
    Steps 1-2 raise caller-facing errors. Anything unexpected after step 2 is
    logged and converted to `InternalError` carrying the fixed apology. Upstream
    failures never reach this level: classifier, generator and summarizer return
    `Degraded` results, and persistence failures are logged and skipped.

Concurrency:
    Model and database calls are blocking and run through `asyncio.to_thread`.
    Shared state lives in the injected components, each atomic per key.
"""

import asyncio
import logging

from mara.core.errors import InternalError, NotFoundError, ValidationError
from mara.core.generator import ResponseGenerator
from mara.core.models import ChatReply, Exchange, Session
from mara.escalation.directory import escalation_priority, get_contact
from mara.memory.conversation_memory import ConversationMemory
from mara.nlp.intent_classifier import IntentClassifier
from mara.retrieval.knowledge_store import DEFAULT_TOP_K, KnowledgeStore
from mara.sessions.registry import SessionRegistry
from mara.storage.continuity import ContinuityStore


logger = logging.getLogger(__name__)

CLASSIFIER_HISTORY = 5
GENERATOR_HISTORY = 10
GREETING_TEMPLATE = "Hi {name}! I'm Mara, your McMaster Remote Assistant. How can I help you today?"


class Orchestrator:
    """Per-message pipeline over explicitly injected components."""

    def __init__(
        self,
        sessions: SessionRegistry,
        memory: ConversationMemory,
        continuity: ContinuityStore,
        classifier: IntentClassifier,
        knowledge: KnowledgeStore,
        generator: ResponseGenerator,
        llm,
    ):
        self.sessions = sessions
        self.memory = memory
        self.continuity = continuity
        self.classifier = classifier
        self.knowledge = knowledge
        self.generator = generator
        self.llm = llm

    # -----------------------------------------------------
    # Chat
    # -----------------------------------------------------

    async def process_message(
        self,
        message: str,
        session_id: str | None = None,
        name: str | None = None,
        student_number: str | None = None,
        chat_id: str | None = None,
    ) -> ChatReply:
        """Run the full pipeline for one student message.

        Raises:
            ValidationError: blank message.
            NotFoundError: `session_id` cannot be resolved and nothing to create
                a session from was supplied.
            InternalError: any unexpected failure after session resolution.
        """
        if not message or not str(message).strip():
            raise ValidationError("Message is required")

        session = await asyncio.to_thread(
            self.sessions.resolve_or_create, session_id, name, student_number, chat_id
        )
        if session is None:
            raise NotFoundError("Session not found. Please start a new session.")

        logger.info("Processing message for session %s", session.session_id)

        try:
            return await self._run_pipeline(session, message)
        except Exception as err:
            logger.exception("Chat pipeline failed for session %s", session.session_id)
            raise InternalError() from err

    async def _run_pipeline(self, session: Session, message: str) -> ChatReply:
        recent = self.memory.recent(session.session_id, CLASSIFIER_HISTORY)

        classification = await asyncio.to_thread(self.classifier.classify, message, recent)
        descriptor = classification.value
        if classification.degraded:
            logger.info("Intent for session %s from keyword rules (%s)", session.session_id, classification.reason)
        logger.info(
            "Detected intent=%s emotional_state=%s category=%s",
            descriptor.intent,
            descriptor.emotional_state,
            descriptor.category,
        )

        context = None
        if descriptor.needs_retrieval:
            results = self.knowledge.search(message, DEFAULT_TOP_K)
            context = self.knowledge.format_context(results)
            logger.info("Retrieved %d knowledge entries", len(results))

        contact = None
        if descriptor.escalation_needed:
            contact = get_contact(descriptor.category, session.user_type)
            priority = escalation_priority(descriptor.emotional_state, descriptor.category)
            logger.warning(
                "Escalation needed: session=%s category=%s contact=%s priority=%s",
                session.session_id,
                descriptor.category,
                contact.department,
                priority,
            )

        if not session.chat_id:
            await asyncio.to_thread(self.sessions.assign_chat_id, session.session_id)
            session = self.sessions.get(session.session_id) or session

        history = self.memory.recent(session.session_id, GENERATOR_HISTORY)
        generation = await asyncio.to_thread(
            self.generator.generate, message, session, descriptor, history, context, contact
        )
        if generation.degraded:
            logger.warning("Using fallback reply for session %s (%s)", session.session_id, generation.reason)
        response = generation.value

        exchange = Exchange(
            user_message=message,
            assistant_message=response,
            intent=descriptor.intent,
            emotional_state=descriptor.emotional_state,
        )
        await asyncio.to_thread(self._persist, session, exchange)

        return ChatReply(
            response=response,
            session_id=session.session_id,
            chat_id=session.chat_id,
            intent=descriptor.intent,
            emotional_state=descriptor.emotional_state,
            escalation_required=contact is not None,
        )

    def _persist(self, session: Session, exchange: Exchange) -> None:
        self.memory.append(session.session_id, "user", exchange.user_message)
        history = self.memory.append(session.session_id, "assistant", exchange.assistant_message)

        try:
            summary = ""
            if self.memory.should_summarize(session.session_id):
                summary = self.memory.summarize(session.session_id, self.llm).value
            self.continuity.save_exchange(session, exchange, summary, history)
        except Exception:
            logger.exception("Saving continuity failed for session %s", session.session_id)

    # -----------------------------------------------------
    # Sessions and history
    # -----------------------------------------------------

    async def start_session(
        self,
        name: str | None = None,
        student_number: str | None = None,
        chat_id: str | None = None,
    ) -> dict:
        """Create a session explicitly and return the greeting payload.

        Raises:
            ValidationError: neither `name` nor a saved chat ID yields a name.
        """
        session = await asyncio.to_thread(
            self.sessions.create, name, student_number, chat_id, True
        )

        payload = {
            "sessionId": session.session_id,
            "userType": session.user_type,
            "studentInfo": session.student_info.to_dict(),
            "greeting": GREETING_TEMPLATE.format(name=session.name),
        }
        if session.chat_id:
            payload["chatId"] = session.chat_id
        if session.previous_context:
            payload["previousContext"] = session.previous_context

        history = self.memory.full(session.session_id)
        if history:
            payload["messageHistory"] = history
        return payload

    def history(self, session_id: str) -> dict:
        return {
            "history": self.memory.full(session_id),
            "stats": self.memory.stats(session_id),
        }

    def clear_history(self, session_id: str) -> None:
        self.memory.clear(session_id)
