"""Response generation with post-processing and canned fallbacks.

Architectural role:
    Turns the classified message, knowledge context, recent history and optional
    escalation contact into the user-facing reply text.

Control flow:
    1. Build the system prompt (`mara.prompting.prompt_builder`).
    2. Send system prompt + last 10 history entries + current message to the model.
    3. Deduplicate repeated halves, paragraphs and sentences from model output.
    4. Post-process: append the escalation contact block when its email is not
       already in the text, append the chat-ID disclosure when the session's chat
       ID is not already quoted.

Failure handling:
    A provider failure or empty output yields `Degraded` with a canned message
    chosen by emotional state (crisis first). The canned text is post-processed
    the same way, so a reply always carries the contact and the chat ID.
"""

import logging

from mara.core.errors import SUPPORT_EMAIL, UpstreamError
from mara.core.models import IntentDescriptor, Session
from mara.core.results import Degraded, Ok, Result
from mara.escalation.directory import Contact, format_contact
from mara.prompting.prompt_builder import build_system_prompt


logger = logging.getLogger(__name__)


HISTORY_WINDOW = 10

CRISIS_FALLBACK = """I want to make sure you get the support you need right away. Please contact McMaster's Student Wellness Centre:

📞 **Crisis Support**
- Phone: 905-525-9140 ext. 27700
- 24/7 Crisis Line: 1-866-925-5454
- Available: Immediate support

You can also reach out to Good2Talk (post-secondary student helpline):
- Phone: 1-866-925-5454
- Available 24/7

Please reach out - you don't have to go through this alone."""

STRESSED_FALLBACK = (
    "I understand this is challenging. Let me connect you with someone who can help better. "
    "Please reach out to the Student Wellness Centre at wellness@mcmaster.ca or call "
    "905-525-9140 ext. 27700. They're available 8am-10pm daily."
)

GENERIC_FALLBACK = (
    "I apologize, but I'm experiencing technical difficulties. Please try again in a moment, "
    f"or contact McMaster Student Services at {SUPPORT_EMAIL} for immediate assistance."
)


def deduplicate_response(text: str) -> str:
    """Remove repeated content patterns from generated text.

    Important behavior:
        - Detects exact first-half/second-half duplication.
        - Deduplicates repeated paragraphs, then repeated sentence fragments.

    Edge cases:
        - Empty input returns an empty string.
        - Sentence splitting uses `. ` and is a heuristic.
    """
    if not text:
        return ""

    text = text.strip()

    half = len(text) // 2
    if half > 20:
        first = text[:half].strip()
        second = text[half:].strip()
        if first == second:
            return first

    paragraphs = [p.strip() for p in text.split("\n\n") if p.strip()]
    unique_paragraphs: list[str] = []

    for paragraph in paragraphs:
        if paragraph not in unique_paragraphs:
            unique_paragraphs.append(paragraph)

    if len(unique_paragraphs) < len(paragraphs):
        return "\n\n".join(unique_paragraphs)

    # Sentence pass only for single-paragraph text; keeps list/markdown layout intact.
    if len(paragraphs) > 1:
        return text

    sentences = text.split(". ")
    unique_sentences: list[str] = []

    for sentence in sentences:
        sentence = sentence.strip()
        if sentence and sentence not in unique_sentences:
            unique_sentences.append(sentence)

    return ". ".join(unique_sentences).strip()


def fallback_response(emotional_state: str) -> str:
    if emotional_state == "crisis":
        return CRISIS_FALLBACK
    if emotional_state == "stressed":
        return STRESSED_FALLBACK
    return GENERIC_FALLBACK


def chat_id_disclosure(chat_id: str) -> str:
    return f"📋 **Your Chat ID is: {chat_id}**\nPlease save this to continue our conversation later."


def post_process(text: str, session: Session, contact: Contact | None = None) -> str:
    """Append the escalation block and chat-ID disclosure where missing."""
    processed = text

    if contact is not None and contact.email not in processed:
        processed += "\n\n" + format_contact(contact)

    if session.chat_id and f"Chat ID: {session.chat_id}" not in processed:
        processed += "\n\n" + chat_id_disclosure(session.chat_id)

    return processed


class ResponseGenerator:
    """Model-backed reply generation."""

    def __init__(self, llm):
        self.llm = llm

    def build_messages(self, message, session, descriptor, history=None, context=None, contact=None) -> list[dict]:
        messages = [{"role": "system", "content": build_system_prompt(session, descriptor, context, contact)}]
        for entry in list(history or [])[-HISTORY_WINDOW:]:
            messages.append({"role": entry["role"], "content": entry["content"]})
        messages.append({"role": "user", "content": message})
        return messages

    def generate(
        self,
        message: str,
        session: Session,
        descriptor: IntentDescriptor,
        history=None,
        context: str | None = None,
        contact: Contact | None = None,
    ) -> Result[str]:
        messages = self.build_messages(message, session, descriptor, history, context, contact)

        try:
            raw = self.llm.complete(messages)
        except UpstreamError as err:
            logger.warning("LLM generation failed for session %s: %s", session.session_id, err.message)
            text = fallback_response(descriptor.emotional_state)
            return Degraded(post_process(text, session, contact), reason=err.message)

        text = deduplicate_response(raw)
        if not text:
            logger.warning("LLM returned an empty reply for session %s", session.session_id)
            text = fallback_response(descriptor.emotional_state)
            return Degraded(post_process(text, session, contact), reason="empty reply")

        return Ok(post_process(text, session, contact))
