"""Intent and emotional-state classifier.

Intent classification logic:
- The language model is asked for a JSON object with the six descriptor fields,
  given the message and the last 3 history entries.
- Output is parsed tolerantly (code fences stripped, first JSON object extracted)
  and normalized to the allowed intent / emotional-state values.
- Keyword overrides then widen the result: crisis language forces escalation to
  mental-health support, fee terms force fee retrieval.

Failure handling:
- Provider failure or unparseable output degrades to `fallback_intent_detection`,
  returned as `Degraded`. The crisis override is applied on that path too.
- `classify` never raises for upstream problems.

Determinism:
- Rule paths are deterministic. The model path is not; temperature is kept low.
"""

import json
import logging
import re

from mara.core.errors import UpstreamError
from mara.core.models import (
    DEFAULT_CATEGORY,
    DEFAULT_EMOTIONAL_STATE,
    DEFAULT_INTENT,
    EMOTIONAL_STATES,
    INTENTS,
    IntentDescriptor,
)
from mara.core.results import Degraded, Ok, Result
from mara.safety.crisis import apply_crisis_override, apply_fee_override


logger = logging.getLogger(__name__)


CLASSIFIER_SYSTEM_PROMPT = """You are an intent classifier for a university chatbot. Analyze the user's message and return a JSON object with:
- intent: one of ["fee_inquiry", "course_question", "emotional_support", "academic_policy", "prospective_student", "general_inquiry", "technical_support"]
- emotionalState: one of ["neutral", "positive", "stressed", "frustrated", "crisis"]
- needsRetrieval: boolean (true if factual information needed)
- requiresEscalation: boolean (true if human support needed)
- category: relevant department or area
- keywords: array of key terms from message

Emotional state detection:
- "crisis": mentions giving up, suicide, self-harm, severe depression
- "stressed": overwhelmed, exhausted, can't handle, too much pressure
- "frustrated": angry, unfair, annoyed, upset
- "positive": happy, grateful, excited
- "neutral": factual questions without emotion

Return ONLY valid JSON, no other text."""

CONTEXT_WINDOW = 3


# =========================================================
# RULE-BASED FALLBACK
# =========================================================

_FEE_RULE = re.compile(r"fee|tuition|cost|payment|charge")
_COURSE_RULE = re.compile(r"course|class|schedule|registration|enroll")
_STRESS_RULE = re.compile(r"overwhelm|exhaust|stress|can't handle|too much|tired")
_FRUSTRATION_RULE = re.compile(r"frustrated|angry|unfair|annoyed|upset")
_CRISIS_RULE = re.compile(r"give up|suicide|hopeless|no point")
_PROSPECTIVE_RULE = re.compile(r"apply|application|interested in|not a student yet")


def fallback_intent_detection(message: str) -> IntentDescriptor:
    """Classify with ordered keyword rules; later rules override earlier ones."""
    text = (message or "").lower()
    descriptor = IntentDescriptor()

    if _FEE_RULE.search(text):
        descriptor.intent = "fee_inquiry"
        descriptor.category = "fees"

    if _COURSE_RULE.search(text):
        descriptor.intent = "course_question"
        descriptor.category = "academics"

    if _STRESS_RULE.search(text):
        descriptor.emotional_state = "stressed"
        descriptor.intent = "emotional_support"
        descriptor.requires_escalation = True
        descriptor.category = "wellness"

    if _FRUSTRATION_RULE.search(text):
        descriptor.emotional_state = "frustrated"

    if _CRISIS_RULE.search(text):
        descriptor.emotional_state = "crisis"
        descriptor.requires_escalation = True
        descriptor.category = "mental_health"

    if _PROSPECTIVE_RULE.search(text):
        descriptor.intent = "prospective_student"
        descriptor.category = "admissions"

    descriptor.keywords = [word for word in (message or "").split(" ") if len(word) > 3][:5]
    return descriptor


# =========================================================
# MODEL OUTPUT PARSING
# =========================================================

def _extract_json(text: str):
    """Extract the first JSON object candidate from raw model output."""
    if not text:
        return None

    text = text.strip()
    text = re.sub(r"^```json", "", text, flags=re.IGNORECASE).strip()
    text = re.sub(r"^```", "", text).strip()
    text = re.sub(r"```$", "", text).strip()

    match = re.search(r"\{.*\}", text, re.DOTALL)
    if match:
        return match.group(0)
    return None


def _as_bool(value, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "yes", "1"):
            return True
        if lowered in ("false", "no", "0"):
            return False
    return default


def parse_descriptor(raw: str) -> IntentDescriptor | None:
    """Parse model output into a normalized descriptor, or `None`."""
    clean = _extract_json(raw)
    if clean is None:
        return None

    try:
        data = json.loads(clean)
    except json.JSONDecodeError:
        return None
    if not isinstance(data, dict):
        return None

    intent = data.get("intent")
    emotional_state = data.get("emotionalState", data.get("emotional_state"))
    category = data.get("category")
    keywords = data.get("keywords")

    return IntentDescriptor(
        intent=intent if intent in INTENTS else DEFAULT_INTENT,
        emotional_state=emotional_state if emotional_state in EMOTIONAL_STATES else DEFAULT_EMOTIONAL_STATE,
        needs_retrieval=_as_bool(data.get("needsRetrieval", data.get("needs_retrieval")), True),
        requires_escalation=_as_bool(data.get("requiresEscalation", data.get("requires_escalation")), False),
        category=str(category).strip().lower() if isinstance(category, str) and category.strip() else DEFAULT_CATEGORY,
        keywords=[str(k) for k in keywords] if isinstance(keywords, list) else [],
    )


# =========================================================
# CLASSIFIER
# =========================================================

class IntentClassifier:
    """Model-backed classifier with deterministic fallback."""

    def __init__(self, llm):
        self.llm = llm

    def classify(self, message: str, history=None) -> Result[IntentDescriptor]:
        context = list(history or [])[-CONTEXT_WINDOW:]
        prompt = f'Message: "{message}"\n\nConversation context: {json.dumps(context, ensure_ascii=False)}'

        try:
            raw = self.llm.complete(
                [
                    {"role": "system", "content": CLASSIFIER_SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                temperature=0.0,
            )
        except UpstreamError as err:
            logger.warning("Intent detection failed, using keyword rules: %s", err.message)
            return Degraded(apply_crisis_override(fallback_intent_detection(message), message), reason=err.message)

        descriptor = parse_descriptor(raw)
        if descriptor is None:
            logger.warning("Unparseable intent output, using keyword rules")
            return Degraded(
                apply_crisis_override(fallback_intent_detection(message), message),
                reason="unparseable classifier output",
            )

        apply_crisis_override(descriptor, message)
        apply_fee_override(descriptor, message)
        return Ok(descriptor)
