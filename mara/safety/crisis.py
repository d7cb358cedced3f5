"""Rule-based crisis and fee keyword overrides.

Purpose:
    Guarantee that messages containing explicit crisis language are escalated to
    mental-health support, whatever the language model concluded, and that fee
    questions are routed to the fee knowledge base.

Validation model:
    - Lowercase substring matching over short static lists.
    - Applied after model classification and after the rule-based fallback, so the
      crisis guarantee holds on both paths.

Bypass risk:
    Substring matching misses paraphrases and misspellings. The model-side
    classification remains the primary signal; these lists only widen it.
"""

from mara.core.models import IntentDescriptor


CRISIS_KEYWORDS = [
    "give up",
    "suicide",
    "kill myself",
    "end it all",
    "no point",
    "hopeless",
]

FEE_KEYWORDS = [
    "fee",
    "tuition",
    "cost",
    "payment",
    "charge",
    "gym",
    "bus pass",
]


def contains_crisis_language(message: str) -> bool:
    if not message:
        return False
    text = message.lower()
    return any(keyword in text for keyword in CRISIS_KEYWORDS)


def mentions_fees(message: str) -> bool:
    if not message:
        return False
    text = message.lower()
    return any(keyword in text for keyword in FEE_KEYWORDS)


def apply_crisis_override(descriptor: IntentDescriptor, message: str) -> IntentDescriptor:
    """Force crisis state, escalation and the mental-health category."""
    if contains_crisis_language(message):
        descriptor.emotional_state = "crisis"
        descriptor.requires_escalation = True
        descriptor.category = "mental_health"
    return descriptor


def apply_fee_override(descriptor: IntentDescriptor, message: str) -> IntentDescriptor:
    if mentions_fees(message):
        descriptor.intent = "fee_inquiry"
        descriptor.needs_retrieval = True
        descriptor.category = "fees"
    return descriptor
