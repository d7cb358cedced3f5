"""Safety package.

Architectural role:
    Deterministic keyword checks that override model output when a message shows
    crisis language. Consumed by `mara.nlp.intent_classifier`.
"""
