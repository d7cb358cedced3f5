"""NLP package.

Architectural role:
    `intent_classifier` turns a message plus short history into an
    `IntentDescriptor` consumed by `mara.core.engine`.
"""
