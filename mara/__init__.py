"""Mara: McMaster Remote Assistant backend.

Architectural role:
    Conversational backend for remote students. One inbound message flows through
    session resolution, intent classification, optional knowledge retrieval,
    escalation lookup, response generation and continuity persistence.

Package layout:
    - `api`: HTTP adapter, server entrypoint and interactive terminal client.
    - `core`: orchestration pipeline, shared models, errors and service wiring.
    - `sessions`: live session registry and student directory lookup.
    - `memory`: expiring key-value store and per-session conversation buffers.
    - `storage`: continuity store (durable SQLAlchemy backend and cache fallback).
    - `nlp`, `safety`: intent classification and crisis keyword rules.
    - `retrieval`: keyword-scored knowledge store.
    - `escalation`: human contact directory.
    - `prompting`, `llm`: prompt assembly and provider transport.
"""

__version__ = "1.0.0"
