"""Continuity storage package.

Architectural role:
    Persists chat-ID continuity across sessions and, when a database is configured,
    across restarts.

Module split:
    - `models`: SQLAlchemy tables (`sessions`, `messages`, `chat_history`).
    - `database`: engine/session bootstrap with one-shot availability check.
    - `continuity`: `ContinuityStore` interface, durable and cache implementations.
"""
