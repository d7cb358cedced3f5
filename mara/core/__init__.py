"""Core orchestration package.

Architectural role:
    Sits between the API/CLI adapters and the lower-level subsystems (sessions,
    memory, storage, classification, retrieval, escalation, prompting, LLM).

Composition:
    - `engine`: per-message pipeline (`Orchestrator`).
    - `generator`: response generation with degraded fallbacks.
    - `container`: one-time construction of all services.
    - `models`: shared data contracts (session, intent, continuity).
    - `results`: `Ok` / `Degraded` result types.
    - `errors`: exception taxonomy mapped to HTTP status codes by the API layer.
"""
