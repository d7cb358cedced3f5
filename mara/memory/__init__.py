"""Memory subsystem package.

Architectural role:
    Groups the process-local memory components:
    - `expiring_store`: generic time-bounded key-value store.
    - `conversation_memory`: per-session message buffers and summarization.
"""
