"""Retrieval package.

Architectural role:
    `knowledge_store` holds the static topic corpus and supplies the context
    block injected into generation prompts by `mara.core.engine`.
"""
