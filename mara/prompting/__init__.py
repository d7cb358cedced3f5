"""Prompting package.

Architectural role:
    `prompt_builder` assembles the generation system prompt from the session,
    the intent descriptor, retrieved context and the escalation contact.
"""
