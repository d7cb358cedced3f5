"""Escalation package.

Architectural role:
    `directory` maps a support category to the human contact a student is handed
    to, and formats that contact for inclusion in replies.
"""
