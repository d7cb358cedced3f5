"""Mara API adapter package.

Architectural role:
- Defines the external interaction boundary for HTTP and CLI interfaces.
- Performs transport-level validation and response shaping.
- Delegates orchestration to the core layer.

Scope:
- `http_api`: FastAPI application factory.
- `main`: server entrypoint (`mara-server`).
- `cli`: interactive terminal client (`mara-chat`).
"""
