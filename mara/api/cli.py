"""
Minimal interactive terminal client for Mara.

Architectural role:
- Provides a terminal-only interface over the orchestrator, without HTTP.
- Builds the same service graph as the server (`build_services`).

Request lifecycle (per user turn, CLI):
1. Read a single line from stdin.
2. Handle local control commands (`exit`/`quit`, `empty chat`/`clear chat`).
3. Forward regular messages to `Orchestrator.process_message`.
4. Print the reply and, on the first exchange, the chat ID.

Input validation behavior:
- Empty input is ignored and does not call core.
- A blank name at startup is accepted only when a chat ID restores one.

Error handling strategy:
- Handles EOF and keyboard interrupts without traceback output.
- Pipeline errors print the apology text returned by the core layer.
"""

import sys
import asyncio
import logging

from mara.config import get_settings
from mara.core.container import build_services
from mara.core.errors import InternalError, MaraError


# =========================================================
# UTF-8 SAFE STDOUT
# =========================================================

if hasattr(sys.stdout, "reconfigure"):
    try:
        sys.stdout.reconfigure(encoding="utf-8", errors="ignore")
    except (AttributeError, ValueError):
        pass


def _prompt(label: str) -> str:
    return input(label).strip()


# =========================================================
# MAIN APPLICATION LOOP
# =========================================================

def main():
    """
    Run the interactive terminal session.

    Error handling strategy:
    - Session creation failures (no resolvable name) end the program.
    - EOF and keyboard interrupts are handled gracefully.
    """
    settings = get_settings()
    logging.basicConfig(level=settings.log_level)

    services = build_services(settings)
    orchestrator = services.orchestrator

    print("Mara - McMaster Remote Assistant (Type 'exit' to quit)\n")
    print(f"Persistence: {services.persistence}")
    print(f"Knowledge entries loaded: {len(services.knowledge)}")
    print("-" * 60)

    try:
        name = _prompt("Your name: ")
        student_number = _prompt("Student number (optional): ")
        chat_id = _prompt("Chat ID to resume (optional): ")
    except (EOFError, KeyboardInterrupt):
        print("\nCancelled.")
        services.close()
        return

    try:
        started = asyncio.run(orchestrator.start_session(name, student_number or None, chat_id or None))
    except MaraError as err:
        print(f"Could not start a session: {err.message}")
        services.close()
        return

    session_id = started["sessionId"]
    print(f"\n{started['greeting']}")
    if started.get("previousContext"):
        print(f"(Last time: {started['previousContext']})")
    print("-" * 60)

    while True:

        try:
            message = _prompt("You: ")

        except EOFError:
            print("\nGoodbye.")
            break

        except KeyboardInterrupt:
            print("\nInterrupted.")
            break

        if not message:
            continue

        if message.lower() in ("exit", "quit"):
            print("Shutting down.")
            break

        if message.lower() in ("empty chat", "clear chat"):
            orchestrator.clear_history(session_id)
            print("Chat cleared.")
            continue

        try:
            reply = asyncio.run(orchestrator.process_message(message, session_id=session_id))
        except InternalError as err:
            print(f"\nMara: {err.response}\n")
            continue
        except MaraError as err:
            print(f"\n{err.message}\n")
            continue

        print(f"\nMara: {reply.response}\n")

    services.close()


if __name__ == "__main__":
    main()
