"""Exception taxonomy shared by the pipeline and the HTTP adapter.

Mapping (applied in `mara.api.http_api`):
    - `ValidationError` -> 400
    - `NotFoundError` -> 404
    - `BackendUnavailableError` -> 503
    - `InternalError` -> 500 with the fixed apology payload

`UpstreamError` never reaches the HTTP layer: classifier, generator, summarizer
and continuity store recover from it locally.
"""

SUPPORT_EMAIL = "student.services@mcmaster.ca"

APOLOGY_ERROR = "I apologize, but I encountered an error processing your message."
APOLOGY_RESPONSE = (
    "I'm having technical difficulties right now. Please try again in a moment, "
    f"or contact McMaster Student Services directly at {SUPPORT_EMAIL} "
    "for immediate assistance."
)


class MaraError(Exception):
    """Base class for all application errors."""

    status_code = 500

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


class ValidationError(MaraError):
    """Caller supplied unusable input."""

    status_code = 400


class NotFoundError(MaraError):
    """A referenced session cannot be resolved."""

    status_code = 404


class UpstreamError(MaraError):
    """A language-model or durable-store call failed."""

    status_code = 502

    def __init__(self, message: str = "", provider: str | None = None, status: int | None = None):
        super().__init__(message)
        self.provider = provider
        self.status = status


class BackendUnavailableError(MaraError):
    """The operation needs the durable backend, which is not active."""

    status_code = 503


class InternalError(MaraError):
    """Unexpected failure converted at the pipeline boundary."""

    status_code = 500

    def __init__(self, message: str = APOLOGY_ERROR, response: str = APOLOGY_RESPONSE):
        super().__init__(message)
        self.response = response

    def to_payload(self) -> dict:
        return {"error": self.message, "response": self.response}
