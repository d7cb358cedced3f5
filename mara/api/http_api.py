"""
HTTP API adapter for the Mara orchestrator.

Architectural role:
- Expose the chat, session, history, contact, analytics and health endpoints.
- Enforce transport-level input parsing.
- Delegate all pipeline work to `mara.core.engine.Orchestrator`.
- Map the exception taxonomy (`mara.core.errors`) to HTTP status codes.

Endpoint responsibilities:
- `POST /api/session`: explicit session creation with greeting and recovered context.
- `POST /api/chat`: one message through the pipeline.
- `GET /api/history/{session_id}`: conversation buffer and stats.
- `GET /api/contacts[/{category}]`: escalation directory.
- `GET /api/analytics`: grouped message counts (database backend only).
- `GET /health`, `GET /`: liveness and service description.

Error handling strategy:
- `ValidationError` -> 400, `NotFoundError` -> 404, `BackendUnavailableError` -> 503.
- `InternalError` and any unhandled exception -> 500 with the fixed apology payload.
- Malformed request bodies -> 400; unknown paths -> 404 `{error, path}`.
- No raw exception text is ever returned to the caller.

Lifecycle:
- Services are built once in `create_app` (or injected by the caller).
- The lifespan runs a periodic expiry sweep and closes the continuity store on
  shutdown.
"""

import asyncio
import logging
from contextlib import asynccontextmanager, suppress

from fastapi import FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException

from mara import __version__
from mara.core.container import ServiceContainer, build_services
from mara.core.errors import BackendUnavailableError, InternalError, MaraError
from mara.core.models import utc_now_iso
from mara.escalation.directory import all_contacts, get_contact, is_available, resolve_category


logger = logging.getLogger(__name__)


# ============================================================
# Request Schemas
# ============================================================

class SessionRequest(BaseModel):
    name: str | None = None
    studentNumber: str | None = None
    chatId: str | int | None = None


class ChatRequest(BaseModel):
    # Optional at parse time so a missing message maps to 400, not 422.
    message: str | None = ""
    sessionId: str | None = None
    name: str | None = None
    studentNumber: str | None = None
    chatId: str | int | None = None


def _as_text(value):
    return None if value is None else str(value)


# ============================================================
# Background Sweep
# ============================================================

async def _sweep_periodically(services: ServiceContainer, interval: float) -> None:
    while True:
        await asyncio.sleep(interval)
        try:
            await asyncio.to_thread(services.sweep)
        except Exception:
            logger.exception("Expiry sweep failed")


# ============================================================
# Application Factory
# ============================================================

def create_app(container: ServiceContainer | None = None) -> FastAPI:
    """Build the FastAPI application around a service container."""
    services = container if container is not None else build_services()
    settings = services.settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        sweeper = asyncio.create_task(_sweep_periodically(services, settings.sweep_interval_seconds))
        logger.info("Mara API started (persistence=%s)", services.persistence)
        try:
            yield
        finally:
            sweeper.cancel()
            with suppress(asyncio.CancelledError):
                await sweeper
            services.close()
            logger.info("Mara API stopped")

    app = FastAPI(title=settings.service_name, version=__version__, lifespan=lifespan)
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url],
        allow_credentials=settings.frontend_url != "*",
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        logger.info("%s %s", request.method, request.url.path)
        return await call_next(request)

    # --------------------------------------------------------
    # Error mapping
    # --------------------------------------------------------

    @app.exception_handler(MaraError)
    async def mara_error_handler(request: Request, exc: MaraError):
        if isinstance(exc, InternalError):
            return JSONResponse(status_code=exc.status_code, content=exc.to_payload())
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"error": "Invalid request body"})

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return JSONResponse(status_code=404, content={"error": "Endpoint not found", "path": request.url.path})
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content=InternalError().to_payload())

    # --------------------------------------------------------
    # Service info
    # --------------------------------------------------------

    @app.get("/")
    def root():
        return {
            "service": "Mara - McMaster Remote Assistant",
            "version": __version__,
            "status": "running",
            "endpoints": {
                "chat": "POST /api/chat",
                "session": "POST /api/session",
                "history": "GET /api/history/:sessionId",
                "contacts": "GET /api/contacts/:category?",
                "analytics": "GET /api/analytics",
                "health": "GET /health",
            },
        }

    @app.get("/health")
    def health():
        return {
            "status": "healthy",
            "timestamp": utc_now_iso(),
            "service": settings.service_name,
            "persistence": services.persistence,
        }

    # --------------------------------------------------------
    # Sessions and chat
    # --------------------------------------------------------

    @app.post("/api/session")
    async def create_session(body: SessionRequest):
        return await services.orchestrator.start_session(
            name=body.name,
            student_number=body.studentNumber,
            chat_id=_as_text(body.chatId),
        )

    @app.post("/api/chat")
    async def chat(body: ChatRequest):
        reply = await services.orchestrator.process_message(
            body.message or "",
            session_id=body.sessionId,
            name=body.name,
            student_number=body.studentNumber,
            chat_id=_as_text(body.chatId),
        )
        return reply.to_dict()

    @app.get("/api/history/{session_id}")
    def history(session_id: str):
        return services.orchestrator.history(session_id)

    # --------------------------------------------------------
    # Directory and reporting
    # --------------------------------------------------------

    @app.get("/api/contacts")
    def contacts(userType: str = "current"):
        return {key: contact.to_dict() for key, contact in all_contacts(userType).items()}

    @app.get("/api/contacts/{category}")
    def contact(category: str, userType: str = "current"):
        payload = get_contact(category, userType).to_dict()
        payload["availability"] = is_available(resolve_category(category, userType))
        return payload

    @app.get("/api/analytics")
    async def analytics(days: int = Query(7, ge=1, le=365)):
        if not services.continuity.durable:
            raise BackendUnavailableError("Analytics require database connection")
        rows = await asyncio.to_thread(services.continuity.analytics, days)
        return {"days": days, "analytics": rows}

    return app
