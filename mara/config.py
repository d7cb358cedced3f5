"""Process-level runtime settings.

Architectural role:
    Centralizes environment-driven configuration for storage, retrieval, HTTP and
    expiry behaviour. Values are resolved once into a `Settings` object which is
    passed explicitly to the components that need it.

Resolution:
    `load_dotenv()` runs at import so a local `.env` file behaves like exported
    variables. Provider/model selection lives in `mara.llm.provider_config`.
"""

import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv

load_dotenv()


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    """Resolved runtime settings.

    Attributes:
        database_url: SQLAlchemy URL of the durable backend, or `None` to run on the
            process-local cache fallback.
        knowledge_path: JSON knowledge file loaded at startup.
        frontend_url: Allowed CORS origin.
        session_ttl_seconds: Live session lifetime.
        history_ttl_seconds: Conversation buffer lifetime after last write.
        chat_id_ttl_seconds: Fallback continuity record lifetime.
        sweep_interval_seconds: Period of the background expiry sweep.
        retention_days: Durable cleanup horizon for inactive sessions.
    """

    service_name: str = "Mara Chatbot API"
    database_url: str | None = None
    knowledge_path: str = "data/knowledge.json"
    frontend_url: str = "*"
    host: str = "0.0.0.0"
    port: int = 3001
    log_level: str = "INFO"
    environment: str = "development"

    session_ttl_seconds: int = 86400
    history_ttl_seconds: int = 86400
    chat_id_ttl_seconds: int = 2592000
    sweep_interval_seconds: int = 3600
    retention_days: int = 30


def load_settings() -> Settings:
    """Build a fresh `Settings` object from the current environment."""
    database_url = os.getenv("DATABASE_URL") or None

    return Settings(
        database_url=database_url.strip() if database_url else None,
        knowledge_path=os.getenv("KNOWLEDGE_PATH", "data/knowledge.json"),
        frontend_url=os.getenv("FRONTEND_URL", "*"),
        host=os.getenv("HOST", "0.0.0.0"),
        port=_env_int("PORT", 3001),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        environment=os.getenv("APP_ENV", "development"),
        session_ttl_seconds=_env_int("SESSION_TTL_SECONDS", 86400),
        history_ttl_seconds=_env_int("HISTORY_TTL_SECONDS", 86400),
        chat_id_ttl_seconds=_env_int("CHAT_ID_TTL_SECONDS", 2592000),
        sweep_interval_seconds=_env_int("SWEEP_INTERVAL_SECONDS", 3600),
        retention_days=_env_int("RETENTION_DAYS", 30),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process-wide settings, resolved on first use."""
    return load_settings()
