"""Provider/runtime configuration for the LLM layer.

Architectural role:
    Centralizes model/provider selection and credential lookup for
    `mara.llm.service` and `mara.llm.client`.

Model call flow integration:
    - `service.LLMService` carries one `ProviderConfig` for its lifetime.
    - `client.send_request` / `client.send_embedding_request` consume the endpoint
      map, timeout and key resolution from it.

Determinism:
    Deterministic for a fixed process environment and key files. Values are
    resolved by `load_provider_config()` (plus runtime key-file reads in `load_key`).

Failure behavior:
    Missing key material is represented as `None` and turned into an
    `UpstreamError` by `client`.
"""

import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()

# OpenAI-compatible and provider-specific endpoint map.
PROVIDERS = {

    "local": {
        "url": "http://127.0.0.1:8080/v1/chat/completions",
        "embeddings_url": "http://127.0.0.1:8080/v1/embeddings",
        "key_file": None
    },

    "openai": {
        "url": "https://api.openai.com/v1/chat/completions",
        "embeddings_url": "https://api.openai.com/v1/embeddings",
        "key_file": "config/openai.key"
    },

    "groq": {
        "url": "https://api.groq.com/openai/v1/chat/completions",
        "embeddings_url": None,
        "key_file": "config/groq.key"
    },

    "together": {
        "url": "https://api.together.xyz/v1/chat/completions",
        "embeddings_url": "https://api.together.xyz/v1/embeddings",
        "key_file": "config/together.key"
    },

    "openrouter": {
        "url": "https://openrouter.ai/api/v1/chat/completions",
        "embeddings_url": None,
        "key_file": "config/openrouter.key"
    },

    "mistral": {
        "url": "https://api.mistral.ai/v1/chat/completions",
        "embeddings_url": "https://api.mistral.ai/v1/embeddings",
        "key_file": "config/mistral.key"
    },

    "anthropic": {
        "url": "https://api.anthropic.com/v1/messages",
        "embeddings_url": None,
        "key_file": "config/anthropic.key"
    },

    "gemini": {
        "url": "https://generativelanguage.googleapis.com/v1beta/models",
        "embeddings_url": None,
        "key_file": "config/gemini.key"
    },

}


ANTHROPIC_URL = "https://api.anthropic.com/v1/messages"

GEMINI_URL_TEMPLATE = (
    "https://generativelanguage.googleapis.com/v1beta/models/"
    "{model}:generateContent"
)


@dataclass(frozen=True)
class ProviderConfig:
    """Resolved provider selection.

    Attributes:
        provider: Key into `PROVIDERS`.
        model: Chat-completion model name.
        embedding_model: Embedding model name (reserved path).
        timeout_seconds: Per-call HTTP timeout; calls are never retried.
    """

    provider: str = "openai"
    model: str = "gpt-4o-mini"
    embedding_model: str = "text-embedding-3-small"
    timeout_seconds: float = 30.0

    @property
    def endpoint(self) -> dict | None:
        return PROVIDERS.get(self.provider)

    def api_key(self) -> str | None:
        endpoint = self.endpoint
        if not endpoint:
            return None
        return load_key(endpoint["key_file"])


def load_provider_config() -> ProviderConfig:
    """Build a `ProviderConfig` from the current environment."""
    try:
        timeout = float(os.getenv("LLM_TIMEOUT_SECONDS", "30"))
    except ValueError:
        timeout = 30.0

    return ProviderConfig(
        provider=os.getenv("PROVIDER", "openai").strip().lower(),
        model=os.getenv("MODEL_NAME", "gpt-4o-mini"),
        embedding_model=os.getenv("EMBEDDING_MODEL", "text-embedding-3-small"),
        timeout_seconds=timeout,
    )


def load_key(path):
    """Return the API key for a provider key file, or `None`.

    An environment variable named after the file stem wins (`config/openai.key`
    is overridden by `OPENAI_API_KEY`); otherwise the file is read if present.
    """
    if not path:
        return None
    key_name = os.path.splitext(os.path.basename(path))[0].upper() + "_API_KEY"
    env_value = os.getenv(key_name)
    if env_value:
        return env_value
    if not os.path.exists(path):
        return None
    with open(path, "r") as f:
        return f.read().strip()
