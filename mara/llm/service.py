"""Message-to-payload adapter for LLM invocation.

Architectural role:
    Provides the completion entrypoint used by the intent classifier, the response
    generator and the conversation summarizer. Bridges message lists built by
    those layers to transport (`mara.llm.client`).

Token behavior:
    No explicit token-budget enforcement is implemented here. Callers cap the
    history they send (10 entries for generation, 3 for classification).

Failure scenarios:
    Transport/provider failures surface as `UpstreamError`; callers turn them into
    `Degraded` results.
"""

from mara.llm.client import send_embedding_request, send_request
from mara.llm.provider_config import ProviderConfig, load_provider_config


class LLMService:
    """Thin, stateless facade over the configured provider."""

    def __init__(self, config: ProviderConfig | None = None):
        self.config = config or load_provider_config()

    def complete(self, messages: list[dict], **params) -> str:
        """Run one chat completion.

        Args:
            messages: OpenAI-style `{role, content}` list, system message first.
            **params: Optional sampling overrides (`temperature`, `top_p`,
                `max_tokens`, ...). Only supplied keys are forwarded.

        Returns:
            Assistant text.

        Raises:
            UpstreamError: on any provider failure.
        """
        payload = {"model": self.config.model, "messages": list(messages)}
        payload.update({k: v for k, v in params.items() if v is not None})
        return send_request(self.config, payload)

    def embed(self, text: str) -> list[float]:
        """Return an embedding vector for `text` (reserved; unused by the pipeline)."""
        return send_embedding_request(self.config, text)
