"""Provider-specific transport client for LLM requests.

Architectural role:
    Executes HTTP requests against the configured model provider and normalizes the
    response into plain text (completions) or a float vector (embeddings).

Model invocation flow:
    `LLMService.complete` -> `send_request(config, payload)` -> provider branch
    (OpenAI-compatible / Anthropic / Gemini) -> parsed text.

Retry behavior:
    No retry loop is implemented. Each HTTP call is attempted once with the timeout
    from `ProviderConfig.timeout_seconds`.

Failure handling model:
    Every failure is raised as `UpstreamError` carrying a sanitized message
    (provider label plus optional HTTP status). Raw response bodies and keys never
    leave this module. Callers convert the error into fallback content.
"""

import logging

import requests

from mara.core.errors import UpstreamError
from mara.llm.provider_config import (
    ANTHROPIC_URL,
    GEMINI_URL_TEMPLATE,
    PROVIDERS,
    ProviderConfig,
)


logger = logging.getLogger(__name__)


def _build_sanitized_http_error(provider_name: str, err: requests.exceptions.RequestException) -> UpstreamError:
    """Build a provider-labeled upstream error without exposing raw internals."""
    status_code = None
    if getattr(err, "response", None) is not None:
        status_code = getattr(err.response, "status_code", None)

    label = str(provider_name or "provider").upper()
    if status_code:
        return UpstreamError(f"{label} HTTP ERROR ({status_code})", provider=provider_name, status=status_code)
    return UpstreamError(f"{label} HTTP ERROR", provider=provider_name)


def _split_system(messages: list[dict]) -> tuple[str | None, list[dict]]:
    system_prompt = None
    turns = []

    for msg in messages:
        if not isinstance(msg, dict):
            continue

        role = msg.get("role")
        content = msg.get("content", "")

        if role == "system":
            if isinstance(content, str) and content.strip():
                system_prompt = content.strip()
        elif role in ["user", "assistant"]:
            turns.append({"role": role, "content": content})

    return system_prompt, turns


def _post(url: str, headers: dict, body: dict, timeout: float) -> dict:
    response = requests.post(url, headers=headers, json=body, timeout=timeout)
    response.raise_for_status()
    return response.json()


def send_request(config: ProviderConfig, payload: dict) -> str:
    """Send one completion request to the configured provider.

    Args:
        config: Resolved provider selection and timeout.
        payload: OpenAI-style payload (`model`, `messages`, sampling params).

    Returns:
        Stripped assistant text.

    Provider handling:
        - OpenAI-compatible providers: direct pass-through payload.
        - Anthropic: system prompt split out, default `max_tokens=1024`.
        - Gemini: message remap to `contents` and `generationConfig` mapping.

    Raises:
        UpstreamError: unknown provider, missing key, HTTP/transport failure or an
            unexpected response shape.
    """
    provider = config.provider
    endpoint = PROVIDERS.get(provider)
    if endpoint is None:
        raise UpstreamError("INVALID PROVIDER", provider=provider)

    api_key = None
    if endpoint["key_file"]:
        api_key = config.api_key()
        if not api_key:
            raise UpstreamError(f"{provider.upper()} KEY NOT FOUND", provider=provider)

    try:
        if provider == "anthropic":
            system_prompt, turns = _split_system(payload.get("messages", []))

            body = {
                "model": payload.get("model", config.model),
                "max_tokens": payload.get("max_tokens", 1024),
                "messages": turns,
            }
            if system_prompt:
                body["system"] = system_prompt
            if "temperature" in payload:
                body["temperature"] = payload["temperature"]
            if "top_p" in payload:
                body["top_p"] = payload["top_p"]

            headers = {
                "x-api-key": api_key,
                "anthropic-version": "2023-06-01",
                "Content-Type": "application/json",
            }
            data = _post(ANTHROPIC_URL, headers, body, config.timeout_seconds)
            return data["content"][0]["text"].strip()

        if provider == "gemini":
            contents = []
            for msg in payload.get("messages", []):
                if not isinstance(msg, dict) or not msg.get("content"):
                    continue
                role = msg.get("role")
                if role == "assistant":
                    gemini_role = "model"
                elif role in ["user", "system"]:
                    gemini_role = "user"
                else:
                    continue
                contents.append({"role": gemini_role, "parts": [{"text": str(msg["content"])}]})

            body = {"contents": contents}
            generation_config = {}
            if "temperature" in payload:
                generation_config["temperature"] = payload["temperature"]
            if "top_p" in payload:
                generation_config["topP"] = payload["top_p"]
            if generation_config:
                body["generationConfig"] = generation_config

            headers = {"x-goog-api-key": api_key, "Content-Type": "application/json"}
            url = GEMINI_URL_TEMPLATE.format(model=config.model)
            data = _post(url, headers, body, config.timeout_seconds)
            return data["candidates"][0]["content"]["parts"][0]["text"].strip()

        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        data = _post(endpoint["url"], headers, payload, config.timeout_seconds)
        return data["choices"][0]["message"]["content"].strip()

    except requests.exceptions.RequestException as err:
        raise _build_sanitized_http_error(provider, err) from err

    except (KeyError, IndexError, TypeError, ValueError) as err:
        logger.warning("Unexpected %s response shape: %s", provider, type(err).__name__)
        raise UpstreamError(f"{provider.upper()} MALFORMED RESPONSE", provider=provider) from err


def send_embedding_request(config: ProviderConfig, text: str) -> list[float]:
    """Request one embedding vector from an OpenAI-compatible embeddings endpoint.

    Raises:
        UpstreamError: provider has no embeddings endpoint, key missing, or the call
            failed.
    """
    provider = config.provider
    endpoint = PROVIDERS.get(provider) or {}
    url = endpoint.get("embeddings_url")
    if not url:
        raise UpstreamError(f"{provider.upper()} HAS NO EMBEDDINGS ENDPOINT", provider=provider)

    headers = {"Content-Type": "application/json"}
    if endpoint.get("key_file"):
        api_key = config.api_key()
        if not api_key:
            raise UpstreamError(f"{provider.upper()} KEY NOT FOUND", provider=provider)
        headers["Authorization"] = f"Bearer {api_key}"

    try:
        data = _post(url, headers, {"model": config.embedding_model, "input": text}, config.timeout_seconds)
        return [float(x) for x in data["data"][0]["embedding"]]
    except requests.exceptions.RequestException as err:
        raise _build_sanitized_http_error(provider, err) from err
    except (KeyError, IndexError, TypeError, ValueError) as err:
        raise UpstreamError(f"{provider.upper()} MALFORMED RESPONSE", provider=provider) from err
