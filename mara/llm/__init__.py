"""LLM access package.

Architectural role:
    Provides provider configuration, request-payload construction, and transport
    adapters used by classification, generation and summarization.

Module split:
    - `provider_config`: environment-driven provider and model configuration.
    - `service`: `LLMService`, the injectable completion/embedding facade.
    - `client`: provider-specific HTTP transport and response parsing.
"""
