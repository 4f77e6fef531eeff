"""Convenience exports for the code-generation backends."""

from .chatgpt import ChatGPTClient
from .claude import ClaudeClient
from .gemini import GeminiClient
from .llm_client import (
    CodeGenerationClient,
    LLMClientError,
    LLMRequest,
    LLMResponseFormatError,
    LLMRetryError,
    LLMTransportError,
)
from .registry import (
    BackendResolution,
    BackendSelectionError,
    MissingCredentialError,
    ProviderFamily,
    UnknownModelError,
    resolve_backend,
    select_ai_client,
    validate_model,
)

__all__ = [
    "BackendResolution",
    "BackendSelectionError",
    "ChatGPTClient",
    "ClaudeClient",
    "CodeGenerationClient",
    "GeminiClient",
    "LLMClientError",
    "LLMRequest",
    "LLMResponseFormatError",
    "LLMRetryError",
    "LLMTransportError",
    "MissingCredentialError",
    "ProviderFamily",
    "UnknownModelError",
    "resolve_backend",
    "select_ai_client",
    "validate_model",
]
