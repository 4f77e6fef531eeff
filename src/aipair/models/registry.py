"""Model-to-provider resolution and backend construction."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from .chatgpt import ChatGPTClient
from .claude import ClaudeClient
from .gemini import GeminiClient
from .llm_client import CodeGenerationClient

__all__ = [
    "BACKEND_REGISTRY",
    "BackendResolution",
    "BackendSelectionError",
    "DEFAULT_MODEL",
    "MODEL_FAMILIES",
    "MissingCredentialError",
    "ProviderFamily",
    "UnknownModelError",
    "family_for_model",
    "get_api_key_for_model",
    "resolve_backend",
    "select_ai_client",
    "valid_models",
    "validate_model",
]

LOGGER = logging.getLogger(__name__)


class ProviderFamily(str, Enum):
    """Vendor API surface a model identifier resolves to."""

    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GEMINI = "gemini"


MODEL_FAMILIES: Dict[str, ProviderFamily] = {
    "gpt-4o": ProviderFamily.OPENAI,
    "gpt-4o-mini": ProviderFamily.OPENAI,
    "gpt-3.5-turbo": ProviderFamily.OPENAI,
    "claude-3-5-sonnet-20241022": ProviderFamily.ANTHROPIC,
    "claude-3-5-sonnet": ProviderFamily.ANTHROPIC,
    "gemini-1.5-pro": ProviderFamily.GEMINI,
    "gemini-2": ProviderFamily.GEMINI,
}

DEFAULT_MODEL = "gpt-4o"

# Insertion order matters: the first entry is the fallback for unmapped models.
BACKEND_REGISTRY: Dict[ProviderFamily, type[CodeGenerationClient]] = {
    ProviderFamily.OPENAI: ChatGPTClient,
    ProviderFamily.ANTHROPIC: ClaudeClient,
    ProviderFamily.GEMINI: GeminiClient,
}


class BackendSelectionError(RuntimeError):
    """Base error for model/backend resolution failures."""


class UnknownModelError(BackendSelectionError):
    """Raised when user input names a model outside the allow-list."""

    def __init__(self, model: str) -> None:
        super().__init__(f"Invalid model: {model}. Valid models are: {', '.join(valid_models())}")
        self.model = model


class MissingCredentialError(BackendSelectionError):
    """Raised when no credential is configured for the model's provider family."""

    def __init__(self, model: str, family: ProviderFamily) -> None:
        super().__init__(
            f"No API key found for {family.value} model family (model {model}). "
            "Please set the appropriate environment variable."
        )
        self.model = model
        self.family = family


@dataclass(slots=True)
class BackendResolution:
    """Outcome of resolving a model identifier into a ready backend."""

    model: str
    family: ProviderFamily
    client: CodeGenerationClient
    fallback: bool = False


def valid_models() -> list[str]:
    """Return the allow-listed model identifiers in menu order."""
    return list(MODEL_FAMILIES)


def validate_model(model: str) -> str:
    """Return ``model`` unchanged when allow-listed, raise ``UnknownModelError`` otherwise."""
    if model not in MODEL_FAMILIES:
        raise UnknownModelError(model)
    return model


def family_for_model(model: str) -> Optional[ProviderFamily]:
    return MODEL_FAMILIES.get(model)


def _fallback_family() -> ProviderFamily:
    return next(iter(BACKEND_REGISTRY))


def get_api_key_for_model(model: str, credentials: Mapping[Any, Optional[str]]) -> str:
    """Return the credential for ``model``'s family or raise ``MissingCredentialError``."""
    family = family_for_model(model) or _fallback_family()
    api_key = credentials.get(family) or credentials.get(family.value)
    if not api_key:
        raise MissingCredentialError(model, family)
    return api_key


def resolve_backend(
    model: str,
    credentials: Mapping[Any, Optional[str]],
    **client_kwargs: Any,
) -> BackendResolution:
    """Resolve ``model`` into a backend client in one step.

    Unmapped models fall back to the first registered family after a warning.
    A missing credential for the resolved family raises ``MissingCredentialError``.
    """
    family = family_for_model(model)
    fallback = family is None
    if family is None:
        family = _fallback_family()
        LOGGER.warning("Model %s not recognized, defaulting to %s.", model, BACKEND_REGISTRY[family].__name__)

    api_key = credentials.get(family) or credentials.get(family.value)
    if not api_key:
        raise MissingCredentialError(model, family)

    client_cls = BACKEND_REGISTRY[family]
    client = client_cls(api_key, model, **client_kwargs)
    LOGGER.debug("Initialized %s client with API key: %s...", client.model, api_key[:4])
    return BackendResolution(model=model, family=family, client=client, fallback=fallback)


def select_ai_client(
    model: str,
    credentials: Mapping[Any, Optional[str]],
    **client_kwargs: Any,
) -> CodeGenerationClient:
    """Convenience wrapper returning only the client from ``resolve_backend``."""
    return resolve_backend(model, credentials, **client_kwargs).client
