"""Client base class shared by all code-generation backends."""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from pydantic import BaseModel, ValidationError

__all__ = [
    "CodeGenerationClient",
    "GENERATED_RESPONSE_NAME",
    "LLMClientError",
    "LLMRequest",
    "LLMResponseFormatError",
    "LLMRetryError",
    "LLMTransportError",
    "Transport",
]


Transport = Callable[[str, Dict[str, str], Dict[str, Any]], str]
"""Callable receiving ``(url, headers, payload)`` and returning the raw response body."""

LOGGER = logging.getLogger(__name__)

GENERATED_RESPONSE_NAME = "ai_response.txt"


class LLMClientError(RuntimeError):
    """Base error raised for code-generation client failures."""


class LLMTransportError(LLMClientError):
    """Raised when the underlying transport fails to return a response."""


class LLMResponseFormatError(LLMClientError):
    """Raised when the provider returns a payload without generated text."""


class LLMRetryError(LLMClientError):
    """Raised after exhausting retries due to repeated transport failures."""


@dataclass(slots=True)
class LLMRequest:
    """Prompt payload handed to a provider client."""

    prompt: str
    system_prompt: str = ""
    model: Optional[str] = None
    max_tokens: int = 8192
    temperature: float = 0.0


class CodeGenerationClient:
    """Shared retry/transport plumbing; subclasses speak one provider API each."""

    family: str = ""
    default_base_url: str = ""
    model_aliases: Dict[str, str] = {}

    def __init__(
        self,
        api_key: Optional[str],
        model: str,
        *,
        base_url: Optional[str] = None,
        transport: Optional[Transport] = None,
        timeout: float = 120.0,
        max_attempts: int = 3,
        retry_delay: float = 0.5,
        max_tokens: int = 8192,
    ) -> None:
        self._api_key = api_key or ""
        self._model = model
        self._base_url = base_url or self.default_base_url
        self._transport = transport or self._http_transport
        self._timeout = timeout
        self._max_attempts = max(1, max_attempts)
        self._retry_delay = retry_delay
        self._max_tokens = max_tokens

        if transport is None and not self._api_key:
            raise ValueError("An API key is required when using the default transport.")

    @property
    def model(self) -> str:
        """Return the model identifier this client was created for."""
        return self._model

    @property
    def api_key(self) -> str:
        return self._api_key

    @property
    def api_model(self) -> str:
        """Return the provider-side model name after alias resolution."""
        return self.model_aliases.get(self._model, self._model)

    def generate_code(self, prompt: str, work_dir: Path | str, system_prompt: str) -> str:
        """Send ``prompt`` to the provider and return the generated text.

        The raw text is also written to ``work_dir`` so a failed application step
        can be inspected afterwards.
        """
        request = LLMRequest(
            prompt=prompt,
            system_prompt=system_prompt,
            model=self.api_model,
            max_tokens=self._max_tokens,
        )
        text = self.invoke(request)
        work_path = Path(work_dir)
        work_path.mkdir(parents=True, exist_ok=True)
        (work_path / GENERATED_RESPONSE_NAME).write_text(text, encoding="utf-8")
        return text

    def invoke(self, request: LLMRequest) -> str:
        """Invoke the provider, retrying transport failures."""
        last_error: Optional[Exception] = None
        for attempt in range(1, self._max_attempts + 1):
            try:
                url, headers, payload = self._build_request(request)
                raw = self._transport(url, headers, payload)
                return self._extract_text(raw)
            except LLMTransportError as error:
                last_error = error
                if attempt >= self._max_attempts:
                    break
                time.sleep(self._retry_delay)

        raise LLMRetryError(
            f"No response from {self.family or 'provider'} model {self._model} "
            f"after {self._max_attempts} attempt(s)"
        ) from last_error

    def _build_request(self, request: LLMRequest) -> tuple[str, Dict[str, str], Dict[str, Any]]:
        """Return ``(url, headers, payload)`` for the provider. Subclasses must implement."""
        raise NotImplementedError("Subclasses must implement _build_request().")

    def _extract_text(self, raw_response: str) -> str:
        """Pull the generated text out of the raw response. Subclasses must implement."""
        raise NotImplementedError("Subclasses must implement _extract_text().")

    @staticmethod
    def _parse_response(raw_response: str, response_model: type[BaseModel]) -> Any:
        """Decode ``raw_response`` and validate it against ``response_model``."""
        if not raw_response or not raw_response.strip():
            raise LLMResponseFormatError("Provider returned an empty response.")
        try:
            data = json.loads(raw_response)
        except json.JSONDecodeError as error:
            snippet = raw_response[:200]
            raise LLMResponseFormatError(f"Provider returned invalid JSON: {snippet}") from error
        try:
            return response_model.model_validate(data)
        except ValidationError as error:
            raise LLMResponseFormatError(
                f"Provider response did not match {response_model.__name__}: {error}"
            ) from error

    def _http_transport(self, url: str, headers: Dict[str, str], payload: Dict[str, Any]) -> str:
        """Default HTTP transport used when no transport is injected."""
        import urllib.error
        import urllib.request

        if LOGGER.isEnabledFor(logging.DEBUG):
            LOGGER.debug("[%s] request payload:\n%s", self.family, json.dumps(payload, indent=2, sort_keys=True))

        data = json.dumps(payload).encode("utf-8")
        request = urllib.request.Request(
            url,
            data=data,
            headers={"Content-Type": "application/json", **headers},
            method="POST",
        )

        try:
            with urllib.request.urlopen(request, timeout=self._timeout) as response:
                raw = response.read()
                status = getattr(response, "status", 200)
        except TimeoutError as error:  # pragma: no cover - network-dependent
            raise LLMTransportError(f"{self.family} response timed out.") from error
        except urllib.error.HTTPError as error:  # pragma: no cover - network-dependent
            message = error.read().decode("utf-8", errors="ignore")
            raise LLMTransportError(f"HTTP {error.code}: {message}") from error
        except urllib.error.URLError as error:  # pragma: no cover - network-dependent
            raise LLMTransportError(f"Failed to reach {self.family} endpoint: {error.reason}") from error

        if status >= 400:
            raise LLMTransportError(f"Unexpected HTTP status {status}")

        return raw.decode("utf-8")
