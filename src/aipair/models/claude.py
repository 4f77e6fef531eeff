"""Anthropic messages backend."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from .llm_client import CodeGenerationClient, LLMRequest, LLMResponseFormatError

__all__ = ["ClaudeClient"]

ANTHROPIC_VERSION = "2023-06-01"


class _ContentBlock(BaseModel):
    type: str
    text: Optional[str] = None


class _MessageResponse(BaseModel):
    content: List[_ContentBlock]
    stop_reason: Optional[str] = None


class ClaudeClient(CodeGenerationClient):
    """Adapter for the Anthropic messages endpoint."""

    family = "anthropic"
    default_base_url = "https://api.anthropic.com/v1/messages"
    model_aliases = {"claude-3-5-sonnet": "claude-3-5-sonnet-latest"}

    def _build_request(self, request: LLMRequest) -> tuple[str, Dict[str, str], Dict[str, Any]]:
        payload: Dict[str, Any] = {
            "model": request.model or self.api_model,
            "max_tokens": request.max_tokens,
            "messages": [{"role": "user", "content": request.prompt}],
        }
        if request.system_prompt:
            payload["system"] = request.system_prompt
        if request.temperature not in (None, 0.0):
            payload["temperature"] = request.temperature
        headers = {
            "x-api-key": self._api_key,
            "anthropic-version": ANTHROPIC_VERSION,
        }
        return self._base_url, headers, payload

    def _extract_text(self, raw_response: str) -> str:
        message = self._parse_response(raw_response, _MessageResponse)
        parts = [block.text for block in message.content if block.type == "text" and block.text]
        if not parts:
            raise LLMResponseFormatError("Anthropic response did not contain a text block.")
        return "".join(parts)
