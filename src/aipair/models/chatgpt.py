"""OpenAI chat-completions backend."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from .llm_client import CodeGenerationClient, LLMRequest, LLMResponseFormatError

__all__ = ["ChatGPTClient"]


class _ChatMessage(BaseModel):
    role: str = "assistant"
    content: Optional[str] = None


class _ChatChoice(BaseModel):
    index: int = 0
    message: _ChatMessage
    finish_reason: Optional[str] = None


class _ChatCompletion(BaseModel):
    choices: List[_ChatChoice]


class ChatGPTClient(CodeGenerationClient):
    """Thin adapter around the OpenAI chat completions endpoint."""

    family = "openai"
    default_base_url = "https://api.openai.com/v1/chat/completions"

    def _build_request(self, request: LLMRequest) -> tuple[str, Dict[str, str], Dict[str, Any]]:
        messages: list[Dict[str, str]] = []
        if request.system_prompt:
            messages.append({"role": "system", "content": request.system_prompt})
        messages.append({"role": "user", "content": request.prompt})

        payload: Dict[str, Any] = {
            "model": request.model or self.api_model,
            "messages": messages,
        }
        if request.temperature not in (None, 0.0):
            payload["temperature"] = request.temperature
        headers = {"Authorization": f"Bearer {self._api_key}"}
        return self._base_url, headers, payload

    def _extract_text(self, raw_response: str) -> str:
        completion = self._parse_response(raw_response, _ChatCompletion)
        for choice in completion.choices:
            content = choice.message.content
            if isinstance(content, str) and content.strip():
                return content
        raise LLMResponseFormatError("OpenAI response did not contain any message content.")
