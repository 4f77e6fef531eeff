"""Google Gemini generateContent backend."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from .llm_client import CodeGenerationClient, LLMRequest, LLMResponseFormatError

__all__ = ["GeminiClient"]


class _Part(BaseModel):
    text: Optional[str] = None


class _Content(BaseModel):
    role: Optional[str] = None
    parts: List[_Part] = Field(default_factory=list)


class _Candidate(BaseModel):
    content: Optional[_Content] = None
    finishReason: Optional[str] = None


class _GenerateContentResponse(BaseModel):
    candidates: List[_Candidate] = Field(default_factory=list)


class GeminiClient(CodeGenerationClient):
    """Adapter for the Gemini ``models/<model>:generateContent`` endpoint."""

    family = "gemini"
    default_base_url = "https://generativelanguage.googleapis.com/v1beta/models"
    model_aliases = {"gemini-2": "gemini-2.0-flash"}

    def _build_request(self, request: LLMRequest) -> tuple[str, Dict[str, str], Dict[str, Any]]:
        model = request.model or self.api_model
        url = f"{self._base_url.rstrip('/')}/{model}:generateContent"
        payload: Dict[str, Any] = {
            "contents": [{"role": "user", "parts": [{"text": request.prompt}]}],
            "generationConfig": {"maxOutputTokens": request.max_tokens},
        }
        if request.system_prompt:
            payload["systemInstruction"] = {"parts": [{"text": request.system_prompt}]}
        if request.temperature not in (None, 0.0):
            payload["generationConfig"]["temperature"] = request.temperature
        headers = {"x-goog-api-key": self._api_key}
        return url, headers, payload

    def _extract_text(self, raw_response: str) -> str:
        response = self._parse_response(raw_response, _GenerateContentResponse)
        for candidate in response.candidates:
            if candidate.content is None:
                continue
            text = "".join(part.text for part in candidate.content.parts if part.text)
            if text.strip():
                return text
        raise LLMResponseFormatError("Gemini response did not contain any candidate text.")
