from __future__ import annotations

from typing import Any, Dict, Optional, Sequence, Tuple

from .base_adapter import ChatAdapter, Usage, error_type_from_body
from ..errors import AttemptOutcome, MalformedRequest
from ..messages import CanonicalMessage, Role, split_system

_ROLE_MAP = {Role.USER: "user", Role.ASSISTANT: "model"}


class GeminiAdapter(ChatAdapter):
    """
    Adapter for the Google Gemini generateContent API.

    Roles are remapped (assistant -> model) and system turns are merged into
    the top-level `systemInstruction` field.
    """

    provider = "gemini"
    default_api_base = "https://generativelanguage.googleapis.com/v1beta"

    def headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "x-goog-api-key": self.api_key,
        }

    def endpoint(self, stream: bool) -> Tuple[str, Dict[str, str]]:
        if stream:
            return f"/models/{self.model}:streamGenerateContent", {"alt": "sse"}
        return f"/models/{self.model}:generateContent", {}

    def to_payload(
        self,
        messages: Sequence[CanonicalMessage],
        max_tokens: int,
        temperature: float,
        stream: bool = False,
    ) -> Dict[str, Any]:
        # streaming is selected by the endpoint, not by a body field
        system, turns = split_system(messages)
        if not turns:
            raise MalformedRequest("Gemini requests need at least one user or assistant message")

        payload: Dict[str, Any] = {
            "contents": [
                {"role": _ROLE_MAP[m.role], "parts": [{"text": m.content}]} for m in turns
            ],
            "generationConfig": {
                "temperature": temperature,
                "maxOutputTokens": max_tokens,
            },
        }
        if system:
            payload["systemInstruction"] = {"parts": [{"text": system}]}
        return payload

    @staticmethod
    def _candidate_text(data: Dict[str, Any]) -> str:
        parts = data["candidates"][0]["content"]["parts"]
        return "".join(p["text"] for p in parts if "text" in p)

    def from_response(self, data: Dict[str, Any]) -> str:
        return self._candidate_text(data)

    def extract_usage(self, data: Dict[str, Any]) -> Optional[Usage]:
        usage = data.get("usageMetadata")
        if not isinstance(usage, dict):
            return None
        return Usage(
            input_tokens=usage.get("promptTokenCount"),
            output_tokens=usage.get("candidatesTokenCount"),
        )

    def classify_status(self, status_code: int, body: str) -> AttemptOutcome:
        # Gemini reports a bad key as 400 INVALID_ARGUMENT with reason API_KEY_INVALID
        if "API_KEY_INVALID" in body:
            return AttemptOutcome.AUTH_ERROR
        status = error_type_from_body(body)
        if status in ("UNAUTHENTICATED", "PERMISSION_DENIED"):
            return AttemptOutcome.AUTH_ERROR
        if status == "RESOURCE_EXHAUSTED":
            return AttemptOutcome.RATE_LIMITED
        return super().classify_status(status_code, body)

    def decode_stream_event(self, event: Dict[str, Any]) -> Optional[str]:
        if not event.get("candidates"):
            return None
        content = event["candidates"][0].get("content") or {}
        return "".join(p["text"] for p in content.get("parts", []) if "text" in p) or None
