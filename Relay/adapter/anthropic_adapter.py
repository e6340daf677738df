from __future__ import annotations

from typing import Any, Dict, Optional, Sequence, Tuple

from .base_adapter import ChatAdapter, ProviderFailure, Usage, error_type_from_body
from ..errors import AttemptOutcome, MalformedRequest
from ..messages import CanonicalMessage, split_system

ANTHROPIC_VERSION = "2023-06-01"

_AUTH_ERRORS = {"authentication_error", "permission_error"}
_RATE_ERRORS = {"rate_limit_error", "overloaded_error"}


def _classify_error_type(error_type: str) -> Optional[AttemptOutcome]:
    if error_type in _AUTH_ERRORS:
        return AttemptOutcome.AUTH_ERROR
    if error_type in _RATE_ERRORS:
        return AttemptOutcome.RATE_LIMITED
    return None


class AnthropicAdapter(ChatAdapter):
    """
    Adapter for the Anthropic Messages API.

    The wire format has no system role inside `messages`: every system turn
    is lifted into the top-level `system` string, and each remaining turn
    carries its text as a list of typed content blocks.
    """

    provider = "anthropic"
    default_api_base = "https://api.anthropic.com"

    def headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "x-api-key": self.api_key,
            "anthropic-version": str(self.config.get("anthropic_version") or ANTHROPIC_VERSION),
        }

    def endpoint(self, stream: bool) -> Tuple[str, Dict[str, str]]:
        return "/v1/messages", {}

    def to_payload(
        self,
        messages: Sequence[CanonicalMessage],
        max_tokens: int,
        temperature: float,
        stream: bool = False,
    ) -> Dict[str, Any]:
        system, turns = split_system(messages)
        if not turns:
            raise MalformedRequest(
                "Anthropic requests need at least one user or assistant message"
            )

        payload: Dict[str, Any] = {
            "model": self.model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": [
                {
                    "role": m.role.value,
                    "content": [{"type": "text", "text": m.content}],
                }
                for m in turns
            ],
        }
        if system:
            payload["system"] = system
        if stream:
            payload["stream"] = True
        return payload

    def from_response(self, data: Dict[str, Any]) -> str:
        blocks = data["content"]
        if not isinstance(blocks, list):
            raise TypeError("content is not a list of blocks")
        texts = [b["text"] for b in blocks if isinstance(b, dict) and b.get("type") == "text"]
        if not texts:
            raise ValueError("response carries no text block")
        return "".join(texts)

    def extract_usage(self, data: Dict[str, Any]) -> Optional[Usage]:
        usage = data.get("usage")
        if not isinstance(usage, dict):
            return None
        return Usage(
            input_tokens=usage.get("input_tokens"),
            output_tokens=usage.get("output_tokens"),
        )

    def classify_status(self, status_code: int, body: str) -> AttemptOutcome:
        # 529 is Anthropic's "overloaded" signal
        if status_code == 529:
            return AttemptOutcome.RATE_LIMITED
        return _classify_error_type(error_type_from_body(body)) or super().classify_status(
            status_code, body
        )

    def decode_stream_event(self, event: Dict[str, Any]) -> Optional[str]:
        event_type = event.get("type")
        if event_type == "error":
            error = event.get("error") or {}
            error_type = str(error.get("type") or "")
            outcome = _classify_error_type(error_type) or AttemptOutcome.NETWORK_ERROR
            raise ProviderFailure(outcome, f"stream error {error_type}: {error.get('message', '')}")
        if event_type != "content_block_delta":
            return None
        delta = event["delta"]
        if delta.get("type") != "text_delta":
            return None
        return delta["text"]
