from __future__ import annotations

from typing import Any, Dict, Optional, Sequence, Tuple

from .base_adapter import ChatAdapter, ProviderFailure, Usage
from ..errors import AttemptOutcome
from ..messages import CanonicalMessage


class OllamaAdapter(ChatAdapter):
    """
    Adapter for a local Ollama server (native /api/chat).

    Streaming responses are newline-delimited JSON objects; the last one
    carries `done: true`. No credential is needed.
    """

    provider = "ollama"
    default_api_base = "http://localhost:11434"
    requires_api_key = False
    stream_format = "ndjson"

    def endpoint(self, stream: bool) -> Tuple[str, Dict[str, str]]:
        return "/api/chat", {}

    def to_payload(
        self,
        messages: Sequence[CanonicalMessage],
        max_tokens: int,
        temperature: float,
        stream: bool = False,
    ) -> Dict[str, Any]:
        return {
            "model": self.model,
            "messages": [m.to_dict() for m in messages],
            "stream": stream,
            "options": {"temperature": temperature, "num_predict": max_tokens},
        }

    def from_response(self, data: Dict[str, Any]) -> str:
        content = data["message"]["content"]
        if not isinstance(content, str):
            raise TypeError("message.content is not a string")
        return content

    def extract_usage(self, data: Dict[str, Any]) -> Optional[Usage]:
        if "eval_count" not in data and "prompt_eval_count" not in data:
            return None
        return Usage(
            input_tokens=data.get("prompt_eval_count"),
            output_tokens=data.get("eval_count"),
        )

    def decode_stream_event(self, event: Dict[str, Any]) -> Optional[str]:
        if event.get("error"):
            raise ProviderFailure(AttemptOutcome.NETWORK_ERROR, f"stream error: {event['error']}")
        message = event.get("message") or {}
        return message.get("content") or None
