from __future__ import annotations

from typing import Any, Dict, Optional, Sequence, Tuple

from .base_adapter import ChatAdapter, ProviderFailure, Usage
from ..errors import AttemptOutcome
from ..messages import CanonicalMessage

# error.type / error.code values an OpenAI-style stream can end with
_STREAM_ERRORS = {
    "rate_limit_exceeded": AttemptOutcome.RATE_LIMITED,
    "insufficient_quota": AttemptOutcome.RATE_LIMITED,
    "invalid_api_key": AttemptOutcome.AUTH_ERROR,
    "authentication_error": AttemptOutcome.AUTH_ERROR,
}


class OpenAIAdapter(ChatAdapter):
    """
    Adapter for OpenAI-style chat completion APIs.

    Messages, including system turns, are sent as one flat ordered list.

    It expects the following keys in `self.config`:
    - api_base: base URL of the API, e.g. https://api.openai.com/v1
    - api_key: API key string
    - model:   model name to use
    - max_tokens_field: optional name of the token-limit field
      (default "max_tokens"; newer OpenAI models want "max_completion_tokens")
    - timeout: optional request timeout in seconds
    """

    provider = "openai"
    default_api_base = "https://api.openai.com/v1"

    @property
    def max_tokens_field(self) -> str:
        return str(self.config.get("max_tokens_field") or "max_tokens")

    def headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def endpoint(self, stream: bool) -> Tuple[str, Dict[str, str]]:
        return "/chat/completions", {}

    def to_payload(
        self,
        messages: Sequence[CanonicalMessage],
        max_tokens: int,
        temperature: float,
        stream: bool = False,
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": [m.to_dict() for m in messages],
            self.max_tokens_field: max_tokens,
            "temperature": temperature,
        }
        if stream:
            payload["stream"] = True
        return payload

    def from_response(self, data: Dict[str, Any]) -> str:
        content = data["choices"][0]["message"]["content"]
        if not isinstance(content, str):
            raise TypeError("choices[0].message.content is not a string")
        return content

    def extract_usage(self, data: Dict[str, Any]) -> Optional[Usage]:
        usage = data.get("usage")
        if not isinstance(usage, dict):
            return None
        return Usage(
            input_tokens=usage.get("prompt_tokens"),
            output_tokens=usage.get("completion_tokens"),
        )

    def decode_stream_event(self, event: Dict[str, Any]) -> Optional[str]:
        error = event.get("error")
        if error:
            if not isinstance(error, dict):
                error = {"message": str(error)}
            codes = [str(error[k]) for k in ("code", "type") if error.get(k)]
            outcome = next(
                (_STREAM_ERRORS[c] for c in codes if c in _STREAM_ERRORS),
                AttemptOutcome.NETWORK_ERROR,
            )
            code = codes[0] if codes else "unknown"
            raise ProviderFailure(outcome, f"stream error {code}: {error.get('message', '')}")
        choices = event.get("choices") or []
        if not choices:
            return None
        delta = choices[0].get("delta") or {}
        return delta.get("content") or None


class GroqAdapter(OpenAIAdapter):
    provider = "groq"
    default_api_base = "https://api.groq.com/openai/v1"


class DeepSeekAdapter(OpenAIAdapter):
    provider = "deepseek"
    default_api_base = "https://api.deepseek.com/v1"


class CustomOpenAIAdapter(OpenAIAdapter):
    """
    Any self-hosted or third-party endpoint speaking the OpenAI dialect
    (vLLM, LM Studio, llama.cpp server, ...). `api_base` is mandatory and
    the API key is optional.
    """

    provider = "custom"
    requires_api_key = False

    def _check_credentials(self) -> None:
        if not self.config.get("api_base"):
            raise ProviderFailure(
                AttemptOutcome.AUTH_ERROR,
                "no api_base configured for provider 'custom'",
            )
        super()._check_credentials()
