from __future__ import annotations

import asyncio
from typing import Any, AsyncIterator, Dict, List, Sequence, Tuple

from .base_adapter import ChatAdapter, Completion, StreamChunk
from ..errors import AttemptOutcome, ConfigurationError
from ..messages import CanonicalMessage, last_user_content


class MockAdapter(ChatAdapter):
    """
    Deterministic adapter with zero network interaction.

    Recognised keys in `self.config` (all optional):
    - response:   fixed answer; when absent the last user message is echoed
    - fragments:  list of strings streamed in order (defaults to [answer])
    - streaming:  whether streaming is advertised (default True)
    - fail_with:  outcome name to simulate, e.g. "networkError"
    - fail_after: number of fragments streamed before the simulated failure
    - delay:      seconds to sleep before each response/fragment
    - models:     {model_name: {...}} per-model overrides of the keys above
    """

    provider = "mock"
    requires_api_key = False

    def _settings(self) -> Dict[str, Any]:
        settings = {k: v for k, v in self.config.items() if k != "models"}
        settings.update((self.config.get("models") or {}).get(self.model) or {})
        return settings

    def endpoint(self, stream: bool) -> Tuple[str, Dict[str, str]]:
        return "", {}

    def supports_streaming(self) -> bool:
        return bool(self._settings().get("streaming", True))

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
            "max_tokens": max_tokens,
            "temperature": temperature,
            "stream": stream,
        }

    def from_response(self, data: Dict[str, Any]) -> str:
        return data["text"]

    def _answer(self, settings: Dict[str, Any], messages: Sequence[CanonicalMessage]) -> str:
        response = settings.get("response")
        if response is not None:
            return str(response)
        return last_user_content(messages)

    def _failure(self, settings: Dict[str, Any]) -> AttemptOutcome:
        fail_with = settings.get("fail_with")
        if not fail_with:
            return AttemptOutcome.SUCCESS
        if isinstance(fail_with, AttemptOutcome):
            return fail_with
        try:
            return AttemptOutcome.parse(str(fail_with))
        except ValueError as exc:
            raise ConfigurationError(f"mock fail_with: {exc}") from exc

    async def chat(
        self,
        messages: Sequence[CanonicalMessage],
        max_tokens: int,
        temperature: float,
    ) -> Completion:
        self.to_payload(messages, max_tokens, temperature)
        settings = self._settings()
        delay = float(settings.get("delay") or 0)
        if delay:
            await asyncio.sleep(delay)

        outcome = self._failure(settings)
        if outcome is not AttemptOutcome.SUCCESS:
            return Completion(outcome=outcome, detail=f"simulated {outcome.value} for {self.model}")
        text = self.from_response({"text": self._answer(settings, messages)})
        return Completion(outcome=AttemptOutcome.SUCCESS, text=text)

    async def chat_stream(
        self,
        messages: Sequence[CanonicalMessage],
        max_tokens: int,
        temperature: float,
    ) -> AsyncIterator[StreamChunk]:
        self.to_payload(messages, max_tokens, temperature, stream=True)
        settings = self._settings()
        delay = float(settings.get("delay") or 0)
        outcome = self._failure(settings)

        fragments: List[str] = list(settings.get("fragments") or [self._answer(settings, messages)])
        if outcome is not AttemptOutcome.SUCCESS:
            fragments = fragments[: int(settings.get("fail_after") or 0)]

        for fragment in fragments:
            if delay:
                await asyncio.sleep(delay)
            yield StreamChunk(type="content", content=fragment)

        if outcome is not AttemptOutcome.SUCCESS:
            yield StreamChunk(
                type="error",
                outcome=outcome,
                detail=f"simulated {outcome.value} for {self.model}",
            )
            return
        yield StreamChunk(type="done")

