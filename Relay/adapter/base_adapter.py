from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, Optional, Sequence, Tuple

import httpx

from ..errors import AttemptOutcome
from ..messages import CanonicalMessage

log = logging.getLogger("relay.adapter")

_SNIPPET_CHARS = 500


@dataclass(frozen=True)
class Usage:
    input_tokens: Optional[int] = None
    output_tokens: Optional[int] = None


@dataclass(frozen=True)
class Completion:
    """Outcome of one non-streaming request/response cycle."""

    outcome: AttemptOutcome
    text: str = ""
    detail: str = ""
    usage: Optional[Usage] = None

    @property
    def ok(self) -> bool:
        return self.outcome is AttemptOutcome.SUCCESS


@dataclass(frozen=True)
class StreamChunk:
    """
    One item of a streaming cycle.

    type is "content" for a text fragment, then exactly one terminal
    "done" or "error" chunk closes the stream.
    """

    type: str
    content: str = ""
    outcome: AttemptOutcome = AttemptOutcome.SUCCESS
    detail: str = ""
    usage: Optional[Usage] = None


class ProviderFailure(Exception):
    """Classified vendor failure. Raised inside an adapter, never outside it."""

    def __init__(self, outcome: AttemptOutcome, detail: str) -> None:
        super().__init__(detail)
        self.outcome = outcome
        self.detail = detail


def error_type_from_body(body: str) -> str:
    """Best-effort extraction of a vendor error type/status string from a JSON error body."""
    try:
        data = json.loads(body)
    except ValueError:
        return ""
    if not isinstance(data, dict):
        return ""
    error = data.get("error")
    if isinstance(error, dict):
        return str(error.get("type") or error.get("status") or error.get("code") or "")
    if isinstance(error, str):
        return error
    return ""


class ChatAdapter(ABC):
    """
    Abstract base class for chat adapters.

    Each provider dialect implements the payload/response translation and
    names its endpoint; this class owns the HTTP cycle and turns every
    ordinary vendor failure into an AttemptOutcome instead of raising.

    Expected keys in `self.config`:
    - model:    model name (filled in by the registry from the ModelSpec)
    - api_key:  credential, required unless `requires_api_key` is False
    - api_base: optional base URL override
    - timeout:  optional request timeout in seconds (default: 60)
    """

    provider: str = ""
    default_api_base: str = ""
    requires_api_key: bool = True
    # "sse" for `data: {...}` event streams, "ndjson" for one JSON object per line
    stream_format: str = "sse"

    def __init__(
        self,
        config: Dict[str, Any],
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.config = config
        self.transport = transport

    @property
    def model(self) -> str:
        return self.config["model"]

    @property
    def api_base(self) -> str:
        return str(self.config.get("api_base") or self.default_api_base).rstrip("/")

    @property
    def api_key(self) -> str:
        return str(self.config.get("api_key") or "")

    @property
    def timeout(self) -> float:
        return float(self.config.get("timeout") or 60)

    # ---- dialect contract ----

    @abstractmethod
    def to_payload(
        self,
        messages: Sequence[CanonicalMessage],
        max_tokens: int,
        temperature: float,
        stream: bool = False,
    ) -> Dict[str, Any]:
        """Translate canonical messages into this vendor's request body."""
        raise NotImplementedError

    @abstractmethod
    def from_response(self, data: Dict[str, Any]) -> str:
        """Extract the answer text from a decoded 2xx response body."""
        raise NotImplementedError

    @abstractmethod
    def endpoint(self, stream: bool) -> Tuple[str, Dict[str, str]]:
        """Return (path, query params) relative to `api_base`."""
        raise NotImplementedError

    def headers(self) -> Dict[str, str]:
        return {"Content-Type": "application/json"}

    def supports_streaming(self) -> bool:
        return True

    def extract_usage(self, data: Dict[str, Any]) -> Optional[Usage]:
        return None

    def decode_stream_event(self, event: Dict[str, Any]) -> Optional[str]:
        """Return the text fragment carried by one stream event, if any."""
        return None

    def classify_status(self, status_code: int, body: str) -> AttemptOutcome:
        if status_code in (401, 403):
            return AttemptOutcome.AUTH_ERROR
        if status_code == 429:
            return AttemptOutcome.RATE_LIMITED
        if status_code >= 500:
            return AttemptOutcome.NETWORK_ERROR
        return AttemptOutcome.INVALID_RESPONSE

    # ---- HTTP cycle ----

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.api_base,
            timeout=self.timeout,
            trust_env=False,
            transport=self.transport,
        )

    def _check_credentials(self) -> None:
        if self.requires_api_key and not self.api_key:
            raise ProviderFailure(
                AttemptOutcome.AUTH_ERROR,
                f"no API key configured for provider '{self.provider}'",
            )

    def _raise_for_status(self, status_code: int, body: str) -> None:
        if 200 <= status_code < 300:
            return
        outcome = self.classify_status(status_code, body)
        raise ProviderFailure(outcome, f"HTTP {status_code}: {body[:_SNIPPET_CHARS]}")

    async def _post(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        path, params = self.endpoint(stream=False)
        log.debug(
            "%s POST %s%s model=%s messages=%d",
            self.provider,
            self.api_base,
            path,
            self.model,
            len(payload.get("messages") or payload.get("contents") or ()),
        )
        async with self._client() as client:
            response = await client.post(path, params=params, headers=self.headers(), json=payload)
            log.debug("%s status_code=%d", self.provider, response.status_code)
            self._raise_for_status(response.status_code, response.text)
            try:
                data = response.json()
            except ValueError as exc:
                raise ProviderFailure(
                    AttemptOutcome.INVALID_RESPONSE, "response body is not valid JSON"
                ) from exc
        if not isinstance(data, dict):
            raise ProviderFailure(AttemptOutcome.INVALID_RESPONSE, "response body is not a JSON object")
        return data

    async def _iter_events(self, response: httpx.Response) -> AsyncIterator[Dict[str, Any]]:
        async for line in response.aiter_lines():
            line = line.strip()
            if not line:
                continue
            if self.stream_format == "sse":
                # event:, id: and comment lines carry nothing the dialects need
                if not line.startswith("data:"):
                    continue
                line = line[len("data:"):].strip()
                if line == "[DONE]":
                    return
            try:
                event = json.loads(line)
            except json.JSONDecodeError as exc:
                raise ProviderFailure(
                    AttemptOutcome.INVALID_RESPONSE,
                    f"undecodable stream chunk: {line[:100]}",
                ) from exc
            if isinstance(event, dict):
                yield event

    async def chat(
        self,
        messages: Sequence[CanonicalMessage],
        max_tokens: int,
        temperature: float,
    ) -> Completion:
        """
        Run one request/response cycle.

        MalformedRequest from `to_payload` propagates; every vendor failure
        comes back as a Completion carrying its outcome.
        """
        payload = self.to_payload(messages, max_tokens, temperature)
        try:
            self._check_credentials()
            data = await self._post(payload)
            try:
                text = self.from_response(data)
            except (KeyError, IndexError, TypeError, ValueError) as exc:
                raise ProviderFailure(
                    AttemptOutcome.INVALID_RESPONSE,
                    f"unexpected response shape: {exc!r}",
                ) from exc
        except ProviderFailure as exc:
            return Completion(outcome=exc.outcome, detail=exc.detail)
        except httpx.TimeoutException as exc:
            return Completion(outcome=AttemptOutcome.NETWORK_ERROR, detail=f"timeout: {exc!r}")
        except httpx.TransportError as exc:
            return Completion(outcome=AttemptOutcome.NETWORK_ERROR, detail=f"transport error: {exc!r}")
        except httpx.DecodingError as exc:
            return Completion(outcome=AttemptOutcome.INVALID_RESPONSE, detail=f"undecodable body: {exc!r}")
        return Completion(outcome=AttemptOutcome.SUCCESS, text=text, usage=self.extract_usage(data))

    async def chat_stream(
        self,
        messages: Sequence[CanonicalMessage],
        max_tokens: int,
        temperature: float,
    ) -> AsyncIterator[StreamChunk]:
        """
        Run one streaming cycle.

        Yields chunks with structure:
        - StreamChunk(type="content", content="...") for each decoded fragment, in arrival order
        - StreamChunk(type="done") once the vendor closes the stream normally
        - StreamChunk(type="error", outcome=..., detail="...") on any classified failure
        """
        payload = self.to_payload(messages, max_tokens, temperature, stream=True)
        try:
            self._check_credentials()
            path, params = self.endpoint(stream=True)
            log.debug("%s STREAM %s%s model=%s", self.provider, self.api_base, path, self.model)
            async with self._client() as client:
                async with client.stream(
                    "POST", path, params=params, headers=self.headers(), json=payload
                ) as response:
                    if response.status_code >= 300:
                        body = (await response.aread()).decode("utf-8", "replace")
                        self._raise_for_status(response.status_code, body)
                    async for event in self._iter_events(response):
                        try:
                            fragment = self.decode_stream_event(event)
                        except (KeyError, IndexError, TypeError) as exc:
                            raise ProviderFailure(
                                AttemptOutcome.INVALID_RESPONSE,
                                f"unexpected stream event shape: {exc!r}",
                            ) from exc
                        if fragment:
                            yield StreamChunk(type="content", content=fragment)
        except ProviderFailure as exc:
            yield StreamChunk(type="error", outcome=exc.outcome, detail=exc.detail)
            return
        except httpx.TimeoutException as exc:
            yield StreamChunk(type="error", outcome=AttemptOutcome.NETWORK_ERROR, detail=f"timeout: {exc!r}")
            return
        except httpx.TransportError as exc:
            yield StreamChunk(
                type="error",
                outcome=AttemptOutcome.NETWORK_ERROR,
                detail=f"transport error: {exc!r}",
            )
            return
        except httpx.DecodingError as exc:
            yield StreamChunk(
                type="error",
                outcome=AttemptOutcome.INVALID_RESPONSE,
                detail=f"undecodable stream body: {exc!r}",
            )
            return

        yield StreamChunk(type="done")
