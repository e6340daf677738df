"""
Generation orchestrator: walks a model chain until one candidate succeeds.

Each call is an isolated state machine

    Idle -> Attempting(i) -> Succeeded | Advancing -> Attempting(i + 1) | Exhausted

over the flattened candidate list [primary, *fallbacks]. Candidates are tried
strictly one at a time and at most once per call; there is no backoff and no
looping back to the primary.
"""

from __future__ import annotations

import asyncio
import functools
import inspect
import logging
import time
from dataclasses import dataclass
from typing import (
    Any,
    AsyncIterator,
    Awaitable,
    Callable,
    List,
    Mapping,
    Optional,
    Sequence,
    Tuple,
    Union,
)

import httpx

from .adapter.base_adapter import ChatAdapter, Completion, StreamChunk, Usage
from .adapter.registry import get_chat_adapter
from .chain import ModelChain, ModelSpec
from .errors import AllCandidatesFailedError, AttemptOutcome, MalformedRequest
from .messages import CanonicalMessage, validate_messages

log = logging.getLogger("relay.orchestrator")

TokenCallback = Callable[[str], Union[None, Awaitable[None]]]
AdapterFactory = Callable[[ModelSpec], ChatAdapter]


@dataclass(frozen=True)
class AttemptRecord:
    model: ModelSpec
    outcome: AttemptOutcome
    latency_ms: float
    detail: str = ""

    def to_dict(self) -> dict:
        return {
            "model": str(self.model),
            "outcome": self.outcome.value,
            "latency_ms": round(self.latency_ms, 1),
            "detail": self.detail,
        }


@dataclass(frozen=True)
class GenerationResult:
    text: str
    model_used: ModelSpec
    attempts: Tuple[AttemptRecord, ...]
    usage: Optional[Usage] = None


@dataclass(frozen=True)
class GenerationRequest:
    messages: Sequence[CanonicalMessage]
    chain: ModelChain
    max_tokens: int = 4096
    temperature: float = 0.7
    on_token: Optional[TokenCallback] = None

    def validate(self) -> None:
        validate_messages(self.messages)
        if isinstance(self.max_tokens, bool) or not isinstance(self.max_tokens, int) or self.max_tokens <= 0:
            raise MalformedRequest(f"max_tokens must be a positive integer, got {self.max_tokens!r}")
        if isinstance(self.temperature, bool) or not isinstance(self.temperature, (int, float)):
            raise MalformedRequest(f"temperature must be a number, got {self.temperature!r}")
        if not 0 <= self.temperature <= 2:
            raise MalformedRequest(f"temperature must be within [0, 2], got {self.temperature}")


async def _deliver(on_token: TokenCallback, fragment: str) -> None:
    result = on_token(fragment)
    if inspect.isawaitable(result):
        await result


async def _next_chunk(stream: AsyncIterator[StreamChunk]) -> StreamChunk:
    return await stream.__anext__()


async def _attempt_once(
    adapter: ChatAdapter,
    request: GenerationRequest,
    timeout: Optional[float],
) -> Completion:
    try:
        return await asyncio.wait_for(
            adapter.chat(request.messages, request.max_tokens, request.temperature),
            timeout,
        )
    except asyncio.TimeoutError:
        return Completion(outcome=AttemptOutcome.NETWORK_ERROR, detail=f"no response within {timeout}s")


async def _attempt_streaming(
    adapter: ChatAdapter,
    request: GenerationRequest,
    on_token: TokenCallback,
    timeout: Optional[float],
) -> Completion:
    """
    Incremental receive loop.

    Fragments reach `on_token` in arrival order, each one before the next is
    requested. Fragments already delivered are not rolled back on failure.
    """
    parts: List[str] = []
    stream = adapter.chat_stream(request.messages, request.max_tokens, request.temperature)
    try:
        while True:
            try:
                chunk = await asyncio.wait_for(_next_chunk(stream), timeout)
            except asyncio.TimeoutError:
                return Completion(
                    outcome=AttemptOutcome.NETWORK_ERROR,
                    detail=f"no stream chunk within {timeout}s after {len(parts)} fragment(s)",
                )
            except StopAsyncIteration:
                return Completion(
                    outcome=AttemptOutcome.NETWORK_ERROR,
                    detail="stream closed without a terminal chunk",
                )

            if chunk.type == "content":
                parts.append(chunk.content)
                await _deliver(on_token, chunk.content)
            elif chunk.type == "error":
                return Completion(outcome=chunk.outcome, detail=chunk.detail)
            else:
                return Completion(
                    outcome=AttemptOutcome.SUCCESS,
                    text="".join(parts),
                    usage=chunk.usage,
                )
    finally:
        await stream.aclose()


async def generate(
    request: GenerationRequest,
    credentials: Optional[Mapping[str, Mapping[str, Any]]] = None,
    *,
    timeout: Optional[float] = None,
    adapter_factory: Optional[AdapterFactory] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> GenerationResult:
    """
    Produce one answer for `request`, falling back through its model chain.

    Args:
        request:         validated before any vendor is contacted
        credentials:     read-only {provider_id: settings} mapping for the adapter factory
        timeout:         seconds allowed per request, or per stream chunk when streaming
        adapter_factory: override for building adapters (defaults to the registry)
        transport:       httpx transport handed to registry-built adapters

    Raises:
        MalformedRequest:         the request violates an invariant (never retried)
        UnknownProviderError:     a candidate names an unregistered dialect
        AllCandidatesFailedError: every candidate failed; carries every attempt in order
    """
    request.validate()
    factory = adapter_factory or functools.partial(
        get_chat_adapter, credentials=credentials, transport=transport
    )

    candidates = request.chain.candidates
    attempts: List[AttemptRecord] = []

    for index, spec in enumerate(candidates, start=1):
        adapter = factory(spec)
        on_token = request.on_token
        streaming = on_token is not None and adapter.supports_streaming()
        log.info(
            "attempt %d/%d model=%s streaming=%s messages=%d",
            index,
            len(candidates),
            spec,
            streaming,
            len(request.messages),
        )

        started = time.perf_counter()
        if on_token is not None and streaming:
            completion = await _attempt_streaming(adapter, request, on_token, timeout)
        else:
            completion = await _attempt_once(adapter, request, timeout)
        latency_ms = (time.perf_counter() - started) * 1000.0

        attempts.append(
            AttemptRecord(
                model=spec,
                outcome=completion.outcome,
                latency_ms=latency_ms,
                detail=completion.detail,
            )
        )

        if completion.ok:
            log.info(
                "attempt %d/%d model=%s succeeded in %.0fms chars=%d",
                index,
                len(candidates),
                spec,
                latency_ms,
                len(completion.text),
            )
            return GenerationResult(
                text=completion.text,
                model_used=spec,
                attempts=tuple(attempts),
                usage=completion.usage,
            )

        log.warning(
            "attempt %d/%d model=%s failed outcome=%s in %.0fms detail=%s",
            index,
            len(candidates),
            spec,
            completion.outcome.value,
            latency_ms,
            completion.detail,
        )

    log.error("model chain exhausted after %d attempt(s)", len(attempts))
    raise AllCandidatesFailedError(attempts)
