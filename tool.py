from __future__ import annotations

from typing import Annotated, Any, Dict, List, Literal, Optional
import logging

from pydantic import BaseModel, Field

from Relay.chain import resolve_model_chain
from Relay.config.parser import (
    get_generation_defaults,
    get_model_chain_config,
    get_provider_credentials,
    load_config,
)
from Relay.errors import AllCandidatesFailedError, RelayError
from Relay.messages import messages_from_dicts
from Relay.orchestrator import GenerationRequest, generate


# -------- Relay (generate_text) --------
# Runs one chat generation across the configured model chain.
# Registered by the MCP server entrypoint (server.py).

_log_relay = logging.getLogger("relay.tool")


class GenerateMessage(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: str


class GeneratePayload(BaseModel):
    """Payload for Relay.generate_text.

    Semantics:
    - `messages` is the whole conversation in order; system turns may appear anywhere.
    - `primary` / `fallbacks` override the model chain from the configuration for this
      call only, each as a "provider/model" string.
    - `max_tokens` / `temperature` override runtime defaults for this call only.
    """

    messages: List[GenerateMessage] = Field(min_length=1)
    primary: Optional[str] = None
    fallbacks: Optional[List[str]] = None
    max_tokens: Optional[int] = Field(default=None, gt=0)
    temperature: Optional[float] = Field(default=None, ge=0, le=2)


async def generate_text(
    payload: Annotated[
        GeneratePayload,
        "Payload: messages (role/content list), optional primary/fallbacks 'provider/model' overrides, optional max_tokens and temperature.",
    ]
) -> Dict[str, Any]:
    """Generate one assistant reply for a conversation.

    The configured primary model is tried first, then each fallback in order,
    until one succeeds. The reply reports which model answered and every
    attempt made on the way, including failed ones.
    """
    if isinstance(payload, dict):
        payload = GeneratePayload(**payload)

    try:
        # configuration is re-read on every call so edits apply without a restart
        cfg = load_config()
        defaults = get_generation_defaults(cfg)
        primary, fallbacks = get_model_chain_config(cfg)
        if payload.primary is not None:
            primary = payload.primary
            fallbacks = []
        if payload.fallbacks is not None:
            fallbacks = payload.fallbacks

        _log_relay.info(
            "generate_text input messages=%d primary=%s fallbacks=%d",
            len(payload.messages),
            primary,
            len(fallbacks),
        )

        request = GenerationRequest(
            messages=messages_from_dicts(m.model_dump() for m in payload.messages),
            chain=resolve_model_chain(primary, fallbacks),
            max_tokens=payload.max_tokens or defaults["max_tokens"],
            temperature=(
                payload.temperature if payload.temperature is not None else defaults["temperature"]
            ),
        )
        result = await generate(
            request,
            get_provider_credentials(cfg),
            timeout=defaults["timeout"],
        )
    except AllCandidatesFailedError as exc:
        _log_relay.warning("generate_text exhausted chain attempts=%d", len(exc.attempts))
        return {
            "status": "error",
            "message": str(exc),
            "attempts": [a.to_dict() for a in exc.attempts],
        }
    except RelayError as exc:
        _log_relay.warning("generate_text rejected: %s", exc)
        return {"status": "error", "message": str(exc), "attempts": []}

    _log_relay.info(
        "generate_text output model=%s attempts=%d chars=%d",
        result.model_used,
        len(result.attempts),
        len(result.text),
    )
    usage = None
    if result.usage is not None:
        usage = {
            "input_tokens": result.usage.input_tokens,
            "output_tokens": result.usage.output_tokens,
        }
    return {
        "status": "ok",
        "text": result.text,
        "model": str(result.model_used),
        "attempts": [a.to_dict() for a in result.attempts],
        "usage": usage,
    }
