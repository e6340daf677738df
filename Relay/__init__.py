"""
Relay: one canonical chat-generation call routed across LLM vendors.

This package provides:
- A vendor-neutral message model (messages.py)
- Provider adapters that translate to and from each vendor dialect (adapter/)
- A model-chain resolver for "provider/model" strings (chain.py)
- An orchestrator that walks the chain until one candidate succeeds (orchestrator.py)
"""

from .chain import ModelChain, ModelSpec, parse_model_spec, resolve_model_chain
from .errors import (
    AllCandidatesFailedError,
    AttemptOutcome,
    ConfigurationError,
    MalformedRequest,
    RelayError,
    UnknownProviderError,
)
from .messages import CanonicalMessage, Role, messages_from_dicts
from .orchestrator import (
    AttemptRecord,
    GenerationRequest,
    GenerationResult,
    generate,
)

__version__ = "0.1.0"

__all__ = [
    "AllCandidatesFailedError",
    "AttemptOutcome",
    "AttemptRecord",
    "CanonicalMessage",
    "ConfigurationError",
    "GenerationRequest",
    "GenerationResult",
    "MalformedRequest",
    "ModelChain",
    "ModelSpec",
    "RelayError",
    "Role",
    "UnknownProviderError",
    "generate",
    "messages_from_dicts",
    "parse_model_spec",
    "resolve_model_chain",
]
