"""Parsing of "provider/model" strings into an ordered primary + fallback chain."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Tuple, Union

from .adapter.registry import get_adapter_class
from .errors import ConfigurationError


@dataclass(frozen=True)
class ModelSpec:
    provider_id: str
    model_name: str

    def __str__(self) -> str:
        return f"{self.provider_id}/{self.model_name}"


@dataclass(frozen=True)
class ModelChain:
    primary: ModelSpec
    fallbacks: Tuple[ModelSpec, ...] = ()

    @property
    def candidates(self) -> Tuple[ModelSpec, ...]:
        """Primary first, then fallbacks in configured order. Duplicates are kept."""
        return (self.primary,) + self.fallbacks

    def __len__(self) -> int:
        return 1 + len(self.fallbacks)


def parse_model_spec(text: str) -> ModelSpec:
    """
    Parse "provider/model" into a ModelSpec.

    The string is trimmed and must contain exactly one "/" with a non-empty
    provider and model on either side.
    """
    if not isinstance(text, str):
        raise ConfigurationError(f"Model spec must be a string, got {type(text).__name__}")

    value = text.strip()
    if not value:
        raise ConfigurationError("Model spec is empty")
    if value.count("/") != 1:
        raise ConfigurationError(
            f"Model spec {value!r} must have the form 'provider/model' with exactly one '/'"
        )

    provider, model = (part.strip() for part in value.split("/"))
    if not provider or not model:
        raise ConfigurationError(f"Model spec {value!r} is missing a provider or model name")
    return ModelSpec(provider_id=provider.lower(), model_name=model)


def _fallback_strings(fallbacks: Union[None, str, Iterable[str]]) -> Tuple[str, ...]:
    if fallbacks is None:
        return ()
    if isinstance(fallbacks, str):
        return tuple(item for item in fallbacks.split(",") if item.strip())
    return tuple(fallbacks)


def resolve_model_chain(
    primary: Optional[str],
    fallbacks: Union[None, str, Iterable[str]] = None,
) -> ModelChain:
    """
    Build a ModelChain from configuration strings.

    Every spec is checked against the adapter registry here, so an unknown
    provider fails at resolution time rather than halfway through a call.
    """
    if primary is None or not str(primary).strip():
        raise ConfigurationError("A primary model is required")

    specs = [parse_model_spec(item) for item in (primary,) + _fallback_strings(fallbacks)]
    for spec in specs:
        get_adapter_class(spec.provider_id)
    return ModelChain(primary=specs[0], fallbacks=tuple(specs[1:]))
