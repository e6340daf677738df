from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Sequence, Tuple

if TYPE_CHECKING:
    from .orchestrator import AttemptRecord


class AttemptOutcome(str, Enum):
    """Classification of one request/response cycle against one candidate model."""

    SUCCESS = "success"
    NETWORK_ERROR = "networkError"
    AUTH_ERROR = "authError"
    RATE_LIMITED = "rateLimited"
    INVALID_RESPONSE = "invalidResponse"

    @classmethod
    def parse(cls, value: str) -> "AttemptOutcome":
        """Accept either the wire value ("networkError") or the member name ("NETWORK_ERROR")."""
        for outcome in cls:
            if value in (outcome.value, outcome.name, outcome.name.lower()):
                return outcome
        raise ValueError(f"Unknown attempt outcome: {value}")


class RelayError(Exception):
    """Base class for every error raised out of the Relay package."""


class MalformedRequest(RelayError):
    """Caller-supplied data violates an invariant. Never retried, never sent to a vendor."""


class ConfigurationError(RelayError):
    """A model string or configuration block cannot be interpreted."""


class UnknownProviderError(ConfigurationError):
    """A model spec names a provider that has no registered dialect."""

    def __init__(self, provider_id: str, known: Sequence[str] = ()) -> None:
        self.provider_id = provider_id
        self.known = tuple(known)
        hint = f" (known providers: {', '.join(self.known)})" if self.known else ""
        super().__init__(f"Unsupported provider: {provider_id!r}{hint}")


class AllCandidatesFailedError(RelayError):
    """
    Every candidate in the model chain failed.

    `attempts` keeps the full history in the order the candidates were tried,
    so callers can tell "no credentials anywhere" apart from "one model is down".
    """

    def __init__(self, attempts: Sequence["AttemptRecord"]) -> None:
        self.attempts: Tuple["AttemptRecord", ...] = tuple(attempts)
        lines = [f"All {len(self.attempts)} candidate model(s) failed:"]
        for index, attempt in enumerate(self.attempts, start=1):
            line = f"  {index}. {attempt.model} -> {attempt.outcome.value}"
            if attempt.detail:
                line += f": {attempt.detail}"
            lines.append(line)
        super().__init__("\n".join(lines))
