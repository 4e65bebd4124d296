"""
Shared types for the Docker Hub lookup layer.

RetryPolicy configures the retry executor, FetchResult is the tagged
outcome produced by the HTTP clients, and ReadmeFallback records what
happened when the GitHub README fallback was consulted.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from hub.errors import HubError, NotFoundError


@dataclass(frozen=True)
class RetryPolicy:
    """
    Immutable retry configuration.

    Attempt i (1-indexed) waits base_delay_ms * backoff_multiplier ** (i - 2)
    before running, for i > 1. Each attempt is bounded by timeout_ms.
    """
    max_attempts: int = 3
    base_delay_ms: float = 1000
    backoff_multiplier: float = 2.0
    timeout_ms: float = 10000

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1: {self.max_attempts}")
        if self.base_delay_ms < 0:
            raise ValueError(f"base_delay_ms cannot be negative: {self.base_delay_ms}")
        if self.backoff_multiplier < 1:
            raise ValueError(f"backoff_multiplier must be >= 1: {self.backoff_multiplier}")
        if self.timeout_ms <= 0:
            raise ValueError(f"timeout_ms must be positive: {self.timeout_ms}")

    def delay_before(self, attempt: int) -> float:
        """Delay in milliseconds before the given 1-indexed attempt."""
        if attempt <= 1:
            return 0.0
        return self.base_delay_ms * (self.backoff_multiplier ** (attempt - 2))


class FetchOutcome(Enum):
    """Outcome of a single upstream fetch."""
    SUCCESS = "success"
    NOT_FOUND = "not_found"
    TRANSIENT_FAILURE = "transient_failure"
    PERMANENT_FAILURE = "permanent_failure"


@dataclass(frozen=True)
class FetchResult:
    """
    Tagged result of one HTTP fetch.

    Clients build these from a response status; callers turn them into a
    payload or a raised HubError with unwrap().
    """
    outcome: FetchOutcome
    payload: Any = None
    error: Optional[HubError] = None

    @classmethod
    def success(cls, payload: Any) -> 'FetchResult':
        return cls(FetchOutcome.SUCCESS, payload=payload)

    @classmethod
    def from_error(cls, error: HubError) -> 'FetchResult':
        """Classify an error into the matching failure outcome."""
        if isinstance(error, NotFoundError):
            outcome = FetchOutcome.NOT_FOUND
        elif error.retryable:
            outcome = FetchOutcome.TRANSIENT_FAILURE
        else:
            outcome = FetchOutcome.PERMANENT_FAILURE
        return cls(outcome, error=error)

    @property
    def ok(self) -> bool:
        return self.outcome is FetchOutcome.SUCCESS

    def unwrap(self) -> Any:
        """Return the payload, or raise the recorded error."""
        if self.outcome is FetchOutcome.SUCCESS:
            return self.payload
        raise self.error


class FallbackOutcome(Enum):
    """What the README fallback did."""
    FOUND = "found"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class ReadmeFallback:
    """
    Explicit result of the best-effort GitHub README fallback.

    FOUND carries content; SKIPPED and FAILED carry a reason and leave the
    lookup with no README instead of failing it.
    """
    outcome: FallbackOutcome
    content: Optional[str] = None
    reason: Optional[str] = None
    source_url: Optional[str] = None

    @classmethod
    def found(cls, content: str, source_url: Optional[str] = None) -> 'ReadmeFallback':
        return cls(FallbackOutcome.FOUND, content=content, source_url=source_url)

    @classmethod
    def skipped(cls, reason: str) -> 'ReadmeFallback':
        return cls(FallbackOutcome.SKIPPED, reason=reason)

    @classmethod
    def failed(cls, reason: str, source_url: Optional[str] = None) -> 'ReadmeFallback':
        return cls(FallbackOutcome.FAILED, reason=reason, source_url=source_url)
