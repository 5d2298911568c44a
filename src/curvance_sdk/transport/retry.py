"""Bounded exponential-backoff retries with error classification."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Iterable, TypeVar

import backoff
import requests

from ..errors import (
    ContractRejectionError,
    RetriesExhaustedError,
    SdkError,
    UnclassifiedError,
)

if TYPE_CHECKING:
    from ..settings import SdkSettings

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Deterministic chain or input failures. Retrying cannot change the outcome.
CONTRACT_ERROR_PATTERNS = (
    "revert",
    "execution reverted",
    "transaction reverted",
    "insufficient funds",
    "gas required exceeds allowance",
    "nonce too high",
    "nonce too low",
    "replacement transaction underpriced",
    "already pending",
    "invalid opcode",
    "stack overflow",
    "stack underflow",
    "out of gas",
    "call_exception",
    "unpredictable_gas_limit",
    "invalid_argument",
    "missing_argument",
    "unexpected_argument",
    "numeric_fault",
)

RATE_LIMIT_PATTERNS = ("rate limit", "too many requests", "429")

NETWORK_PATTERNS = (
    "timeout",
    "timed out",
    "network error",
    "connection",
    "econnreset",
    "enotfound",
    "etimedout",
    "socket hang up",
    "request timeout",
    "network timeout",
    "connect timeout",
)

INFRASTRUCTURE_PATTERNS = (
    "server error",
    "internal server error",
    "bad gateway",
    "service unavailable",
    "gateway timeout",
    "proxy error",
    "upstream error",
    "500",
    "502",
    "503",
    "504",
)

RPC_PATTERNS = (
    "rpc error",
    "node error",
    "provider error",
    "endpoint error",
    "method not found",
    "parse error",
    "block not found",
    "header not found",
    "missing trie node",
)

TRANSIENT_PATTERNS = (
    "temporary failure",
    "temporarily unavailable",
    "try again",
    "retry",
)

DEFAULT_RETRYABLE_ERROR_PATTERNS: tuple[str, ...] = (
    RATE_LIMIT_PATTERNS
    + NETWORK_PATTERNS
    + INFRASTRUCTURE_PATTERNS
    + RPC_PATTERNS
    + TRANSIENT_PATTERNS
)

NETWORK_EXCEPTIONS = (
    requests.exceptions.ConnectionError,
    requests.exceptions.Timeout,
    asyncio.TimeoutError,
    TimeoutError,
    ConnectionError,
)


class ErrorKind(str, Enum):
    CONTRACT = "contract"
    RATE_LIMIT = "rate_limit"
    NETWORK = "network"
    INFRASTRUCTURE = "infrastructure"
    RPC = "rpc"
    TRANSIENT = "transient"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class ErrorClassification:
    kind: ErrorKind
    retryable: bool
    message: str


def _status_of(error: BaseException) -> int | None:
    response = getattr(error, "response", None)
    status = getattr(response, "status_code", None)
    if status is None:
        status = getattr(error, "status_code", None)
    return status if isinstance(status, int) else None


def _matches(haystack: str, patterns: Iterable[str]) -> bool:
    return any(p.lower() in haystack for p in patterns)


def classify_error(
    error: BaseException,
    retryable_patterns: Iterable[str] = DEFAULT_RETRYABLE_ERROR_PATTERNS,
) -> ErrorClassification:
    """Classify a failure as contract-class, transient or unknown.

    The lower-cased message, the error ``code`` attribute and any HTTP status
    are inspected. Contract patterns win over everything else; an error that
    matches none of ``retryable_patterns`` (and carries no retryable status or
    network exception type) is unknown and therefore not retried.
    """
    message = str(error)
    code = getattr(error, "code", None)
    haystack = f"{message} {code if code is not None else ''}".lower()

    if _matches(haystack, CONTRACT_ERROR_PATTERNS):
        return ErrorClassification(ErrorKind.CONTRACT, False, message)

    status = _status_of(error)
    if status == 429:
        return ErrorClassification(ErrorKind.RATE_LIMIT, True, message)
    if status is not None and 500 <= status <= 599:
        return ErrorClassification(ErrorKind.INFRASTRUCTURE, True, message)
    if isinstance(error, NETWORK_EXCEPTIONS):
        return ErrorClassification(ErrorKind.NETWORK, True, message)

    if not _matches(haystack, retryable_patterns):
        return ErrorClassification(ErrorKind.UNKNOWN, False, message)

    if _matches(haystack, RATE_LIMIT_PATTERNS):
        kind = ErrorKind.RATE_LIMIT
    elif _matches(haystack, NETWORK_PATTERNS):
        kind = ErrorKind.NETWORK
    elif _matches(haystack, INFRASTRUCTURE_PATTERNS):
        kind = ErrorKind.INFRASTRUCTURE
    elif _matches(haystack, RPC_PATTERNS):
        kind = ErrorKind.RPC
    else:
        kind = ErrorKind.TRANSIENT
    return ErrorClassification(kind, True, message)


RetryCallback = Callable[[int, BaseException, float], None]


@dataclass(frozen=True)
class RetryPolicy:
    """How many times, and how patiently, a failed call is retried.

    Delays are in seconds. The delay before retry ``a`` (0-based) is
    ``min(max_delay, base_delay * backoff_multiplier ** a)``; no jitter.
    """

    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 10.0
    backoff_multiplier: float = 2.0
    retryable_error_patterns: tuple[str, ...] = DEFAULT_RETRYABLE_ERROR_PATTERNS
    on_retry: RetryCallback | None = field(default=None, compare=False)

    def __post_init__(self) -> None:
        if isinstance(self.max_retries, bool) or not isinstance(self.max_retries, int):
            raise ValueError("max_retries must be an int")
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.base_delay <= 0:
            raise ValueError("base_delay must be positive")
        if self.max_delay < self.base_delay:
            raise ValueError("max_delay must be >= base_delay")
        if self.backoff_multiplier <= 1:
            raise ValueError("backoff_multiplier must be > 1")
        object.__setattr__(
            self, "retryable_error_patterns", tuple(self.retryable_error_patterns)
        )

    @classmethod
    def from_settings(cls, settings: SdkSettings) -> "RetryPolicy":
        patterns = settings.retryable_error_patterns or DEFAULT_RETRYABLE_ERROR_PATTERNS
        return cls(
            max_retries=settings.max_retries,
            base_delay=settings.base_delay,
            max_delay=settings.max_delay,
            backoff_multiplier=settings.backoff_multiplier,
            retryable_error_patterns=tuple(patterns),
        )

    def delay_for(self, attempt: int) -> float:
        return min(self.max_delay, self.base_delay * self.backoff_multiplier**attempt)

    def updated(self, **changes: Any) -> "RetryPolicy":
        return replace(self, **changes)


@dataclass
class RetryAttemptState:
    """Bookkeeping for one logical call; never shared between calls."""

    attempts: int = 0
    last_error: BaseException | None = None
    last_delay: float = 0.0


class ResilientTransport:
    """Executes network operations under a retry policy.

    Non-retryable failures surface on first occurrence. Transient failures
    are retried up to ``policy.max_retries`` times and then surfaced as
    ``RetriesExhaustedError`` carrying the last error.
    """

    def __init__(self, policy: RetryPolicy | None = None):
        self._policy = policy or RetryPolicy()

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    def update_policy(self, **changes: Any) -> RetryPolicy:
        """Replace policy fields; calls already in flight keep their attempt bound."""
        self._policy = self._policy.updated(**changes)
        return self._policy

    def classify(self, error: BaseException) -> ErrorClassification:
        return classify_error(error, self._policy.retryable_error_patterns)

    def _is_surfaced_unchanged(self, error: BaseException) -> bool:
        return isinstance(error, SdkError) and not error.retry_eligible

    async def execute(
        self, operation: Callable[[], Awaitable[T]], context: str = "operation"
    ) -> T:
        policy = self._policy
        max_tries = policy.max_retries + 1
        state = RetryAttemptState()

        def _giveup(exc: Exception) -> bool:
            if self._is_surfaced_unchanged(exc):
                return True
            classification = self.classify(exc)
            if not classification.retryable:
                logger.debug(
                    "%s failed with non-retryable %s error: %s",
                    context,
                    classification.kind.value,
                    classification.message,
                )
            return not classification.retryable

        def _on_backoff(details: Any) -> None:
            exc = details["exception"]
            state.last_delay = details["wait"]
            logger.warning(
                "%s failed (attempt %d/%d): %s. Retrying in %.2fs...",
                context,
                details["tries"],
                max_tries,
                exc,
                details["wait"],
            )
            if policy.on_retry is not None:
                policy.on_retry(details["tries"], exc, details["wait"])

        @backoff.on_exception(
            backoff.expo,
            Exception,
            max_tries=max_tries,
            base=policy.backoff_multiplier,
            factor=policy.base_delay,
            max_value=policy.max_delay,
            jitter=None,
            giveup=_giveup,
            on_backoff=_on_backoff,
        )
        async def _attempt() -> T:
            state.attempts += 1
            try:
                return await operation()
            except Exception as exc:
                state.last_error = exc
                raise

        try:
            return await _attempt()
        except Exception as exc:
            if self._is_surfaced_unchanged(exc):
                raise
            classification = self.classify(exc)
            if isinstance(exc, SdkError) and not classification.retryable:
                raise
            if classification.kind is ErrorKind.CONTRACT:
                raise ContractRejectionError(
                    str(exc), classification, state.attempts
                ) from exc
            if classification.retryable:
                logger.error(
                    "%s failed after %d attempts: %s", context, state.attempts, exc
                )
                raise RetriesExhaustedError(
                    str(exc), classification, state.attempts, exc
                ) from exc
            raise UnclassifiedError(str(exc), classification, state.attempts) from exc
