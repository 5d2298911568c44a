from __future__ import annotations

from .chain import RetryingChain, RPCResponseError
from .retry import (
    DEFAULT_RETRYABLE_ERROR_PATTERNS,
    ErrorClassification,
    ErrorKind,
    ResilientTransport,
    RetryPolicy,
    classify_error,
)

__all__ = [
    "DEFAULT_RETRYABLE_ERROR_PATTERNS",
    "ErrorClassification",
    "ErrorKind",
    "ResilientTransport",
    "RetryPolicy",
    "RetryingChain",
    "RPCResponseError",
    "classify_error",
]
