"""Error taxonomy surfaced by every SDK operation.

Every error keeps the original failure message. Errors raised on behalf of an
underlying exception chain it via ``__cause__``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, ClassVar

if TYPE_CHECKING:
    from .transport.retry import ErrorClassification


class SdkError(Exception):
    """Base exception for all curvance-sdk errors.

    SDK errors raised inside a retried operation are surfaced unchanged. With
    ``retry_eligible`` set the transport first classifies them like any other
    failure and only wraps them once retries are exhausted.
    """

    retry_eligible: ClassVar[bool] = False


class TransportError(SdkError):
    """A network call failed and will not be retried any further.

    :ivar classification: How the underlying failure was classified.
    :ivar attempts: Number of attempts made before surfacing.
    """

    def __init__(
        self,
        message: str,
        classification: ErrorClassification,
        attempts: int = 1,
    ):
        self.classification = classification
        self.attempts = attempts
        super().__init__(message)


class ContractRejectionError(TransportError):
    """Deterministic failure (revert, bad nonce, insufficient funds...)."""


class RetriesExhaustedError(TransportError):
    """Transient failure that persisted through every allowed retry."""

    def __init__(
        self,
        message: str,
        classification: ErrorClassification,
        attempts: int,
        last_error: BaseException,
    ):
        self.last_error = last_error
        super().__init__(message, classification, attempts)


class UnclassifiedError(TransportError):
    """Failure matching no known pattern; treated as non-retryable."""


class QuorumError(SdkError):
    """Not enough authorized signers contributed to a signed price payload."""

    def __init__(self, symbol: str, found: int, required: int):
        self.symbol = symbol
        self.found = found
        self.required = required
        super().__init__(
            f"Signed price quorum not met for {symbol}: "
            f"{found} of {required} required signers responded"
        )


class PriceUnavailableError(SdkError):
    """The oracle manager reported an error code instead of a clean price."""

    def __init__(self, asset: str, error_code: int, detail: str):
        self.asset = asset
        self.error_code = error_code
        super().__init__(
            f"Error getting price for asset {asset}: code {error_code} - {detail}"
        )


class ConversionError(SdkError, ValueError):
    """Malformed or out-of-range numeric input to a fixed-point conversion."""


class CapabilityError(SdkError):
    """The token variant does not support the requested action."""


class ApprovalRequiredError(SdkError):
    """An allowance or plugin delegation must be granted before the action."""


class QuoteError(SdkError):
    """A swap-quote provider rejected the request or returned a bad route."""


class QuoteHTTPError(QuoteError):
    """Quote provider answered with a non-success HTTP status.

    :ivar status_code: HTTP status code from the failed request.
    """

    retry_eligible = True

    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        super().__init__(f"HTTP {status_code}: {message}")


class CollateralCapError(SdkError):
    """A collateral deposit would exceed the token's remaining collateral cap."""
