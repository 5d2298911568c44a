"""Curvance lending SDK: freshness-aware action routing over a resilient transport."""

from __future__ import annotations

from .client import CurvanceClient
from .domain import (
    AdapterKind,
    AssetInfo,
    CallAction,
    SignedPricePayload,
    Submission,
    TokenInfo,
    TokenKind,
)
from .errors import (
    ApprovalRequiredError,
    CapabilityError,
    CollateralCapError,
    ContractRejectionError,
    ConversionError,
    PriceUnavailableError,
    QuorumError,
    QuoteError,
    QuoteHTTPError,
    RetriesExhaustedError,
    SdkError,
    TransportError,
    UnclassifiedError,
)
from .settings import SdkSettings

__version__ = "0.1.0"

__all__ = [
    "AdapterKind",
    "ApprovalRequiredError",
    "AssetInfo",
    "CallAction",
    "CapabilityError",
    "CollateralCapError",
    "ContractRejectionError",
    "ConversionError",
    "CurvanceClient",
    "PriceUnavailableError",
    "QuorumError",
    "QuoteError",
    "QuoteHTTPError",
    "RetriesExhaustedError",
    "SdkError",
    "SdkSettings",
    "Submission",
    "SignedPricePayload",
    "TokenInfo",
    "TokenKind",
    "TransportError",
    "UnclassifiedError",
    "__version__",
]
