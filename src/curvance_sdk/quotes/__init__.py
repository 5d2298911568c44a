from __future__ import annotations

from .base import BaseQuoteProvider, Quote, SwapAction
from .kuru import KuruProvider
from .kyberswap import KyberSwapProvider
from .rate_limit import Credential, CredentialCache, RateLimiter

__all__ = [
    "BaseQuoteProvider",
    "Credential",
    "CredentialCache",
    "KuruProvider",
    "KyberSwapProvider",
    "Quote",
    "RateLimiter",
    "SwapAction",
]
