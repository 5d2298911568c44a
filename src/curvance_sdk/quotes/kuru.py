from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Callable

from ..errors import QuoteError
from ..transport.retry import ResilientTransport
from .base import BaseQuoteProvider, Quote, hex_to_bytes
from .rate_limit import Credential, CredentialCache, RateLimiter

if TYPE_CHECKING:
    from ..settings import SdkSettings

logger = logging.getLogger(__name__)

REFERRER_FEE_BPS = 10


class KuruProvider(BaseQuoteProvider):
    """Credentialed provider with a per-wallet token and request ceiling.

    A JWT is obtained per wallet via ``/generate-token`` and cached until it
    expires; every quote is paced against the rate the token grants.
    """

    def __init__(
        self,
        transport: ResilientTransport,
        api_url: str,
        router: str,
        referral_address: str,
        rate_limiter: RateLimiter | None = None,
        timeout: float = 10.0,
        clock: Callable[[], float] = time.time,
    ):
        super().__init__(transport, api_url, router, referral_address, timeout)
        self.rate_limiter = rate_limiter or RateLimiter()
        self.credentials = CredentialCache(self.fetch_credential, clock=clock)

    @classmethod
    def from_settings(
        cls,
        settings: SdkSettings,
        transport: ResilientTransport,
        rate_limiter: RateLimiter | None = None,
    ) -> "KuruProvider":
        return cls(
            transport,
            api_url=settings.kuru_api_url,
            router=settings.kuru_router,
            referral_address=settings.referral_address,
            rate_limiter=rate_limiter or RateLimiter(window=settings.quote_rate_window),
            timeout=settings.quote_timeout,
        )

    @property
    def provider_name(self) -> str:
        return "kuru"

    def action_slippage(self, slippage_bps: int) -> int:
        return slippage_bps

    async def fetch_credential(self, wallet: str) -> Credential:
        body = await self.request_json(
            "POST",
            f"{self.api_url}/generate-token",
            "generate-token",
            json={"user_address": wallet},
            headers={"Content-Type": "application/json"},
        )
        try:
            return Credential(
                token=body["token"],
                expires_at=float(body["expires_at"]),
                requests_per_window=max(1, int(body["rate_limit"]["rps"])),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise QuoteError(f"Malformed Kuru token response: {body}") from e

    async def quote(
        self, wallet: str, token_in: str, token_out: str, amount: int, slippage_bps: int
    ) -> Quote:
        self.check_quote_args(amount, slippage_bps)
        credential = await self.credentials.ensure(wallet)
        await self.rate_limiter.throttle(wallet, credential.requests_per_window)

        data = await self.request_json(
            "POST",
            f"{self.api_url}/quote",
            "quote",
            json={
                "userAddress": wallet,
                "tokenIn": token_in,
                "tokenOut": token_out,
                "amount": str(amount),
                "referrerAddress": self.referral_address,
                "referrerFeeBps": REFERRER_FEE_BPS,
                "slippage_tolerance": slippage_bps,
            },
            headers={
                "Content-Type": "application/json",
                "Authorization": f"Bearer {credential.token}",
            },
        )
        try:
            transaction = data["transaction"]
            return Quote(
                to=transaction["to"],
                calldata=hex_to_bytes(transaction["calldata"]),
                min_out=int(data["minOut"]),
                out=int(data["output"]),
                raw=data,
            )
        except (KeyError, TypeError, ValueError) as e:
            raise QuoteError(f"Malformed Kuru quote response: {data}") from e

    def close(self) -> None:
        self.credentials.clear()
        self.rate_limiter.clear()
