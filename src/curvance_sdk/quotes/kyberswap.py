from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import requests

from ..constants import BPS, KYBERSWAP_CHAIN_NAMES
from ..errors import QuoteError, QuoteHTTPError
from ..transport.retry import ResilientTransport
from .base import BaseQuoteProvider, Quote, hex_to_bytes

if TYPE_CHECKING:
    from ..settings import SdkSettings

logger = logging.getLogger(__name__)


class KyberSwapHTTPError(QuoteHTTPError):
    """Non-2xx KyberSwap response carrying the provider's request id."""

    def __init__(self, status_code: int, message: str, code: int | None, request_id: str | None):
        self.code = code
        self.request_id = request_id
        super().__init__(
            status_code, f"KyberSwap API request failed [{request_id}]: {message} (code: {code})"
        )


class KyberSwapProvider(BaseQuoteProvider):
    """Stateless two-step provider: fetch a route, then build it."""

    def __init__(
        self,
        transport: ResilientTransport,
        api_url: str,
        router: str,
        referral_address: str,
        chain: str = "monad-mainnet",
        client_id: str = "curvance-sdk",
        timeout: float = 10.0,
    ):
        super().__init__(transport, api_url, router, referral_address, timeout)
        self.chain = KYBERSWAP_CHAIN_NAMES.get(chain, chain)
        self.client_id = client_id

    @classmethod
    def from_settings(
        cls, settings: SdkSettings, transport: ResilientTransport
    ) -> "KyberSwapProvider":
        return cls(
            transport,
            api_url=settings.kyberswap_api_url,
            router=settings.kyberswap_router,
            referral_address=settings.referral_address,
            chain=settings.chain.value,
            client_id=settings.kyberswap_client_id,
            timeout=settings.quote_timeout,
        )

    @property
    def provider_name(self) -> str:
        return "kyberswap"

    @property
    def base_url(self) -> str:
        return f"{self.api_url}/{self.chain}/api/v1"

    @property
    def headers(self) -> dict[str, str]:
        return {"X-Client-Id": self.client_id, "Content-Type": "application/json"}

    def http_error(self, response: requests.Response) -> Exception:
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        return KyberSwapHTTPError(
            response.status_code,
            body.get("message") or response.reason or "",
            body.get("code"),
            body.get("requestId"),
        )

    async def quote(
        self, wallet: str, token_in: str, token_out: str, amount: int, slippage_bps: int
    ) -> Quote:
        self.check_quote_args(amount, slippage_bps)

        routes = await self.request_json(
            "GET",
            f"{self.base_url}/routes",
            "routes",
            params={"tokenIn": token_in, "tokenOut": token_out, "amountIn": str(amount)},
            headers=self.headers,
        )
        try:
            route_summary = routes["data"]["routeSummary"]
        except (KeyError, TypeError) as e:
            raise QuoteError(f"KyberSwap route response missing routeSummary: {routes}") from e

        built = await self.request_json(
            "POST",
            f"{self.base_url}/route/build",
            "route build",
            json={
                "routeSummary": route_summary,
                "origin": wallet,
                "sender": wallet,
                "recipient": wallet,
                "slippageTolerance": slippage_bps,
                "referral": self.referral_address,
            },
            headers=self.headers,
        )
        data = built.get("data") if isinstance(built, dict) else None
        if not data:
            raise QuoteError(f"KyberSwap build response missing data: {built}")

        try:
            router_address = str(data["routerAddress"])
            out = int(data["amountOut"])
            calldata = hex_to_bytes(data["data"])
        except (KeyError, TypeError, ValueError) as e:
            raise QuoteError(f"Malformed KyberSwap build response: {built}") from e

        if router_address.lower() != self.router.lower():
            raise QuoteError(f"KyberSwap returned unexpected router address: {router_address}")

        min_out = out * (BPS - slippage_bps) // BPS
        logger.debug(
            "KyberSwap quote %s -> %s: in=%d out=%d min_out=%d",
            token_in,
            token_out,
            amount,
            out,
            min_out,
        )
        return Quote(
            to=router_address,
            calldata=calldata,
            min_out=min_out,
            out=out,
            raw=built,
        )
