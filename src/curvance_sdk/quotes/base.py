from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

import requests

from ..constants import BPS, EMPTY_ADDRESS, EMPTY_BYTES
from ..errors import ConversionError, QuoteHTTPError
from ..transport.retry import ResilientTransport
from ..units import bps_to_wad

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Quote:
    """A built swap route from a quote provider."""

    to: str
    calldata: bytes
    min_out: int
    out: int
    raw: Any = None


@dataclass(frozen=True)
class SwapAction:
    """Swap instruction consumed by zapper and position manager contracts."""

    input_token: str
    input_amount: int
    output_token: str
    target: str
    slippage: int
    call: bytes

    def as_tuple(self) -> tuple[str, int, str, str, int, bytes]:
        return (
            self.input_token,
            self.input_amount,
            self.output_token,
            self.target,
            self.slippage,
            self.call,
        )

    @classmethod
    def empty(cls) -> "SwapAction":
        return cls(EMPTY_ADDRESS, 0, EMPTY_ADDRESS, EMPTY_ADDRESS, 0, EMPTY_BYTES)


def hex_to_bytes(value: str) -> bytes:
    return bytes.fromhex(value.removeprefix("0x"))


class BaseQuoteProvider(ABC):
    """Abstract base class for swap quote providers.

    Every HTTP request runs through the shared retry transport; non-2xx
    responses raise ``QuoteHTTPError`` so rate limits and 5xx are retried.
    """

    def __init__(
        self,
        transport: ResilientTransport,
        api_url: str,
        router: str,
        referral_address: str,
        timeout: float = 10.0,
    ):
        self._transport = transport
        self.api_url = api_url.rstrip("/")
        self.router = router
        self.referral_address = referral_address
        self.timeout = timeout

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the name of this provider."""
        ...

    @abstractmethod
    async def quote(
        self, wallet: str, token_in: str, token_out: str, amount: int, slippage_bps: int
    ) -> Quote:
        """Fetch and build a route swapping ``amount`` of ``token_in``."""
        ...

    def action_slippage(self, slippage_bps: int) -> int:
        """Slippage as embedded in a SwapAction; WAD unless overridden."""
        return bps_to_wad(slippage_bps) if slippage_bps else 0

    async def quote_action(
        self, wallet: str, token_in: str, token_out: str, amount: int, slippage_bps: int
    ) -> tuple[SwapAction, Quote]:
        quote = await self.quote(wallet, token_in, token_out, amount, slippage_bps)
        action = SwapAction(
            input_token=token_in,
            input_amount=int(amount),
            output_token=token_out,
            target=quote.to,
            slippage=self.action_slippage(slippage_bps),
            call=quote.calldata,
        )
        return action, quote

    async def quote_min(
        self, wallet: str, token_in: str, token_out: str, amount: int, slippage_bps: int
    ) -> int:
        quote = await self.quote(wallet, token_in, token_out, amount, slippage_bps)
        return quote.min_out

    @staticmethod
    def check_quote_args(amount: int, slippage_bps: int) -> None:
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise ConversionError(f"amount must be a positive int, got {amount!r}")
        if not isinstance(slippage_bps, int) or not 0 <= slippage_bps < BPS:
            raise ConversionError(
                f"slippage_bps must be an int in [0, {BPS}), got {slippage_bps!r}"
            )

    def http_error(self, response: requests.Response) -> Exception:
        return QuoteHTTPError(response.status_code, response.reason or response.text)

    async def request_json(
        self, method: str, url: str, context: str, **kwargs: Any
    ) -> Any:
        async def _call() -> Any:
            response = await asyncio.to_thread(
                requests.request, method, url, timeout=self.timeout, **kwargs
            )
            if not response.ok:
                raise self.http_error(response)
            return response.json()

        return await self._transport.execute(_call, f"{self.provider_name} {context}")
