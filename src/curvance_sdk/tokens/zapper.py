"""Calldata for zapping into a market token from another asset."""

from __future__ import annotations

from enum import Enum

from ..abi import SIMPLE_ZAPPER_ABI_PATH, encode_call
from ..constants import EMPTY_ADDRESS, EMPTY_BYTES, NATIVE_ADDRESS
from ..domain import TokenInfo
from ..quotes.base import BaseQuoteProvider, SwapAction


class ZapKind(str, Enum):
    NONE = "none"
    SIMPLE = "simple"
    NATIVE_SIMPLE = "native-simple"
    NATIVE_VAULT = "native-vault"

    @property
    def is_native(self) -> bool:
        return self in (ZapKind.NATIVE_SIMPLE, ZapKind.NATIVE_VAULT)


class Zapper:
    def __init__(
        self,
        address: str,
        kind: ZapKind,
        quote_provider: BaseQuoteProvider | None = None,
        wrapped_native: str | None = None,
    ):
        self.address = address
        self.kind = kind
        self.quote_provider = quote_provider
        self.wrapped_native = wrapped_native

    def _swap_and_deposit(
        self,
        token: TokenInfo,
        wrapped: bool,
        swap: SwapAction,
        expected_shares: int,
        collateralize: bool,
        receiver: str,
    ) -> bytes:
        return encode_call(
            SIMPLE_ZAPPER_ABI_PATH,
            "swapAndDeposit",
            [token.address, wrapped, swap.as_tuple(), expected_shares, collateralize, receiver],
        )

    async def simple_zap_calldata(
        self,
        token: TokenInfo,
        input_token: str,
        amount: int,
        collateralize: bool,
        slippage_bps: int,
        wallet: str,
    ) -> bytes:
        """Swap ``input_token`` into the token's asset, then deposit."""
        if self.quote_provider is None:
            raise ValueError("A quote provider is required for simple zaps")
        swap, quote = await self.quote_provider.quote_action(
            wallet, input_token, token.asset.address, amount, slippage_bps
        )
        expected_shares = token.convert_to_shares(quote.min_out)
        return self._swap_and_deposit(
            token, False, swap, expected_shares, collateralize, wallet
        )

    def native_zap_calldata(
        self,
        token: TokenInfo,
        amount: int,
        collateralize: bool,
        receiver: str,
        wrapped: bool = False,
    ) -> bytes:
        """Deposit native currency; the transaction carries ``amount`` as value."""
        if wrapped and self.wrapped_native is None:
            raise ValueError("wrapped_native_address must be configured for native-simple zaps")
        swap = SwapAction(
            input_token=NATIVE_ADDRESS,
            input_amount=amount,
            output_token=self.wrapped_native if wrapped else NATIVE_ADDRESS,
            target=EMPTY_ADDRESS,
            slippage=0,
            call=EMPTY_BYTES,
        )
        return self._swap_and_deposit(token, wrapped, swap, 0, collateralize, receiver)
