from __future__ import annotations

import pytest

from curvance_sdk.abi import SIMPLE_ZAPPER_ABI_PATH, encode_call
from curvance_sdk.constants import EMPTY_ADDRESS, NATIVE_ADDRESS, UINT256_MAX
from curvance_sdk.errors import ConversionError
from curvance_sdk.quotes.base import Quote, SwapAction
from curvance_sdk.routing.router import PriceFreshnessRouter
from curvance_sdk.tokens.erc20 import ERC20
from curvance_sdk.tokens.token import LendingToken
from curvance_sdk.tokens.zapper import ZapKind, Zapper

ACCOUNT = "0x6666666666666666666666666666666666666666"
ZAPPER = "0x7777777777777777777777777777777777777777"
USDC = "0x5555555555555555555555555555555555555555"
WRAPPED = "0xaAaAaAaaAaAaAaaAaAAAAAAAAaaaAaAaAaaAaaAa"
DEX_ROUTER = "0x9999999999999999999999999999999999999999"


class StubQuotes:
    def __init__(self, min_out):
        self.min_out = min_out
        self.requests = []

    async def quote_action(self, wallet, token_in, token_out, amount, slippage_bps):
        self.requests.append((wallet, token_in, token_out, amount, slippage_bps))
        swap = SwapAction(token_in, amount, token_out, DEX_ROUTER, slippage_bps, b"\xca\xfe")
        return swap, Quote(DEX_ROUTER, b"\xca\xfe", self.min_out, self.min_out)


def test_zap_kinds():
    assert ZapKind.NATIVE_SIMPLE.is_native
    assert ZapKind.NATIVE_VAULT.is_native
    assert not ZapKind.SIMPLE.is_native


@pytest.mark.asyncio
async def test_simple_zap_swaps_into_asset(token):
    quotes = StubQuotes(min_out=5 * 10**18)
    zapper = Zapper(ZAPPER, ZapKind.SIMPLE, quotes)

    calldata = await zapper.simple_zap_calldata(token, USDC, 10_000_000, True, 50, ACCOUNT)

    assert quotes.requests == [(ACCOUNT, USDC, token.asset.address, 10_000_000, 50)]
    swap = SwapAction(USDC, 10_000_000, token.asset.address, DEX_ROUTER, 50, b"\xca\xfe")
    assert calldata == encode_call(
        SIMPLE_ZAPPER_ABI_PATH,
        "swapAndDeposit",
        [token.address, False, swap.as_tuple(), 5 * 10**18, True, ACCOUNT],
    )


def test_native_zap_wraps_when_asked(token):
    zapper = Zapper(ZAPPER, ZapKind.NATIVE_SIMPLE, wrapped_native=WRAPPED)

    calldata = zapper.native_zap_calldata(token, 10**18, False, ACCOUNT, wrapped=True)

    swap = (NATIVE_ADDRESS, 10**18, WRAPPED, EMPTY_ADDRESS, 0, b"")
    assert calldata == encode_call(
        SIMPLE_ZAPPER_ABI_PATH, "swapAndDeposit", [token.address, True, swap, 0, False, ACCOUNT]
    )


def test_native_simple_zap_requires_wrapped_native(token):
    with pytest.raises(ValueError, match="wrapped_native_address"):
        Zapper(ZAPPER, ZapKind.NATIVE_SIMPLE).native_zap_calldata(
            token, 1, False, ACCOUNT, wrapped=True
        )


@pytest.mark.asyncio
async def test_simple_zap_through_lending_token(token, fake_chain_factory):
    quotes = StubQuotes(min_out=4 * 10**18)
    chain = fake_chain_factory({"decimals": 6, "allowance": 10**12, "isDelegate": True})
    zappers = {ZapKind.SIMPLE: Zapper(ZAPPER, ZapKind.SIMPLE, quotes)}
    lt = LendingToken(token, chain, PriceFreshnessRouter(None), ACCOUNT, zappers=zappers)

    submission = await lt.deposit("10", zap=ZapKind.SIMPLE, input_token=USDC, slippage="0.01")

    assert submission.to == ZAPPER
    assert submission.value == 0
    assert quotes.requests[0][3] == 10_000_000
    assert quotes.requests[0][4] == 100
    assert [name for name, _ in chain.calls] == ["decimals", "allowance", "isDelegate"]


@pytest.mark.asyncio
async def test_simple_zap_requires_input_token(token, fake_chain_factory):
    zappers = {ZapKind.SIMPLE: Zapper(ZAPPER, ZapKind.SIMPLE, StubQuotes(1))}
    lt = LendingToken(
        token, fake_chain_factory(), PriceFreshnessRouter(None), ACCOUNT, zappers=zappers
    )
    with pytest.raises(ValueError, match="input_token"):
        await lt.deposit("1", zap=ZapKind.SIMPLE)


@pytest.mark.asyncio
@pytest.mark.parametrize(("amount", "slippage"), [("abc", "0.01"), ("-1", "0.01"), ("10", "-0.5")])
async def test_simple_zap_rejects_bad_input_before_any_read(
    token, fake_chain_factory, amount, slippage
):
    quotes = StubQuotes(1)
    chain = fake_chain_factory({"decimals": 6})
    zappers = {ZapKind.SIMPLE: Zapper(ZAPPER, ZapKind.SIMPLE, quotes)}
    lt = LendingToken(token, chain, PriceFreshnessRouter(None), ACCOUNT, zappers=zappers)

    with pytest.raises(ConversionError):
        await lt.deposit(amount, zap=ZapKind.SIMPLE, input_token=USDC, slippage=slippage)
    assert chain.calls == []
    assert quotes.requests == []


def test_erc20_approve_defaults_to_max(fake_chain_factory):
    erc20 = ERC20(fake_chain_factory(), USDC)

    submission = erc20.approve(ZAPPER)

    assert submission.to == USDC
    assert submission.data[36:68] == UINT256_MAX.to_bytes(32, "big")
    assert erc20.approve(ZAPPER, 5).data[-1] == 5


@pytest.mark.asyncio
async def test_erc20_metadata_is_cached(fake_chain_factory):
    chain = fake_chain_factory({"symbol": "USDC", "decimals": 6})
    erc20 = ERC20(chain, USDC)

    assert await erc20.symbol() == "USDC"
    assert await erc20.symbol() == "USDC"
    assert await erc20.decimals() == 6
    assert await erc20.decimals() == 6
    assert [name for name, _ in chain.calls] == ["symbol", "decimals"]
