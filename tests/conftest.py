from __future__ import annotations

from dataclasses import replace

import pytest
from web3 import Web3

from curvance_sdk.domain import AdapterKind, AssetInfo, TokenInfo, TokenKind
from curvance_sdk.transport.retry import ResilientTransport, RetryPolicy

TOKEN_ADDRESS = "0x1111111111111111111111111111111111111111"
ASSET_ADDRESS = "0x2222222222222222222222222222222222222222"
BORROW_TOKEN_ADDRESS = "0x4444444444444444444444444444444444444444"
BORROW_ASSET_ADDRESS = "0x5555555555555555555555555555555555555555"

WAD = 10**18


def make_token(**overrides) -> TokenInfo:
    """A 18-decimal collateral token over WMON at $2, one share per asset."""
    token = TokenInfo(
        address=TOKEN_ADDRESS,
        symbol="cWMON",
        decimals=18,
        asset=AssetInfo(address=ASSET_ADDRESS, symbol="WMON", decimals=18),
        adapters=(AdapterKind.CHAINLINK_PULL, None),
        asset_price=2 * WAD,
        share_price=2 * WAD,
        asset_price_lower=2 * WAD,
        share_price_lower=2 * WAD,
        total_supply=1_000 * WAD,
        total_assets=1_000 * WAD,
        collateral_cap=500 * WAD,
        collateral=100 * WAD,
        coll_ratio=7_500,
    )
    return replace(token, **overrides)


def make_borrowable(**overrides) -> TokenInfo:
    """A 6-decimal borrowable USDC market at $1."""
    token = TokenInfo(
        address=BORROW_TOKEN_ADDRESS,
        symbol="cUSDC",
        decimals=6,
        asset=AssetInfo(address=BORROW_ASSET_ADDRESS, symbol="USDC", decimals=6),
        adapters=(AdapterKind.CHAINLINK_PULL, None),
        kind=TokenKind.BORROWABLE,
        asset_price=WAD,
        share_price=WAD,
        total_supply=1_000_000 * 10**6,
        total_assets=1_000_000 * 10**6,
        debt_cap=500_000 * 10**6,
        debt=100_000 * 10**6,
    )
    return replace(token, **overrides)


@pytest.fixture
def token() -> TokenInfo:
    return make_token()


@pytest.fixture
def push_token() -> TokenInfo:
    return make_token(adapters=(AdapterKind.PUSH_SIGNED, AdapterKind.CHAINLINK_PULL))


@pytest.fixture
def borrowable() -> TokenInfo:
    return make_borrowable()


@pytest.fixture
def fast_transport() -> ResilientTransport:
    return ResilientTransport(
        RetryPolicy(max_retries=2, base_delay=0.001, max_delay=0.002)
    )


@pytest.fixture
def token_factory():
    return make_token


@pytest.fixture
def borrowable_factory():
    return make_borrowable


class FakeChain:
    """RetryingChain stand-in: real contract objects, canned read results.

    ``reads`` maps a contract function name to a value or to a callable
    taking the call arguments.
    """

    def __init__(self, reads=None):
        self.reads = dict(reads or {})
        self.calls = []
        self.w3 = Web3()

    def checksum(self, address):
        return Web3.to_checksum_address(address)

    def contract(self, address, abi):
        return self.w3.eth.contract(address=self.checksum(address), abi=abi)

    async def call_function(self, fn, block_identifier="latest", context=None):
        args = tuple(fn.args or ())
        self.calls.append((fn.fn_name, args))
        value = self.reads[fn.fn_name]
        return value(*args) if callable(value) else value


@pytest.fixture
def fake_chain_factory():
    return FakeChain
