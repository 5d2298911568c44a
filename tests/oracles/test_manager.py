from __future__ import annotations

import pytest

from curvance_sdk.errors import PriceUnavailableError
from curvance_sdk.oracles.manager import OracleManager

MANAGER = "0x4444444444444444444444444444444444444444"
ASSET = "0x2222222222222222222222222222222222222222"


@pytest.mark.asyncio
async def test_get_price_returns_wad(fake_chain_factory):
    chain = fake_chain_factory({"getPrice": (2 * 10**18, 0)})

    price = await OracleManager(chain, MANAGER).get_price(ASSET)

    assert price == 2 * 10**18
    assert chain.calls == [("getPrice", (ASSET, True, False))]


@pytest.mark.asyncio
async def test_lower_price_flag_is_forwarded(fake_chain_factory):
    chain = fake_chain_factory({"getPrice": (10**18, 0)})
    await OracleManager(chain, MANAGER).get_price(ASSET, in_usd=False, get_lower=True)
    assert chain.calls == [("getPrice", (ASSET, False, True))]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("code", "detail"),
    [(1, "taken with caution"), (2, "complete failure"), (9, "unknown")],
)
async def test_error_codes_raise(fake_chain_factory, code, detail):
    chain = fake_chain_factory({"getPrice": (123, code)})

    with pytest.raises(PriceUnavailableError, match=detail) as exc_info:
        await OracleManager(chain, MANAGER).get_price(ASSET)

    assert exc_info.value.error_code == code
    assert exc_info.value.asset == ASSET
