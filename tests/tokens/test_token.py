from __future__ import annotations

from decimal import Decimal

import pytest

from curvance_sdk.domain import CallAction, TokenKind
from curvance_sdk.errors import (
    ApprovalRequiredError,
    CapabilityError,
    CollateralCapError,
    ConversionError,
)
from curvance_sdk.quotes.base import Quote, SwapAction
from curvance_sdk.routing.router import PriceFreshnessRouter, encode_token_call
from curvance_sdk.tokens.position_manager import (
    DeleverageAction,
    LeverageAction,
    PositionManager,
)
from curvance_sdk.tokens.token import LendingToken
from curvance_sdk.tokens.zapper import ZapKind, Zapper
from curvance_sdk.units import bps_to_wad

ACCOUNT = "0x6666666666666666666666666666666666666666"
ZAPPER = "0x7777777777777777777777777777777777777777"
MANAGER = "0x8888888888888888888888888888888888888888"
DEX_ROUTER = "0x9999999999999999999999999999999999999999"
WAD = 10**18


class NoPriceUpdates:
    async def build_price_update(self, token):
        raise AssertionError("pull-oracle markets never request a price update")


class StubQuotes:
    def __init__(self, out, min_out):
        self.out = out
        self.min_out = min_out
        self.requests = []

    async def quote_action(self, wallet, token_in, token_out, amount, slippage_bps):
        self.requests.append((wallet, token_in, token_out, amount, slippage_bps))
        swap = SwapAction(token_in, amount, token_out, DEX_ROUTER, bps_to_wad(slippage_bps), b"\x01")
        return swap, Quote(DEX_ROUTER, b"\x01", self.min_out, self.out)


@pytest.fixture
def lending(fake_chain_factory):
    def build(info, reads=None, **kwargs):
        chain = fake_chain_factory(reads)
        router = PriceFreshnessRouter(NoPriceUpdates())
        return LendingToken(info, chain, router, ACCOUNT, **kwargs), chain

    return build


class TestDeposit:
    @pytest.mark.asyncio
    async def test_deposit_converts_and_routes(self, lending, token):
        lt, chain = lending(token, {"allowance": 10**30})

        submission = await lt.deposit("1.5")

        assert submission.to == token.address
        assert submission.data == encode_token_call(token, "deposit", [15 * 10**17, ACCOUNT])
        assert chain.calls == [("allowance", (ACCOUNT, token.address))]

    @pytest.mark.asyncio
    async def test_missing_allowance_raises(self, lending, token):
        lt, _ = lending(token, {"allowance": 0, "symbol": "WMON"})

        with pytest.raises(ApprovalRequiredError, match="Please approve WMON"):
            await lt.deposit("1")

    @pytest.mark.asyncio
    async def test_approval_protection_off_skips_allowance(self, lending, token):
        lt, chain = lending(token, {}, approval_protection=False)
        await lt.deposit("1")
        assert chain.calls == []

    @pytest.mark.asyncio
    async def test_bad_amount_fails_before_network(self, lending, token):
        lt, chain = lending(token, {"allowance": 10**30})
        with pytest.raises(ConversionError):
            await lt.deposit(1.5)
        assert chain.calls == []

    @pytest.mark.asyncio
    async def test_collateral_cap_enforced(self, lending, token):
        # cap 500, posted 100: 400 shares remain
        lt, chain = lending(token, {"allowance": 10**30})

        with pytest.raises(CollateralCapError):
            await lt.deposit_as_collateral("401")
        assert chain.calls == []

        submission = await lt.deposit_as_collateral("400")
        assert submission.data == encode_token_call(
            token, "depositAsCollateral", [400 * WAD, ACCOUNT]
        )

    @pytest.mark.asyncio
    async def test_collateral_deposit_refused_with_debt(self, lending, borrowable_factory):
        info = borrowable_factory(user_debt=1, collateral_cap=10**30)
        lt, _ = lending(info, {"allowance": 10**30})
        with pytest.raises(CapabilityError, match="outstanding debt"):
            await lt.deposit_as_collateral("1")

    @pytest.mark.asyncio
    async def test_native_zap_sends_value_to_zapper(self, lending, token):
        zappers = {ZapKind.NATIVE_VAULT: Zapper(ZAPPER, ZapKind.NATIVE_VAULT)}
        lt, chain = lending(token, {"isDelegate": True}, zappers=zappers)

        submission = await lt.deposit("2", zap=ZapKind.NATIVE_VAULT)

        assert submission.to == ZAPPER
        assert submission.value == 2 * WAD
        assert chain.calls == [("isDelegate", (ACCOUNT, ZAPPER))]

    @pytest.mark.asyncio
    async def test_zap_requires_delegation(self, lending, token):
        zappers = {ZapKind.NATIVE_VAULT: Zapper(ZAPPER, ZapKind.NATIVE_VAULT)}
        lt, _ = lending(token, {"isDelegate": False}, zappers=zappers)
        with pytest.raises(ApprovalRequiredError, match="zapper"):
            await lt.zap("1", ZapKind.NATIVE_VAULT)

    @pytest.mark.asyncio
    async def test_unconfigured_zapper(self, lending, token):
        lt, _ = lending(token, {})
        with pytest.raises(CapabilityError, match="zapper configured"):
            await lt.deposit("1", zap=ZapKind.SIMPLE)


class TestRedeemAndCollateral:
    @pytest.mark.asyncio
    async def test_redeem_clamps_to_balance(self, lending, token):
        lt, _ = lending(token, {"balanceOf": 5 * WAD})
        submission = await lt.redeem("10")
        assert submission.data == encode_token_call(token, "redeem", [5 * WAD, ACCOUNT, ACCOUNT])

    @pytest.mark.asyncio
    async def test_post_collateral_clamps_to_uncollateralized_balance(self, lending, token):
        lt, _ = lending(token, {"balanceOf": 10 * WAD, "collateralPosted": 4 * WAD})
        submission = await lt.post_collateral("8")
        assert submission.data == encode_token_call(token, "postCollateral", [6 * WAD])

    @pytest.mark.asyncio
    async def test_remove_collateral_clamps_to_posted(self, lending, token):
        lt, _ = lending(token, {"collateralPosted": 3 * WAD})
        submission = await lt.remove_collateral("5")
        assert submission.data == encode_token_call(token, "removeCollateral", [3 * WAD])

    def test_transfer_and_multicall_are_plain_submissions(self, lending, token):
        lt, _ = lending(token)
        transfer = lt.transfer(ACCOUNT, "1")
        assert transfer.to == token.address
        assert transfer.is_multicall is False

        batch = lt.multicall([CallAction(token.address, False, b"\x01"), CallAction(token.address, False, b"\x02")])
        assert batch.is_multicall is True
        assert len(batch.actions) == 2


class TestBorrowing:
    @pytest.mark.asyncio
    async def test_borrow_on_collateral_token_is_a_capability_error(self, lending, token):
        lt, chain = lending(token, {})
        with pytest.raises(CapabilityError, match="not borrowable"):
            await lt.borrow("1")
        with pytest.raises(CapabilityError):
            await lt.repay("1")
        assert chain.calls == []

    @pytest.mark.asyncio
    async def test_borrow_uses_asset_decimals(self, lending, borrowable):
        lt, _ = lending(borrowable, {})
        submission = await lt.borrow("12.5")
        assert submission.data == encode_token_call(borrowable, "borrow", [12_500_000, ACCOUNT])

    @pytest.mark.asyncio
    async def test_repay_checks_allowance(self, lending, borrowable):
        lt, chain = lending(borrowable, {"allowance": 10**12})
        submission = await lt.repay("3")
        assert submission.data == encode_token_call(borrowable, "repay", [3_000_000])
        assert chain.calls[0][0] == "allowance"


class TestLeverage:
    @pytest.mark.asyncio
    async def test_leverage_up(self, lending, token_factory, borrowable):
        info = token_factory(user_collateral=100 * WAD)
        quotes = StubQuotes(out=100 * WAD, min_out=99 * WAD)
        manager = PositionManager(MANAGER)
        lt, chain = lending(
            info, {"isDelegate": True}, position_manager=manager, quote_provider=quotes
        )

        submission = await lt.leverage_up(borrowable, "2", slippage="0.005")

        # $200 collateral at 2x needs $200 more debt, i.e. 200 USDC
        assert quotes.requests == [
            (MANAGER, borrowable.asset.address, info.asset.address, 200_000_000, 50)
        ]
        swap = SwapAction(
            borrowable.asset.address, 200_000_000, info.asset.address, DEX_ROUTER, bps_to_wad(50), b"\x01"
        )
        expected = LeverageAction(
            borrowable_ctoken=borrowable.address,
            borrow_assets=200_000_000,
            ctoken=info.address,
            expected_shares=99 * WAD,
            swap_action=swap,
        )
        assert submission.to == MANAGER
        assert submission.data == manager.leverage_calldata(expected, bps_to_wad(50))
        assert chain.calls == [("isDelegate", (ACCOUNT, MANAGER))]

    @pytest.mark.asyncio
    async def test_leverage_down(self, lending, token_factory, borrowable):
        info = token_factory(user_collateral=100 * WAD)
        quotes = StubQuotes(out=50_000_000, min_out=49_750_000)
        manager = PositionManager(MANAGER)
        lt, _ = lending(info, {"isDelegate": True}, position_manager=manager, quote_provider=quotes)

        submission = await lt.leverage_down(borrowable, current="2", new_leverage="1.5")

        # 1 - 1.5/2 = 25% of the 100 collateral assets
        assert quotes.requests[0][3] == 25 * WAD
        swap = SwapAction(
            info.asset.address, 25 * WAD, borrowable.asset.address, DEX_ROUTER, bps_to_wad(50), b"\x01"
        )
        expected = DeleverageAction(
            ctoken=info.address,
            collateral_assets=25 * WAD,
            borrowable_ctoken=borrowable.address,
            repay_assets=47_500_000,
            swap_actions=(swap,),
        )
        assert submission.data == manager.deleverage_calldata(expected, bps_to_wad(50))

    @pytest.mark.asyncio
    async def test_leverage_requires_position_manager(self, lending, token, borrowable):
        lt, _ = lending(token, {})
        with pytest.raises(CapabilityError, match="position manager"):
            await lt.leverage_up(borrowable, "2")

    @pytest.mark.asyncio
    async def test_leverage_requires_delegation(self, lending, token_factory, borrowable):
        info = token_factory(user_collateral=100 * WAD)
        lt, _ = lending(
            info,
            {"isDelegate": False},
            position_manager=PositionManager(MANAGER),
            quote_provider=StubQuotes(out=WAD, min_out=WAD),
        )
        with pytest.raises(ApprovalRequiredError, match="position manager"):
            await lt.leverage_up(borrowable, "2")

    def test_preview_rejects_lower_target(self, lending, token_factory, borrowable):
        info = token_factory(user_collateral=100 * WAD, market_user_debt=100 * WAD)
        lt, _ = lending(info)
        # $200 collateral against $100 debt is 2x
        assert lt.get_leverage() == Decimal(2)
        with pytest.raises(ValueError, match="more than current leverage"):
            lt.preview_leverage_up("1.5", borrowable)
        with pytest.raises(ValueError, match="less than current leverage"):
            lt.preview_leverage_down("3", "2")


class TestDisplayHelpers:
    def test_prices_and_caps(self, lending, token_factory):
        info = token_factory(user_collateral=10 * WAD, asset_price_lower=19 * 10**17)
        lt, _ = lending(info)

        assert lt.get_price() == Decimal(2)
        assert lt.get_price(asset=True, lower=True) == Decimal("1.9")
        assert lt.get_price(formatted=False) == 2 * WAD
        assert lt.get_user_collateral() == Decimal(10)
        assert lt.get_user_collateral(in_usd=True) == Decimal(20)
        assert lt.get_remaining_collateral(formatted=False) == 400 * WAD
        assert lt.get_remaining_collateral() == Decimal(800)
        assert lt.ltv() == Decimal("0.75")
        assert lt.get_leverage() is None

    def test_remaining_debt(self, lending, borrowable):
        lt, _ = lending(borrowable)
        assert borrowable.kind is TokenKind.BORROWABLE
        assert lt.get_remaining_debt(formatted=False) == 400_000 * 10**6
        assert lt.get_remaining_debt() == Decimal(400_000)
