"""User-facing actions on a market token.

Every action converts its decimal input before touching the network, routes
through the price-freshness router and returns the Submission to execute.
Borrow-side actions are only available on borrowable tokens.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Sequence

from ..abi import load_base_ctoken_abi, load_borrowable_ctoken_abi
from ..constants import BPS, DEFAULT_SLIPPAGE
from ..domain import CallAction, Submission, TokenInfo
from ..errors import ApprovalRequiredError, CapabilityError, CollateralCapError
from ..quotes.base import BaseQuoteProvider
from ..routing.multicall import encode_multicall
from ..routing.router import PriceFreshnessRouter, encode_token_call
from ..transport.chain import RetryingChain
from ..units import (
    bps_to_wad,
    decimal_to_integer,
    integer_to_decimal,
    integer_to_usd,
    integer_tokens_to_usd,
    percentage_to_bps,
    to_decimal,
)
from .erc20 import ERC20
from .position_manager import (
    DeleverageAction,
    LeverageAction,
    LeverageDownPreview,
    LeverageUpPreview,
    PositionManager,
    borrow_assets_for,
    current_leverage,
    preview_leverage_down,
    preview_leverage_up,
)
from .zapper import ZapKind, Zapper

logger = logging.getLogger(__name__)

Amount = Decimal | int | str

# Share of the quoted output kept as the minimum repay on partial deleverage
DELEVERAGE_REPAY_BUFFER_BPS = 500


class LendingToken:
    def __init__(
        self,
        info: TokenInfo,
        chain: RetryingChain,
        router: PriceFreshnessRouter,
        account: str,
        zappers: dict[ZapKind, Zapper] | None = None,
        position_manager: PositionManager | None = None,
        quote_provider: BaseQuoteProvider | None = None,
        approval_protection: bool = True,
    ):
        self.info = info
        self.account = account
        self._chain = chain
        self._router = router
        self._zappers = dict(zappers or {})
        self._position_manager = position_manager
        self._quote_provider = quote_provider
        self.approval_protection = approval_protection
        abi = load_borrowable_ctoken_abi() if info.is_borrowable else load_base_ctoken_abi()
        self._contract = chain.contract(info.address, abi)

    @property
    def address(self) -> str:
        return self.info.address

    @property
    def symbol(self) -> str:
        return self.info.symbol

    # --- conversions ---

    def _assets(self, amount: Amount) -> int:
        return decimal_to_integer(amount, self.info.asset.decimals)

    def _shares(self, amount: Amount) -> int:
        return self.info.convert_to_shares(self._assets(amount))

    def _require_borrowable(self, action: str) -> None:
        if not self.info.is_borrowable:
            raise CapabilityError(f"{self.symbol} is not borrowable; cannot {action}")

    def _refuse_with_debt(self, action: str) -> None:
        if self.info.is_borrowable and self.info.user_debt > 0:
            raise CapabilityError(f"Cannot {action} when there is outstanding debt")

    # --- chain reads ---

    async def balance_of(self, account: str | None = None) -> int:
        fn = self._contract.functions.balanceOf(self._chain.checksum(account or self.account))
        return await self._chain.call_function(fn, context="balanceOf")

    async def collateral_posted(self, account: str | None = None) -> int:
        fn = self._contract.functions.collateralPosted(
            self._chain.checksum(account or self.account)
        )
        return await self._chain.call_function(fn, context="collateralPosted")

    async def debt_balance(self, account: str | None = None) -> int:
        self._require_borrowable("read debt")
        fn = self._contract.functions.debtBalance(self._chain.checksum(account or self.account))
        return await self._chain.call_function(fn, context="debtBalance")

    async def is_delegate(self, plugin: str) -> bool:
        fn = self._contract.functions.isDelegate(
            self._chain.checksum(self.account), self._chain.checksum(plugin)
        )
        return await self._chain.call_function(fn, context="isDelegate")

    # --- approval checks ---

    async def _check_allowance(self, erc20_address: str, spender: str, amount: int) -> None:
        erc20 = ERC20(self._chain, erc20_address)
        allowance = await erc20.allowance(self.account, spender)
        if allowance < amount:
            symbol = await erc20.symbol()
            raise ApprovalRequiredError(f"Please approve {symbol} for {spender}: {amount}")

    async def _check_asset_approval(self, assets: int) -> None:
        if not self.approval_protection:
            return
        await self._check_allowance(self.info.asset.address, self.address, assets)

    async def _check_plugin_approval(self, plugin: str, label: str) -> None:
        if not await self.is_delegate(plugin):
            raise ApprovalRequiredError(
                f"Please approve the {label} {plugin} to move {self.symbol} on your behalf."
            )

    # --- deposits ---

    def _zapper(self, kind: ZapKind) -> Zapper:
        zapper = self._zappers.get(kind)
        if zapper is None:
            raise CapabilityError(f"No {kind.value} zapper configured")
        return zapper

    async def _deposit(
        self,
        function: str,
        amount: Amount,
        receiver: str | None,
        zap: ZapKind,
        collateralize: bool,
        input_token: str | None,
        slippage: Amount,
    ) -> Submission:
        receiver = receiver or self.account

        if zap is ZapKind.NONE:
            assets = self._assets(amount)
            await self._check_asset_approval(assets)
            return await self._router.route(function, [assets, receiver], self.info)

        zapper = self._zapper(zap)
        if zap is ZapKind.SIMPLE:
            if input_token is None:
                raise ValueError("input_token is required for simple zaps")
            input_value = to_decimal(amount, "amount")
            slippage_bps = percentage_to_bps(slippage)
            erc20 = ERC20(self._chain, input_token)
            input_amount = decimal_to_integer(input_value, await erc20.decimals())
            if self.approval_protection:
                await self._check_allowance(input_token, zapper.address, input_amount)
                await self._check_plugin_approval(zapper.address, "zapper")
            calldata = await zapper.simple_zap_calldata(
                self.info, input_token, input_amount, collateralize, slippage_bps, self.account
            )
            return await self._router.route_calldata(calldata, self.info, target=zapper.address)

        assets = self._assets(amount)
        if self.approval_protection:
            await self._check_plugin_approval(zapper.address, "zapper")
        calldata = zapper.native_zap_calldata(
            self.info,
            assets,
            collateralize,
            receiver,
            wrapped=zap is ZapKind.NATIVE_SIMPLE,
        )
        return await self._router.route_calldata(
            calldata, self.info, target=zapper.address, value=assets
        )

    async def deposit(
        self,
        amount: Amount,
        receiver: str | None = None,
        zap: ZapKind = ZapKind.NONE,
        input_token: str | None = None,
        slippage: Amount = DEFAULT_SLIPPAGE,
    ) -> Submission:
        return await self._deposit(
            "deposit", amount, receiver, zap, False, input_token, slippage
        )

    async def deposit_as_collateral(
        self,
        amount: Amount,
        receiver: str | None = None,
        zap: ZapKind = ZapKind.NONE,
        input_token: str | None = None,
        slippage: Amount = DEFAULT_SLIPPAGE,
    ) -> Submission:
        self._refuse_with_debt("deposit as collateral")
        assets = self._assets(amount)
        remaining = self.get_remaining_collateral(formatted=False)
        if remaining <= 0 or self.info.convert_to_shares(assets) > remaining:
            raise CollateralCapError(
                "There is not enough collateral left in this tokens collateral cap for this deposit."
            )
        return await self._deposit(
            "depositAsCollateral", amount, receiver, zap, True, input_token, slippage
        )

    async def zap(
        self,
        amount: Amount,
        zap: ZapKind,
        collateralize: bool = False,
        input_token: str | None = None,
        slippage: Amount = DEFAULT_SLIPPAGE,
    ) -> Submission:
        if collateralize:
            return await self.deposit_as_collateral(
                amount, zap=zap, input_token=input_token, slippage=slippage
            )
        return await self.deposit(amount, zap=zap, input_token=input_token, slippage=slippage)

    # --- redemptions and collateral ---

    async def redeem(self, amount: Amount) -> Submission:
        shares = self._shares(amount)
        shares = min(shares, await self.balance_of())
        return await self._router.route("redeem", [shares, self.account, self.account], self.info)

    async def redeem_collateral(self, amount: Amount, receiver: str | None = None) -> Submission:
        shares = self._shares(amount)
        return await self._router.route(
            "redeemCollateral", [shares, receiver or self.account, self.account], self.info
        )

    async def post_collateral(self, amount: Amount) -> Submission:
        self._refuse_with_debt("post collateral")
        shares = self._shares(amount)
        available = await self.balance_of() - await self.collateral_posted()
        return await self._router.route(
            "postCollateral", [min(shares, max(available, 0))], self.info
        )

    async def remove_collateral(self, amount: Amount) -> Submission:
        shares = self._shares(amount)
        posted = await self.collateral_posted()
        return await self._router.route("removeCollateral", [min(shares, posted)], self.info)

    def transfer(self, receiver: str, amount: Amount) -> Submission:
        shares = self._shares(amount)
        data = encode_token_call(self.info, "transfer", [receiver, shares])
        action = CallAction(target=self.address, is_price_update=False, data=data)
        return Submission(to=self.address, data=data, actions=(action,))

    def multicall(self, actions: Sequence[CallAction]) -> Submission:
        actions = tuple(actions)
        return Submission(
            to=self.address,
            data=encode_multicall(actions),
            actions=actions,
            is_multicall=True,
        )

    # --- borrowing ---

    async def borrow(self, amount: Amount, receiver: str | None = None) -> Submission:
        self._require_borrowable("borrow")
        assets = self._assets(amount)
        return await self._router.route("borrow", [assets, receiver or self.account], self.info)

    async def repay(self, amount: Amount) -> Submission:
        self._require_borrowable("repay")
        assets = self._assets(amount)
        await self._check_asset_approval(assets)
        return await self._router.route("repay", [assets], self.info)

    # --- leverage ---

    def _leverage_plugins(self) -> tuple[PositionManager, BaseQuoteProvider]:
        if self._position_manager is None:
            raise CapabilityError("No position manager configured")
        if self._quote_provider is None:
            raise CapabilityError("No quote provider configured")
        return self._position_manager, self._quote_provider

    async def _leverage_action(
        self,
        manager: PositionManager,
        provider: BaseQuoteProvider,
        borrow_token: TokenInfo,
        preview: LeverageUpPreview,
        slippage_bps: int,
    ) -> LeverageAction:
        if not borrow_token.is_borrowable:
            raise CapabilityError(f"{borrow_token.symbol} is not borrowable")
        borrow_assets = borrow_assets_for(preview, borrow_token)
        swap, quote = await provider.quote_action(
            manager.address,
            borrow_token.asset.address,
            self.info.asset.address,
            borrow_assets,
            slippage_bps,
        )
        return LeverageAction(
            borrowable_ctoken=borrow_token.address,
            borrow_assets=borrow_assets,
            ctoken=self.address,
            expected_shares=self.info.convert_to_shares(quote.min_out),
            swap_action=swap,
        )

    async def leverage_up(
        self,
        borrow_token: TokenInfo,
        new_leverage: Amount,
        slippage: Amount = DEFAULT_SLIPPAGE,
    ) -> Submission:
        manager, provider = self._leverage_plugins()
        slippage_bps = percentage_to_bps(slippage)
        preview = self.preview_leverage_up(new_leverage, borrow_token)
        action = await self._leverage_action(manager, provider, borrow_token, preview, slippage_bps)
        calldata = manager.leverage_calldata(action, bps_to_wad(slippage_bps))

        await self._check_plugin_approval(manager.address, "position manager")
        return await self._router.route_calldata(calldata, self.info, target=manager.address)

    async def deposit_and_leverage(
        self,
        amount: Amount,
        borrow_token: TokenInfo,
        new_leverage: Amount,
        slippage: Amount = DEFAULT_SLIPPAGE,
    ) -> Submission:
        manager, provider = self._leverage_plugins()
        assets = self._assets(amount)
        slippage_bps = percentage_to_bps(slippage)
        preview = self.preview_leverage_up(
            new_leverage, borrow_token, self.info.convert_to_shares(assets)
        )
        action = await self._leverage_action(manager, provider, borrow_token, preview, slippage_bps)
        calldata = manager.deposit_and_leverage_calldata(assets, action, bps_to_wad(slippage_bps))

        await self._check_allowance(self.info.asset.address, manager.address, assets)
        await self._check_plugin_approval(manager.address, "position manager")
        return await self._router.route_calldata(calldata, self.info, target=manager.address)

    async def leverage_down(
        self,
        borrow_token: TokenInfo,
        current: Amount,
        new_leverage: Amount,
        slippage: Amount = DEFAULT_SLIPPAGE,
    ) -> Submission:
        manager, provider = self._leverage_plugins()
        slippage_bps = percentage_to_bps(slippage)
        preview = self.preview_leverage_down(new_leverage, current)

        swap, quote = await provider.quote_action(
            manager.address,
            self.info.asset.address,
            borrow_token.asset.address,
            preview.collateral_asset_reduction,
            slippage_bps,
        )
        if preview.leverage_diff == 1:
            min_repay = 0
        else:
            min_repay = quote.out - quote.out * DELEVERAGE_REPAY_BUFFER_BPS // BPS

        action = DeleverageAction(
            ctoken=self.address,
            collateral_assets=preview.collateral_asset_reduction,
            borrowable_ctoken=borrow_token.address,
            repay_assets=min_repay,
            swap_actions=(swap,),
        )
        calldata = manager.deleverage_calldata(action, bps_to_wad(slippage_bps))

        await self._check_plugin_approval(manager.address, "position manager")
        return await self._router.route_calldata(calldata, self.info, target=manager.address)

    def preview_leverage_up(
        self, new_leverage: Amount, borrow_token: TokenInfo, deposit_shares: int = 0
    ) -> LeverageUpPreview:
        return preview_leverage_up(self.info, new_leverage, borrow_token, deposit_shares)

    def preview_leverage_down(self, new_leverage: Amount, current: Amount) -> LeverageDownPreview:
        return preview_leverage_down(self.info, new_leverage, current)

    # --- display helpers (cached state only) ---

    def get_leverage(self) -> Decimal | None:
        return current_leverage(self.info)

    def get_price(self, asset: bool = False, lower: bool = False, formatted: bool = True) -> Decimal | int:
        if asset:
            price = self.info.asset_price_lower if lower else self.info.asset_price
        else:
            price = self.info.share_price_lower if lower else self.info.share_price
        return integer_to_usd(price) if formatted else price

    def convert_tokens_to_usd(self, amount: int, asset: bool = True) -> Decimal:
        price = self.get_price(asset=asset, formatted=False)
        decimals = self.info.asset.decimals if asset else self.info.decimals
        return integer_tokens_to_usd(amount, int(price), decimals)

    def get_user_collateral(self, in_usd: bool = False) -> Decimal:
        if in_usd:
            return self.convert_tokens_to_usd(self.info.user_collateral, asset=False)
        return integer_to_decimal(self.info.user_collateral, self.info.decimals)

    def get_user_debt(self, in_usd: bool = False) -> Decimal:
        if in_usd:
            return self.convert_tokens_to_usd(self.info.user_debt)
        return integer_to_decimal(self.info.user_debt, self.info.asset.decimals)

    def get_remaining_collateral(self, formatted: bool = True) -> Decimal | int:
        diff = self.info.collateral_cap - self.info.collateral
        if not formatted:
            return diff
        return self.convert_tokens_to_usd(max(diff, 0), asset=False)

    def get_remaining_debt(self, formatted: bool = True) -> Decimal | int:
        diff = self.info.debt_cap - self.info.debt
        if not formatted:
            return diff
        return self.convert_tokens_to_usd(max(diff, 0))

    def ltv(self) -> Decimal:
        return Decimal(self.info.coll_ratio) / BPS
