"""Leverage and deleverage calldata plus cached-state previews."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_FLOOR, Decimal, localcontext

from ..abi import SIMPLE_POSITION_MANAGER_ABI_PATH, encode_call
from ..constants import EMPTY_BYTES
from ..domain import TokenInfo
from ..quotes.base import SwapAction
from ..units import (
    PRECISION,
    decimal_to_integer,
    integer_to_usd,
    integer_tokens_to_usd,
    to_decimal,
    usd_to_decimal_tokens,
)


@dataclass(frozen=True)
class LeverageAction:
    borrowable_ctoken: str
    borrow_assets: int
    ctoken: str
    expected_shares: int
    swap_action: SwapAction = field(default_factory=SwapAction.empty)
    aux_data: bytes = EMPTY_BYTES

    def as_tuple(self) -> tuple:
        return (
            self.borrowable_ctoken,
            self.borrow_assets,
            self.ctoken,
            self.expected_shares,
            self.swap_action.as_tuple(),
            self.aux_data,
        )


@dataclass(frozen=True)
class DeleverageAction:
    ctoken: str
    collateral_assets: int
    borrowable_ctoken: str
    repay_assets: int
    swap_actions: tuple[SwapAction, ...] = ()
    aux_data: bytes = EMPTY_BYTES

    def as_tuple(self) -> tuple:
        return (
            self.ctoken,
            self.collateral_assets,
            self.borrowable_ctoken,
            self.repay_assets,
            [s.as_tuple() for s in self.swap_actions],
            self.aux_data,
        )


@dataclass(frozen=True)
class LeverageUpPreview:
    borrow_amount: Decimal  # borrow asset units
    new_debt: Decimal  # USD
    new_collateral: Decimal  # shares


@dataclass(frozen=True)
class LeverageDownPreview:
    collateral_asset_reduction: int
    leverage_diff: Decimal


class PositionManager:
    """The simple (swap-based) position manager plugin."""

    def __init__(self, address: str):
        self.address = address

    def leverage_calldata(self, action: LeverageAction, slippage_wad: int) -> bytes:
        return encode_call(
            SIMPLE_POSITION_MANAGER_ABI_PATH, "leverage", [action.as_tuple(), slippage_wad]
        )

    def deposit_and_leverage_calldata(
        self, assets: int, action: LeverageAction, slippage_wad: int
    ) -> bytes:
        return encode_call(
            SIMPLE_POSITION_MANAGER_ABI_PATH,
            "depositAndLeverage",
            [assets, action.as_tuple(), slippage_wad],
        )

    def deleverage_calldata(self, action: DeleverageAction, slippage_wad: int) -> bytes:
        return encode_call(
            SIMPLE_POSITION_MANAGER_ABI_PATH, "deleverage", [action.as_tuple(), slippage_wad]
        )


def shares_to_usd(token: TokenInfo, shares: int) -> Decimal:
    return integer_tokens_to_usd(shares, token.share_price, token.decimals)


def current_leverage(token: TokenInfo) -> Decimal | None:
    """Collateral / (collateral - debt) in USD; None when unlevered."""
    collateral_usd = shares_to_usd(token, token.user_collateral)
    if collateral_usd == 0:
        return None
    debt_usd = integer_to_usd(token.market_user_debt)
    with localcontext() as ctx:
        ctx.prec = PRECISION
        equity = collateral_usd - debt_usd
        if equity <= 0:
            return None
        leverage = collateral_usd / equity
    return None if leverage == 1 else leverage


def preview_leverage_up(
    token: TokenInfo,
    new_leverage: Decimal | int | str,
    borrow_token: TokenInfo,
    deposit_shares: int = 0,
) -> LeverageUpPreview:
    target = to_decimal(new_leverage, "new_leverage")
    current = current_leverage(token) or Decimal(0)
    if target <= current:
        raise ValueError("New leverage must be more than current leverage")

    collateral_usd = shares_to_usd(token, token.user_collateral + deposit_shares)
    debt_usd = integer_to_usd(token.market_user_debt)
    with localcontext() as ctx:
        ctx.prec = PRECISION
        new_collateral_usd = collateral_usd * target
        new_debt = new_collateral_usd - debt_usd - collateral_usd
    if new_debt <= 0:
        raise ValueError("Target leverage requires no additional debt")

    borrow_amount = usd_to_decimal_tokens(
        new_debt, borrow_token.asset_price, borrow_token.asset.decimals
    )
    new_collateral = usd_to_decimal_tokens(
        new_collateral_usd, token.share_price, token.decimals
    )
    return LeverageUpPreview(borrow_amount, new_debt, new_collateral)


def preview_leverage_down(
    token: TokenInfo,
    new_leverage: Decimal | int | str,
    current: Decimal | int | str,
) -> LeverageDownPreview:
    target = to_decimal(new_leverage, "new_leverage")
    current_value = to_decimal(current, "current")
    if target >= current_value:
        raise ValueError("New leverage must be less than current leverage")

    collateral_assets = token.convert_to_assets(token.user_collateral)
    with localcontext() as ctx:
        ctx.prec = PRECISION
        leverage_diff = 1 - target / current_value
        reduction = (leverage_diff * collateral_assets).to_integral_value(
            rounding=ROUND_FLOOR
        )
    return LeverageDownPreview(int(reduction), leverage_diff)


def borrow_assets_for(preview: LeverageUpPreview, borrow_token: TokenInfo) -> int:
    return decimal_to_integer(preview.borrow_amount, borrow_token.asset.decimals)
