"""Domain models shared across the SDK."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Any, Mapping

from ..constants import (
    ADAPTER_CHAINLINK,
    ADAPTER_MOCK,
    ADAPTER_REDSTONE_CLASSIC,
    ADAPTER_REDSTONE_CORE,
)


class AdapterKind(IntEnum):
    """Oracle adapter ids as reported by the protocol reader."""

    CHAINLINK_PULL = ADAPTER_CHAINLINK
    PUSH_SIGNED = ADAPTER_REDSTONE_CORE
    PUSH_SIGNED_LEGACY = ADAPTER_REDSTONE_CLASSIC
    MOCK = ADAPTER_MOCK

    @property
    def requires_price_update(self) -> bool:
        return self is AdapterKind.PUSH_SIGNED


def parse_adapter(adapter_id: int) -> AdapterKind | None:
    """Map a reader adapter id to an AdapterKind; 0 marks an unused slot.

    Raises:
        ValueError: For ids outside the known set.
    """
    adapter_id = int(adapter_id)
    if adapter_id == 0:
        return None
    try:
        return AdapterKind(adapter_id)
    except ValueError:
        raise ValueError(f"Unknown oracle adapter id: {adapter_id}") from None


class TokenKind(str, Enum):
    SIMPLE = "simple"
    BORROWABLE = "borrowable"


@dataclass(frozen=True)
class AssetInfo:
    """Underlying asset of a market token."""

    address: str
    symbol: str
    decimals: int


@dataclass(frozen=True)
class TokenInfo:
    """Read-only snapshot of a market token as produced by the protocol reader.

    ``decimals`` and ``adapters`` never change for the lifetime of a token.
    Prices are USD in WAD; ``user_collateral`` is in shares and
    ``user_debt`` in underlying asset units. ``market_user_debt`` is the
    account's total debt across the market in USD WAD.
    """

    address: str
    symbol: str
    decimals: int
    asset: AssetInfo
    adapters: tuple[AdapterKind | None, AdapterKind | None]
    kind: TokenKind = TokenKind.SIMPLE

    asset_price: int = 0
    share_price: int = 0
    asset_price_lower: int = 0
    share_price_lower: int = 0
    total_supply: int = 0
    total_assets: int = 0
    collateral_cap: int = 0
    collateral: int = 0
    debt_cap: int = 0
    debt: int = 0
    coll_ratio: int = 0  # bps

    user_share_balance: int = 0
    user_asset_balance: int = 0
    user_collateral: int = 0
    user_debt: int = 0
    market_user_debt: int = 0

    def __post_init__(self) -> None:
        if len(self.adapters) != 2:
            raise ValueError(f"Expected exactly two adapter slots, got {len(self.adapters)}")

    @property
    def is_borrowable(self) -> bool:
        return self.kind is TokenKind.BORROWABLE

    def convert_to_shares(self, assets: int) -> int:
        """Shares for ``assets`` at the cached exchange rate."""
        if self.total_assets == 0:
            return assets
        return assets * self.total_supply // self.total_assets

    def convert_to_assets(self, shares: int) -> int:
        if self.total_supply == 0:
            return shares
        return shares * self.total_assets // self.total_supply

    @classmethod
    def from_reader(cls, data: Mapping[str, Any]) -> "TokenInfo":
        """Build a token from the reader's merged static/dynamic/user struct."""
        asset = data["asset"]
        raw_adapters = data["adapters"]
        adapters = (parse_adapter(raw_adapters[0]), parse_adapter(raw_adapters[1]))

        def _int(key: str) -> int:
            return int(data.get(key, 0) or 0)

        return cls(
            address=data["address"],
            symbol=data["symbol"],
            decimals=int(data["decimals"]),
            asset=AssetInfo(
                address=asset["address"],
                symbol=asset["symbol"],
                decimals=int(asset["decimals"]),
            ),
            adapters=adapters,
            kind=TokenKind.BORROWABLE if data.get("isBorrowable") else TokenKind.SIMPLE,
            asset_price=_int("assetPrice"),
            share_price=_int("sharePrice"),
            asset_price_lower=_int("assetPriceLower"),
            share_price_lower=_int("sharePriceLower"),
            total_supply=_int("totalSupply"),
            total_assets=_int("totalAssets"),
            collateral_cap=_int("collateralCap"),
            collateral=_int("collateral"),
            debt_cap=_int("debtCap"),
            debt=_int("debt"),
            coll_ratio=_int("collRatio"),
            user_share_balance=_int("userShareBalance"),
            user_asset_balance=_int("userAssetBalance"),
            user_collateral=_int("userCollateral"),
            user_debt=_int("userDebt"),
            market_user_debt=_int("marketUserDebt"),
        )


@dataclass(frozen=True)
class CallAction:
    """One entry of a token multicall batch."""

    target: str
    is_price_update: bool
    data: bytes

    def as_tuple(self) -> tuple[str, bool, bytes]:
        return (self.target, self.is_price_update, self.data)


@dataclass(frozen=True)
class Submission:
    """The single transaction an action resolves to.

    ``actions`` lists the batch entries in submission order; a plain call
    has exactly one. Price updates always precede the action, and a batch
    carrying price updates holds exactly one real action.
    """

    to: str
    data: bytes
    value: int = 0
    actions: tuple[CallAction, ...] = ()
    is_multicall: bool = False

    def __post_init__(self) -> None:
        seen_action = False
        real_actions = 0
        for action in self.actions:
            if action.is_price_update:
                if seen_action:
                    raise ValueError("Price updates must precede the action they refresh")
            else:
                seen_action = True
                real_actions += 1
        if self.price_updates and real_actions != 1:
            raise ValueError(
                f"A price-refreshed batch carries exactly one action, got {real_actions}"
            )

    @property
    def price_updates(self) -> tuple[CallAction, ...]:
        return tuple(a for a in self.actions if a.is_price_update)


@dataclass(frozen=True)
class SignedPricePayload:
    """Quorum-signed price packages serialized for on-chain verification.

    ``timestamp`` is the packages' signing time in milliseconds.
    """

    payload: bytes
    timestamp: int
    signers: tuple[str, ...] = ()


__all__ = [
    "AdapterKind",
    "AssetInfo",
    "CallAction",
    "SignedPricePayload",
    "Submission",
    "TokenInfo",
    "TokenKind",
    "parse_adapter",
]
