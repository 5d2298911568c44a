from __future__ import annotations

from .erc20 import ERC20
from .position_manager import DeleverageAction, LeverageAction, PositionManager
from .token import LendingToken
from .zapper import ZapKind, Zapper

__all__ = [
    "DeleverageAction",
    "ERC20",
    "LendingToken",
    "LeverageAction",
    "PositionManager",
    "ZapKind",
    "Zapper",
]
