from __future__ import annotations

from .manager import OracleManager
from .redstone import RedstoneClient

__all__ = ["OracleManager", "RedstoneClient"]
