from __future__ import annotations

from .router import PriceFreshnessRouter, requires_price_update

__all__ = ["PriceFreshnessRouter", "requires_price_update"]
