from __future__ import annotations

import logging

from ..abi import load_oracle_manager_abi
from ..errors import PriceUnavailableError
from ..transport.chain import RetryingChain

logger = logging.getLogger(__name__)

PRICE_ERROR_DETAILS = {
    1: "indicates that price should be taken with caution.",
    2: "indicates a complete failure in receiving a price.",
}


class OracleManager:
    """Reads prices from the protocol oracle manager."""

    def __init__(self, chain: RetryingChain, address: str):
        self.address = address
        self._chain = chain
        self._contract = chain.contract(address, load_oracle_manager_abi())

    async def get_price(
        self, asset: str, in_usd: bool = True, get_lower: bool = False
    ) -> int:
        """Price of ``asset`` in WAD.

        Raises:
            PriceUnavailableError: If the manager flags the price with a
                non-zero error code.
        """
        fn = self._contract.functions.getPrice(self._chain.checksum(asset), in_usd, get_lower)
        price, error_code = await self._chain.call_function(fn, context="getPrice")
        if error_code != 0:
            detail = PRICE_ERROR_DETAILS.get(int(error_code), "unknown")
            logger.debug("Oracle manager returned code %d for %s", error_code, asset)
            raise PriceUnavailableError(asset, int(error_code), detail)
        return int(price)
