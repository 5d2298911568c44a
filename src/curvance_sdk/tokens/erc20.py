from __future__ import annotations

from ..abi import ERC20_ABI_PATH, encode_call, load_erc20_abi
from ..constants import UINT256_MAX
from ..domain import CallAction, Submission
from ..transport.chain import RetryingChain


class ERC20:
    """Minimal ERC20 reads plus approval submissions."""

    def __init__(self, chain: RetryingChain, address: str):
        self.address = address
        self._chain = chain
        self._contract = chain.contract(address, load_erc20_abi())
        self._symbol: str | None = None
        self._decimals: int | None = None

    async def balance_of(self, owner: str) -> int:
        fn = self._contract.functions.balanceOf(self._chain.checksum(owner))
        return await self._chain.call_function(fn, context="balanceOf")

    async def allowance(self, owner: str, spender: str) -> int:
        fn = self._contract.functions.allowance(
            self._chain.checksum(owner), self._chain.checksum(spender)
        )
        return await self._chain.call_function(fn, context="allowance")

    async def symbol(self) -> str:
        if self._symbol is None:
            self._symbol = await self._chain.call_function(
                self._contract.functions.symbol(), context="symbol"
            )
        return self._symbol

    async def decimals(self) -> int:
        if self._decimals is None:
            self._decimals = int(
                await self._chain.call_function(
                    self._contract.functions.decimals(), context="decimals"
                )
            )
        return self._decimals

    def approve(self, spender: str, amount: int | None = None) -> Submission:
        """Approval transaction; ``None`` approves the maximum amount."""
        value = UINT256_MAX if amount is None else amount
        data = encode_call(ERC20_ABI_PATH, "approve", [spender, value])
        action = CallAction(target=self.address, is_price_update=False, data=data)
        return Submission(to=self.address, data=data, actions=(action,))
