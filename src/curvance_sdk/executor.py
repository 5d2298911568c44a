"""Signs and sends Submissions from a local account."""

from __future__ import annotations

import logging
from typing import Any

from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import Web3

from .domain import Submission
from .transport.chain import RetryingChain

logger = logging.getLogger(__name__)


class TransactionExecutor:
    """Turns a Submission into a signed, broadcast transaction.

    Gas is estimated and the nonce read through the retrying chain. Failures
    propagate classified; nothing is rolled back.
    """

    def __init__(self, chain: RetryingChain, account: LocalAccount):
        self._chain = chain
        self.account = account

    @classmethod
    def from_key(cls, chain: RetryingChain, private_key: str) -> "TransactionExecutor":
        account: LocalAccount = Account.from_key(private_key)
        return cls(chain, account)

    @property
    def address(self) -> str:
        return self.account.address

    async def build_transaction(self, submission: Submission, **overrides: Any) -> dict[str, Any]:
        tx: dict[str, Any] = {
            "from": self.account.address,
            "to": self._chain.checksum(submission.to),
            "data": "0x" + submission.data.hex(),
            "value": submission.value,
        }
        tx.update(overrides)
        if "nonce" not in tx:
            tx["nonce"] = await self._chain.get_transaction_count(self.account.address, "pending")
        if "chainId" not in tx:
            tx["chainId"] = await self._chain.chain_id()
        if "gas" not in tx:
            tx["gas"] = await self._chain.estimate_gas(tx)
        if "gasPrice" not in tx and "maxFeePerGas" not in tx:
            tx["gasPrice"] = await self._chain.gas_price()
        return tx

    async def execute(self, submission: Submission, **overrides: Any) -> str:
        """Sign and broadcast; returns the transaction hash as hex."""
        tx = await self.build_transaction(submission, **overrides)
        signed = self.account.sign_transaction(tx)
        tx_hash = await self._chain.send_raw_transaction(signed.raw_transaction)
        tx_hex = Web3.to_hex(tx_hash)
        logger.info(
            "Sent %s to %s (%d call%s): %s",
            "multicall" if submission.is_multicall else "call",
            submission.to,
            len(submission.actions) or 1,
            "" if len(submission.actions) <= 1 else "s",
            tx_hex,
        )
        return tx_hex

    async def execute_and_wait(self, submission: Submission, timeout: float = 120, **overrides: Any) -> Any:
        tx_hash = await self.execute(submission, **overrides)
        return await self._chain.wait_for_transaction_receipt(tx_hash, timeout=timeout)
