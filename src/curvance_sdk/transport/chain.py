"""Retry-wrapped async adapter over the RPC operations the SDK needs."""

from __future__ import annotations

import asyncio
from typing import Any, Callable, TypeVar

from eth_typing import URI, ChecksumAddress
from web3 import Web3
from web3.contract import Contract
from web3.contract.contract import ContractFunction

from .retry import ResilientTransport

T = TypeVar("T")


class RPCResponseError(Exception):
    """A JSON-RPC response carried an ``error`` member."""

    def __init__(self, message: str, code: int | None = None, data: Any = None):
        self.code = code
        self.data = data
        super().__init__(message)


class RetryingChain:
    """Explicit chain surface; every call runs through the retry transport.

    Blocking web3 calls run in a worker thread. Arguments and return values
    are passed through unchanged.
    """

    def __init__(self, w3: Web3, transport: ResilientTransport):
        self._w3 = w3
        self._transport = transport

    @classmethod
    def from_url(
        cls, rpc_url: str, transport: ResilientTransport, timeout: float = 15.0
    ) -> "RetryingChain":
        w3 = Web3(Web3.HTTPProvider(URI(rpc_url), request_kwargs={"timeout": timeout}))
        return cls(w3, transport)

    @property
    def w3(self) -> Web3:
        return self._w3

    @property
    def transport(self) -> ResilientTransport:
        return self._transport

    async def _run(
        self, context: str, fn: Callable[..., T], *args: Any, **kwargs: Any
    ) -> T:
        return await self._transport.execute(
            lambda: asyncio.to_thread(fn, *args, **kwargs), context
        )

    # --- reads ---

    async def get_balance(self, account: str, block_identifier: Any = "latest") -> int:
        return await self._run(
            "getBalance", self._w3.eth.get_balance, account, block_identifier
        )

    async def get_code(self, account: str, block_identifier: Any = "latest") -> bytes:
        return await self._run(
            "getCode", self._w3.eth.get_code, account, block_identifier
        )

    async def get_storage_at(
        self, account: str, position: int, block_identifier: Any = "latest"
    ) -> bytes:
        return await self._run(
            "getStorageAt",
            self._w3.eth.get_storage_at,
            account,
            position,
            block_identifier,
        )

    async def get_transaction_count(
        self, account: str, block_identifier: Any = "latest"
    ) -> int:
        return await self._run(
            "getTransactionCount",
            self._w3.eth.get_transaction_count,
            account,
            block_identifier,
        )

    async def get_block(
        self, block_identifier: Any = "latest", full_transactions: bool = False
    ) -> Any:
        return await self._run(
            "getBlock", self._w3.eth.get_block, block_identifier, full_transactions
        )

    async def get_block_number(self) -> int:
        return await self._run("getBlockNumber", lambda: self._w3.eth.block_number)

    async def gas_price(self) -> int:
        return await self._run("getGasPrice", lambda: self._w3.eth.gas_price)

    async def fee_history(
        self,
        block_count: int,
        newest_block: Any = "latest",
        reward_percentiles: list[float] | None = None,
    ) -> Any:
        return await self._run(
            "getFeeData",
            self._w3.eth.fee_history,
            block_count,
            newest_block,
            reward_percentiles,
        )

    async def get_transaction(self, tx_hash: Any) -> Any:
        return await self._run(
            "getTransaction", self._w3.eth.get_transaction, tx_hash
        )

    async def get_transaction_receipt(self, tx_hash: Any) -> Any:
        return await self._run(
            "getTransactionReceipt", self._w3.eth.get_transaction_receipt, tx_hash
        )

    async def get_logs(self, filter_params: dict[str, Any]) -> Any:
        return await self._run("getLogs", self._w3.eth.get_logs, filter_params)

    async def chain_id(self) -> int:
        return await self._run("getNetwork", lambda: self._w3.eth.chain_id)

    # --- calls and transactions ---

    async def call(self, transaction: dict[str, Any], block_identifier: Any = "latest") -> bytes:
        return await self._run("call", self._w3.eth.call, transaction, block_identifier)

    async def estimate_gas(self, transaction: dict[str, Any]) -> int:
        return await self._run("estimateGas", self._w3.eth.estimate_gas, transaction)

    async def send_transaction(self, transaction: dict[str, Any]) -> Any:
        return await self._run(
            "sendTransaction", self._w3.eth.send_transaction, transaction
        )

    async def send_raw_transaction(self, raw_transaction: bytes) -> Any:
        return await self._run(
            "sendRawTransaction", self._w3.eth.send_raw_transaction, raw_transaction
        )

    async def wait_for_transaction_receipt(
        self, tx_hash: Any, timeout: float = 120, poll_latency: float = 0.1
    ) -> Any:
        return await self._run(
            "waitForTransaction",
            self._w3.eth.wait_for_transaction_receipt,
            tx_hash,
            timeout,
            poll_latency,
        )

    async def send(self, method: str, params: list[Any]) -> Any:
        """Raw JSON-RPC request; returns the ``result`` member."""

        def _request() -> Any:
            response = self._w3.provider.make_request(method, params)  # type: ignore[arg-type]
            error = response.get("error")
            if error:
                if isinstance(error, dict):
                    raise RPCResponseError(
                        str(error.get("message", error)),
                        error.get("code"),
                        error.get("data"),
                    )
                raise RPCResponseError(str(error))
            return response.get("result")

        return await self._run(method, _request)

    # --- contracts ---

    def checksum(self, address: str) -> ChecksumAddress:
        return self._w3.to_checksum_address(address)

    def contract(self, address: str, abi: list[dict]) -> Contract:
        return self._w3.eth.contract(address=self.checksum(address), abi=abi)

    async def call_function(
        self,
        fn: ContractFunction,
        block_identifier: Any = "latest",
        context: str | None = None,
    ) -> Any:
        return await self._run(
            context or f"call {fn.fn_name}", fn.call, block_identifier=block_identifier
        )
