"""Decides whether an action must carry a bundled price refresh."""

from __future__ import annotations

import logging
from typing import Any, Protocol, Sequence

from ..abi import BASE_CTOKEN_ABI_PATH, BORROWABLE_CTOKEN_ABI_PATH, encode_call
from ..domain import CallAction, Submission, TokenInfo
from .multicall import build_action, concat, encode_multicall

logger = logging.getLogger(__name__)


class PriceUpdateSource(Protocol):
    async def build_price_update(self, token: TokenInfo) -> CallAction: ...


def requires_price_update(token: TokenInfo) -> bool:
    return any(
        adapter is not None and adapter.requires_price_update
        for adapter in token.adapters
    )


def encode_token_call(token: TokenInfo, action_name: str, action_params: Sequence[Any]) -> bytes:
    abi_path = BORROWABLE_CTOKEN_ABI_PATH if token.is_borrowable else BASE_CTOKEN_ABI_PATH
    return encode_call(abi_path, action_name, action_params)


class PriceFreshnessRouter:
    """Turns one token action into the single Submission that executes it.

    Markets priced by the signed push oracle get the price write bundled in
    front of the action, in one token multicall. Only the acting token's own
    feed is refreshed.
    """

    def __init__(self, price_source: PriceUpdateSource):
        self._price_source = price_source

    async def route(
        self,
        action_name: str,
        action_params: Sequence[Any],
        token: TokenInfo,
        target: str | None = None,
        value: int = 0,
    ) -> Submission:
        calldata = encode_token_call(token, action_name, action_params)
        return await self.route_calldata(calldata, token, target=target, value=value)

    async def route_calldata(
        self,
        calldata: bytes,
        token: TokenInfo,
        target: str | None = None,
        value: int = 0,
    ) -> Submission:
        """Route pre-encoded calldata; ``target`` defaults to the token itself."""
        action = build_action(target or token.address, calldata)

        if not requires_price_update(token):
            return Submission(
                to=action.target, data=action.data, value=value, actions=(action,)
            )

        # Payload failures propagate here, before anything is submitted
        price_update = await self._price_source.build_price_update(token)
        actions = concat([price_update], [action])
        logger.info(
            "Bundling %s price update ahead of action on %s",
            token.asset.symbol,
            token.symbol,
        )
        return Submission(
            to=token.address,
            data=encode_multicall(actions),
            value=value,
            actions=tuple(actions),
            is_multicall=True,
        )
