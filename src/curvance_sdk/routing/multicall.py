"""Pure helpers that shape calls into token multicall batches."""

from __future__ import annotations

from itertools import chain
from typing import Iterable, Sequence

from ..abi import BASE_CTOKEN_ABI_PATH, encode_call
from ..domain import CallAction


def build_action(target: str, calldata: bytes) -> CallAction:
    return CallAction(target=target, is_price_update=False, data=calldata)


def build_price_update(target: str, payload: bytes) -> CallAction:
    return CallAction(target=target, is_price_update=True, data=payload)


def concat(*sequences: Iterable[CallAction]) -> list[CallAction]:
    """Join batches, preserving the caller's order exactly."""
    return list(chain.from_iterable(sequences))


def encode_multicall(actions: Sequence[CallAction]) -> bytes:
    """Calldata for ``multicall((address,bool,bytes)[])`` on a market token."""
    return encode_call(
        BASE_CTOKEN_ABI_PATH, "multicall", [[a.as_tuple() for a in actions]]
    )
