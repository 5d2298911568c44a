from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Any, Sequence

from eth_utils import is_hex_address, to_checksum_address
from web3 import Web3

ABIS_DIR = Path(__file__).parent / "abis"

BASE_CTOKEN_ABI_PATH = ABIS_DIR / "BaseCToken.json"
BORROWABLE_CTOKEN_ABI_PATH = ABIS_DIR / "BorrowableCToken.json"
ERC20_ABI_PATH = ABIS_DIR / "ERC20.json"
ORACLE_MANAGER_ABI_PATH = ABIS_DIR / "OracleManager.json"
REDSTONE_CORE_ADAPTOR_ABI_PATH = ABIS_DIR / "RedstoneCoreAdaptor.json"
SIMPLE_ZAPPER_ABI_PATH = ABIS_DIR / "SimpleZapper.json"
SIMPLE_POSITION_MANAGER_ABI_PATH = ABIS_DIR / "SimplePositionManager.json"


@lru_cache(maxsize=None)
def load_abi(path: Path) -> tuple[dict, ...]:
    """Read the ``abi`` array of a bundled contract JSON file.

    Files are parsed once per process. Raises ``KeyError`` when the file
    has no ``abi`` member.
    """
    document = json.loads(Path(path).read_text())
    return tuple(document["abi"])


def load_base_ctoken_abi() -> list[dict]:
    return list(load_abi(BASE_CTOKEN_ABI_PATH))


def load_borrowable_ctoken_abi() -> list[dict]:
    # Base token functions plus borrow, repay and debt reads
    return list(load_abi(BORROWABLE_CTOKEN_ABI_PATH))


def load_erc20_abi() -> list[dict]:
    return list(load_abi(ERC20_ABI_PATH))


def load_oracle_manager_abi() -> list[dict]:
    return list(load_abi(ORACLE_MANAGER_ABI_PATH))


def _normalize(value: Any) -> Any:
    if isinstance(value, str) and is_hex_address(value):
        return to_checksum_address(value)
    if isinstance(value, (list, tuple)):
        return type(value)(_normalize(v) for v in value)
    return value


@lru_cache(maxsize=None)
def _encoder(path: Path) -> Any:
    return Web3().eth.contract(abi=list(load_abi(path)))


def encode_call(abi_path: Path, fn_name: str, args: Sequence[Any]) -> bytes:
    """ABI-encode ``fn_name(*args)`` against the ABI stored at ``abi_path``.

    Address strings (including inside tuples and lists) are checksummed
    before encoding.
    """
    contract = _encoder(abi_path)
    calldata_hex = contract.encode_abi(
        abi_element_identifier=fn_name,
        args=[_normalize(a) for a in args],
    )
    return bytes.fromhex(calldata_hex.removeprefix("0x"))
