"""RedStone signed price payloads for push-oracle markets.

Latest data packages are pulled from the RedStone gateways, filtered down to
the authorized signer set, checked against the signer quorum and serialized
into the calldata suffix the on-chain RedStone verifier expects::

    [data package]*  package count (2)  unsigned metadata  metadata size (3)  marker (9)

where each data package is::

    [feed id (32) | value (32)]*  timestamp (6)  value size (4)  point count (3)  signature (65)
"""

from __future__ import annotations

import asyncio
import base64
import logging
from collections import OrderedDict
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING, Any, Sequence

import requests

from ..abi import REDSTONE_CORE_ADAPTOR_ABI_PATH, encode_call
from ..constants import (
    REDSTONE_MARKER,
    REDSTONE_SIGNATURE_BYTE_SIZE,
    REDSTONE_VALUE_BYTE_SIZE,
    REDSTONE_VALUE_DECIMALS,
)
from ..domain import CallAction, SignedPricePayload, TokenInfo
from ..errors import QuorumError, SdkError
from ..routing.multicall import build_price_update
from ..transport.retry import ResilientTransport

if TYPE_CHECKING:
    from ..settings import SdkSettings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DataPoint:
    feed_id: str
    value: int  # scaled by 10**REDSTONE_VALUE_DECIMALS


@dataclass(frozen=True)
class SignedDataPackage:
    signer: str
    timestamp: int  # ms
    data_points: tuple[DataPoint, ...]
    signature: bytes


def _feed_id_bytes(feed_id: str) -> bytes:
    raw = feed_id.encode("utf-8")
    if len(raw) > 32:
        raise ValueError(f"Feed id longer than 32 bytes: {feed_id!r}")
    return raw.ljust(32, b"\x00")


def _scale_value(value: Any) -> int:
    scaled = Decimal(str(value)).scaleb(REDSTONE_VALUE_DECIMALS)
    return int(scaled.to_integral_value(rounding=ROUND_HALF_UP))


def parse_data_package(raw: dict[str, Any]) -> SignedDataPackage:
    signature = base64.b64decode(raw["signature"])
    if len(signature) != REDSTONE_SIGNATURE_BYTE_SIZE:
        raise ValueError(
            f"Expected {REDSTONE_SIGNATURE_BYTE_SIZE}-byte signature, got {len(signature)}"
        )
    points = tuple(
        DataPoint(feed_id=p["dataFeedId"], value=_scale_value(p["value"]))
        for p in raw["dataPoints"]
    )
    return SignedDataPackage(
        signer=raw["signerAddress"],
        timestamp=int(raw["timestampMilliseconds"]),
        data_points=points,
        signature=signature,
    )


def serialize_data_package(package: SignedDataPackage) -> bytes:
    points = sorted(package.data_points, key=lambda p: _feed_id_bytes(p.feed_id))
    body = b"".join(
        _feed_id_bytes(p.feed_id) + p.value.to_bytes(REDSTONE_VALUE_BYTE_SIZE, "big")
        for p in points
    )
    return (
        body
        + package.timestamp.to_bytes(6, "big")
        + REDSTONE_VALUE_BYTE_SIZE.to_bytes(4, "big")
        + len(points).to_bytes(3, "big")
        + package.signature
    )


def serialize_payload(
    packages: Sequence[SignedDataPackage], unsigned_metadata: bytes = b""
) -> bytes:
    return (
        b"".join(serialize_data_package(p) for p in packages)
        + len(packages).to_bytes(2, "big")
        + unsigned_metadata
        + len(unsigned_metadata).to_bytes(3, "big")
        + REDSTONE_MARKER
    )


def select_packages(
    symbol: str,
    raw_packages: Sequence[dict[str, Any]],
    authorized_signers: Sequence[str],
    unique_signers: int,
) -> list[SignedDataPackage]:
    """Pick one package per authorized signer at the newest timestamp with quorum.

    Raises:
        QuorumError: If no timestamp gathers ``unique_signers`` distinct
            authorized signers.
    """
    allowed = {s.lower() for s in authorized_signers}
    by_timestamp: dict[int, OrderedDict[str, SignedDataPackage]] = {}
    for raw in raw_packages:
        if raw.get("isSignatureValid") is False:
            continue
        signer = str(raw.get("signerAddress", "")).lower()
        if signer not in allowed:
            continue
        package = parse_data_package(raw)
        group = by_timestamp.setdefault(package.timestamp, OrderedDict())
        group.setdefault(signer, package)

    best = 0
    for timestamp in sorted(by_timestamp, reverse=True):
        group = by_timestamp[timestamp]
        if len(group) >= unique_signers:
            return list(group.values())[:unique_signers]
        best = max(best, len(group))

    raise QuorumError(symbol, best, unique_signers)


class RedstoneClient:
    """Fetches quorum-signed payloads; performs no on-chain writes."""

    def __init__(
        self,
        transport: ResilientTransport,
        data_service_id: str,
        gateway_urls: Sequence[str],
        unique_signers: int,
        authorized_signers: Sequence[str],
        adaptor_address: str | None = None,
        timeout: float = 10.0,
        unsigned_metadata: bytes = b"",
    ):
        if not gateway_urls:
            raise ValueError("At least one RedStone gateway URL is required")
        self._transport = transport
        self.data_service_id = data_service_id
        self.gateway_urls = list(gateway_urls)
        self.unique_signers = unique_signers
        self.authorized_signers = list(authorized_signers)
        self.adaptor_address = adaptor_address
        self.timeout = timeout
        self.unsigned_metadata = unsigned_metadata

    @classmethod
    def from_settings(
        cls, settings: SdkSettings, transport: ResilientTransport
    ) -> "RedstoneClient":
        return cls(
            transport,
            data_service_id=settings.redstone_data_service_id,
            gateway_urls=settings.redstone_gateway_urls,
            unique_signers=settings.redstone_unique_signers,
            authorized_signers=settings.redstone_authorized_signers,
            adaptor_address=settings.redstone_adaptor_address,
            timeout=settings.redstone_request_timeout,
        )

    async def _fetch_latest(self, gateway: str) -> dict[str, Any]:
        url = f"{gateway.rstrip('/')}/data-packages/latest/{self.data_service_id}"

        async def _get() -> dict[str, Any]:
            response = await asyncio.to_thread(requests.get, url, timeout=self.timeout)
            response.raise_for_status()
            body = response.json()
            if not isinstance(body, dict):
                raise ValueError(f"Unexpected RedStone gateway payload from {gateway}")
            return body

        return await self._transport.execute(_get, f"RedStone {gateway}")

    async def fetch_data_packages(self, symbol: str) -> list[dict[str, Any]]:
        """Raw packages for ``symbol``, trying each gateway in turn."""
        last_error: SdkError | None = None
        for gateway in self.gateway_urls:
            try:
                body = await self._fetch_latest(gateway)
            except SdkError as e:
                logger.warning("RedStone gateway %s unavailable: %s", gateway, e)
                last_error = e
                continue
            return list(body.get(symbol) or [])
        raise last_error or SdkError("No RedStone gateway configured")

    async def get_payload(self, symbol: str) -> SignedPricePayload:
        raw_packages = await self.fetch_data_packages(symbol)
        packages = select_packages(
            symbol, raw_packages, self.authorized_signers, self.unique_signers
        )
        timestamp = packages[0].timestamp
        logger.debug(
            "RedStone payload for %s: %d signers at %d",
            symbol,
            len(packages),
            timestamp,
        )
        return SignedPricePayload(
            payload=serialize_payload(packages, self.unsigned_metadata),
            timestamp=timestamp,
            signers=tuple(p.signer for p in packages),
        )

    async def build_price_update(self, token: TokenInfo) -> CallAction:
        """``writePrice(asset, true, timestamp) || payload`` aimed at the adaptor."""
        if self.adaptor_address is None:
            raise ValueError("redstone_adaptor_address must be configured")
        signed = await self.get_payload(token.asset.symbol)
        write_price = encode_call(
            REDSTONE_CORE_ADAPTOR_ABI_PATH,
            "writePrice",
            [token.asset.address, True, signed.timestamp],
        )
        return build_price_update(self.adaptor_address, write_price + signed.payload)
