"""Composition root wiring settings into transport, oracles, quotes and tokens."""

from __future__ import annotations

import logging
from typing import Any

from .domain import Submission, TokenInfo
from .executor import TransactionExecutor
from .oracles.manager import OracleManager
from .oracles.redstone import RedstoneClient
from .quotes.base import BaseQuoteProvider
from .quotes.kuru import KuruProvider
from .quotes.kyberswap import KyberSwapProvider
from .quotes.rate_limit import RateLimiter
from .routing.router import PriceFreshnessRouter
from .settings import DexAggregator, SdkSettings
from .tokens.position_manager import PositionManager
from .tokens.token import LendingToken
from .tokens.zapper import ZapKind, Zapper
from .transport.chain import RetryingChain
from .transport.retry import ResilientTransport, RetryPolicy

logger = logging.getLogger(__name__)


class CurvanceClient:
    """Owns every stateful collaborator; nothing lives at module level.

    Build with ``from_settings`` and call ``close()`` (or use ``async with``)
    to clear the per-identity caches.
    """

    def __init__(
        self,
        settings: SdkSettings,
        transport: ResilientTransport,
        chain: RetryingChain,
        redstone: RedstoneClient,
        quote_provider: BaseQuoteProvider,
        rate_limiter: RateLimiter,
        executor: TransactionExecutor | None = None,
    ):
        self.settings = settings
        self.transport = transport
        self.chain = chain
        self.redstone = redstone
        self.router = PriceFreshnessRouter(redstone)
        self.quote_provider = quote_provider
        self.rate_limiter = rate_limiter
        self.executor = executor

        self.oracle_manager = (
            OracleManager(chain, settings.oracle_manager_address)
            if settings.oracle_manager_address
            else None
        )
        self.position_manager = (
            PositionManager(settings.simple_position_manager_address)
            if settings.simple_position_manager_address
            else None
        )
        self.zappers: dict[ZapKind, Zapper] = {}
        if settings.simple_zapper_address:
            for kind in (ZapKind.SIMPLE, ZapKind.NATIVE_SIMPLE):
                self.zappers[kind] = Zapper(
                    settings.simple_zapper_address,
                    kind,
                    quote_provider,
                    settings.wrapped_native_address,
                )
        if settings.native_vault_zapper_address:
            self.zappers[ZapKind.NATIVE_VAULT] = Zapper(
                settings.native_vault_zapper_address,
                ZapKind.NATIVE_VAULT,
                quote_provider,
                settings.wrapped_native_address,
            )

    @classmethod
    def from_settings(cls, settings: SdkSettings | None = None) -> "CurvanceClient":
        settings = settings or SdkSettings()
        transport = ResilientTransport(RetryPolicy.from_settings(settings))
        chain = RetryingChain.from_url(
            settings.rpc_url_resolved, transport, timeout=settings.rpc_timeout
        )
        redstone = RedstoneClient.from_settings(settings, transport)
        rate_limiter = RateLimiter(window=settings.quote_rate_window)

        quote_provider: BaseQuoteProvider
        if settings.dex_aggregator is DexAggregator.KURU:
            quote_provider = KuruProvider.from_settings(settings, transport, rate_limiter)
        else:
            quote_provider = KyberSwapProvider.from_settings(settings, transport)

        executor = None
        if settings.private_key is not None:
            executor = TransactionExecutor.from_key(chain, settings.private_key_required)

        logger.debug(
            "Client ready: chain=%s rpc=%s aggregator=%s signer=%s",
            settings.chain.value,
            settings.rpc_url_resolved,
            quote_provider.provider_name,
            executor.address if executor else None,
        )
        return cls(
            settings,
            transport,
            chain,
            redstone,
            quote_provider,
            rate_limiter,
            executor,
        )

    def token(self, info: TokenInfo, account: str | None = None) -> LendingToken:
        if account is None:
            if self.executor is None:
                raise ValueError("An account is required when no private_key is configured")
            account = self.executor.address
        return LendingToken(
            info,
            self.chain,
            self.router,
            account,
            zappers=self.zappers,
            position_manager=self.position_manager,
            quote_provider=self.quote_provider,
            approval_protection=self.settings.approval_protection,
        )

    async def send(self, submission: Submission, **overrides: Any) -> str:
        if self.executor is None:
            raise ValueError("private_key must be configured to send transactions")
        return await self.executor.execute(submission, **overrides)

    def close(self) -> None:
        self.rate_limiter.clear()
        if isinstance(self.quote_provider, KuruProvider):
            self.quote_provider.close()

    async def __aenter__(self) -> "CurvanceClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        self.close()
