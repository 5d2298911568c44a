"""Per-identity credential caching and request pacing for quote providers."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Credential:
    """A short-lived access token and the request rate it grants."""

    token: str
    expires_at: float  # unix seconds
    requests_per_window: int = 1


class _KeyedLocks:
    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}

    def __call__(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    def clear(self) -> None:
        self._locks.clear()


class CredentialCache:
    """Caches one credential per identity until it expires.

    Expired entries are evicted lazily when next requested. Concurrent
    callers for the same identity share a single fetch.
    """

    def __init__(
        self,
        fetch: Callable[[str], Awaitable[Credential]],
        clock: Callable[[], float] = time.time,
    ):
        self._fetch = fetch
        self._clock = clock
        self._entries: dict[str, Credential] = {}
        self._locks = _KeyedLocks()

    async def ensure(self, identity: str) -> Credential:
        async with self._locks(identity):
            cached = self._entries.get(identity)
            if cached is not None:
                if cached.expires_at > self._clock():
                    return cached
                del self._entries[identity]

            credential = await self._fetch(identity)
            self._entries[identity] = credential
            logger.debug(
                "Fetched credential for %s (expires at %s)", identity, credential.expires_at
            )
            return credential

    def get(self, identity: str) -> Credential | None:
        return self._entries.get(identity)

    def invalidate(self, identity: str) -> None:
        self._entries.pop(identity, None)

    def clear(self) -> None:
        self._entries.clear()
        self._locks.clear()


class RateLimiter:
    """Sliding-window limiter keyed by caller identity.

    ``throttle`` waits until fewer than ``limit`` requests from the identity
    fall inside the last ``window`` seconds, then records the new request.
    """

    def __init__(
        self,
        window: float = 2.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if window <= 0:
            raise ValueError("window must be positive")
        self.window = window
        self._clock = clock
        self._sleep = sleep
        self._requests: dict[str, list[float]] = {}
        self._locks = _KeyedLocks()

    def _prune(self, identity: str, now: float) -> list[float]:
        start = now - self.window
        recent = [t for t in self._requests.get(identity, []) if t > start]
        self._requests[identity] = recent
        return recent

    async def throttle(self, identity: str, limit: int) -> float:
        """Returns the number of seconds spent waiting."""
        if limit < 1:
            raise ValueError(f"limit must be >= 1, got {limit}")

        waited = 0.0
        async with self._locks(identity):
            now = self._clock()
            recent = self._prune(identity, now)
            if len(recent) >= limit:
                wait = recent[-limit] + self.window - now
                if wait > 0:
                    logger.debug(
                        "Rate limit reached for %s (%d in %.1fs); sleeping %.2fs",
                        identity,
                        len(recent),
                        self.window,
                        wait,
                    )
                    await self._sleep(wait)
                    waited = wait
                now = self._clock()
                recent = self._prune(identity, now)
            recent.append(now)
        return waited

    def recent(self, identity: str) -> tuple[float, ...]:
        return tuple(self._prune(identity, self._clock()))

    def clear(self) -> None:
        self._requests.clear()
        self._locks.clear()
