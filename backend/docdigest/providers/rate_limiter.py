from __future__ import annotations

import asyncio
import collections
from collections.abc import Callable
from dataclasses import dataclass, replace
import logging
import time

from docdigest.core import metrics
from docdigest.observability.events import emit_action, emit_rate_limit_hit
from docdigest.providers.cancellation import CancellationToken, SleepFn


DEFAULT_PROVIDER_KEY = "default"

logger = logging.getLogger("docdigest.provider.rate_limit")

TimeFn = Callable[[], float]


class RateLimitConfigError(ValueError):
    pass


@dataclass(frozen=True)
class RateLimitConfig:
    max_requests: int
    window_seconds: float
    min_spacing_seconds: float | None = None

    def __post_init__(self) -> None:
        if self.max_requests < 1:
            raise RateLimitConfigError("max_requests must be at least 1")
        if self.window_seconds <= 0:
            raise RateLimitConfigError("window_seconds must be greater than zero")
        if self.min_spacing_seconds is not None and self.min_spacing_seconds < 0:
            raise RateLimitConfigError("min_spacing_seconds must not be negative")


def _release_if_acquired(lock: asyncio.Lock, acquiring: asyncio.Future) -> None:
    if not acquiring.cancelled() and acquiring.exception() is None and acquiring.result():
        lock.release()


async def _acquire_lock(lock: asyncio.Lock, token: CancellationToken) -> None:
    """Queue for ``lock`` while observing ``token``; a cancelled caller never ends up holding it."""
    acquiring = asyncio.ensure_future(lock.acquire())
    try:
        await token.guard(acquiring)
    except BaseException:
        if acquiring.done():
            _release_if_acquired(lock, acquiring)
        else:
            acquiring.cancel()
            acquiring.add_done_callback(lambda task: _release_if_acquired(lock, task))
        raise


def default_rate_limit_configs() -> dict[str, RateLimitConfig]:
    return {
        "anthropic": RateLimitConfig(max_requests=5, window_seconds=60.0, min_spacing_seconds=0.3),
        DEFAULT_PROVIDER_KEY: RateLimitConfig(max_requests=10, window_seconds=60.0),
    }


class RateLimiter:
    """Sliding-window admission control keyed by provider.

    Each provider has its own ledger of admission timestamps and its own lock.
    A caller that finds the window saturated waits while holding the lock, so
    later callers queue behind it in arrival order.
    """

    def __init__(
        self,
        configs: dict[str, RateLimitConfig] | None = None,
        *,
        now_fn: TimeFn = time.monotonic,
        sleep_fn: SleepFn = asyncio.sleep,
    ) -> None:
        self._configs = default_rate_limit_configs()
        if configs:
            self._configs.update(configs)
        self._now = now_fn
        self._sleep_fn = sleep_fn
        self._ledgers: dict[str, collections.deque[float]] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def config_for(self, provider_key: str) -> RateLimitConfig:
        return self._configs.get(provider_key) or self._configs[DEFAULT_PROVIDER_KEY]

    def configure(self, provider_key: str, **overrides: int | float | None) -> RateLimitConfig:
        config = replace(self.config_for(provider_key), **overrides)
        self._configs[provider_key] = config
        emit_action(
            "rate_limit_config_updated",
            provider=provider_key,
            max_requests=config.max_requests,
            window_seconds=config.window_seconds,
            min_spacing_seconds=config.min_spacing_seconds,
        )
        return config

    def ledger(self, provider_key: str) -> tuple[float, ...]:
        return tuple(self._ledgers.get(provider_key, ()))

    async def acquire(
        self,
        provider_key: str,
        config: RateLimitConfig | None = None,
        *,
        cancel_token: CancellationToken | None = None,
    ) -> None:
        token = cancel_token or CancellationToken()
        lock = self._locks.setdefault(provider_key, asyncio.Lock())
        ledger = self._ledgers.setdefault(provider_key, collections.deque())
        waited = 0.0

        await _acquire_lock(lock, token)
        try:
            while True:
                token.raise_if_cancelled()
                active = config or self.config_for(provider_key)
                now = self._now()
                wait_seconds = self._wait_needed(ledger, active, now)
                if wait_seconds <= 0:
                    ledger.append(now)
                    break

                emit_rate_limit_hit(
                    provider=provider_key,
                    max_requests=active.max_requests,
                    window_seconds=active.window_seconds,
                    wait_seconds=wait_seconds,
                )
                metrics.rate_limit_waits_total.labels(provider=provider_key).inc()
                await token.sleep(wait_seconds, sleep_fn=self._sleep_fn)
                waited += wait_seconds
        finally:
            lock.release()

        if waited:
            metrics.rate_limit_wait_seconds.labels(provider=provider_key).observe(waited)
            logger.debug("rate limit admission granted after wait", extra={"provider": provider_key})

    def register_request(self, provider_key: str, *, success: bool) -> None:
        emit_action(
            "api_request_complete",
            provider=provider_key,
            success=success,
            current_requests=len(self._ledgers.get(provider_key, ())),
        )

    @staticmethod
    def _wait_needed(ledger: collections.deque[float], config: RateLimitConfig, now: float) -> float:
        cutoff = now - config.window_seconds
        while ledger and ledger[0] <= cutoff:
            ledger.popleft()

        if len(ledger) >= config.max_requests:
            return (ledger[0] + config.window_seconds) - now

        if config.min_spacing_seconds and ledger:
            since_last = now - ledger[-1]
            if since_last < config.min_spacing_seconds:
                return config.min_spacing_seconds - since_last
        return 0.0
