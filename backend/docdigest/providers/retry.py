from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
import logging
import random
from typing import Any, TypeVar

from docdigest.core import metrics
from docdigest.observability.events import emit_api_error, emit_retry_scheduled
from docdigest.providers.cancellation import CancellationToken, OperationCancelledError, SleepFn
from docdigest.providers.errors import AppError, classify_error


T = TypeVar("T")

logger = logging.getLogger("docdigest.provider.retry")


class RetryState(str, Enum):
    ATTEMPTING = "attempting"
    CLASSIFYING = "classifying"
    RETRYING = "retrying"
    SUCCESS = "success"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = 2
    base_delay_seconds: float = 1.0
    multiplier: float = 2.0
    max_delay_seconds: float | None = None
    jitter_ratio: float = 0.0
    attempt_timeout_seconds: float | None = None

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError("max_retries must not be negative")
        if self.base_delay_seconds <= 0:
            raise ValueError("base_delay_seconds must be greater than zero")
        if self.multiplier < 1:
            raise ValueError("multiplier must be at least 1")
        if self.jitter_ratio < 0:
            raise ValueError("jitter_ratio must not be negative")

    def delay_for_retry(
        self,
        retry_number: int,
        *,
        random_fn: Callable[[float, float], float] = random.uniform,
    ) -> float:
        delay = self.base_delay_seconds * (self.multiplier ** (retry_number - 1))
        if self.max_delay_seconds is not None:
            delay = min(self.max_delay_seconds, delay)
        if self.jitter_ratio <= 0:
            return delay
        jitter_multiplier = 1.0 + random_fn(-self.jitter_ratio, self.jitter_ratio)
        return max(0.0, delay * jitter_multiplier)


TransitionHook = Callable[[RetryState], None]


class RetryOrchestrator:
    def __init__(
        self,
        policy: RetryPolicy | None = None,
        *,
        classify: Callable[..., AppError] = classify_error,
        sleep_fn: SleepFn = asyncio.sleep,
        random_fn: Callable[[float, float], float] = random.uniform,
    ) -> None:
        self.policy = policy or RetryPolicy()
        self._classify = classify
        self._sleep_fn = sleep_fn
        self._random_fn = random_fn

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        policy: RetryPolicy | None = None,
        cancel_token: CancellationToken | None = None,
        *,
        context: dict[str, Any] | None = None,
        on_transition: TransitionHook | None = None,
    ) -> T:
        active = policy or self.policy
        token = cancel_token or CancellationToken()

        def _enter(state: RetryState) -> None:
            if on_transition is not None:
                on_transition(state)

        retry_count = 0
        while True:
            _enter(RetryState.ATTEMPTING)
            try:
                return_value = await token.guard(self._attempt(operation, active))
            except OperationCancelledError:
                _enter(RetryState.CANCELLED)
                raise
            except Exception as exc:  # noqa: BLE001
                _enter(RetryState.CLASSIFYING)
                error = self._classify(exc, {**(context or {}), "retry_count": retry_count})
                emit_api_error(
                    message=error.message,
                    category=error.category.value,
                    status_code=error.status_code,
                    retryable=error.retryable,
                    context=error.context,
                )
                if not error.retryable or retry_count >= active.max_retries:
                    _enter(RetryState.FAILED)
                    raise error

                retry_count += 1
                delay = active.delay_for_retry(retry_count, random_fn=self._random_fn)
                _enter(RetryState.RETRYING)
                emit_retry_scheduled(
                    retry_count=retry_count,
                    delay_seconds=delay,
                    category=error.category.value,
                    context=context,
                )
                metrics.retries_total.labels(category=error.category.value).inc()
                try:
                    await token.sleep(delay, sleep_fn=self._sleep_fn)
                except OperationCancelledError:
                    _enter(RetryState.CANCELLED)
                    raise
                continue

            _enter(RetryState.SUCCESS)
            if retry_count:
                logger.info("operation succeeded after %d retries", retry_count)
            return return_value

    @staticmethod
    async def _attempt(operation: Callable[[], Awaitable[T]], policy: RetryPolicy) -> T:
        if policy.attempt_timeout_seconds is None:
            return await operation()
        return await asyncio.wait_for(operation(), timeout=policy.attempt_timeout_seconds)
