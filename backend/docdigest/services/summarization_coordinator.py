from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable
from enum import Enum
import logging

from docdigest.core import metrics
from docdigest.core.settings import Settings
from docdigest.observability.events import emit_action
from docdigest.providers.cancellation import CancellationToken, OperationCancelledError
from docdigest.providers.errors import AppError
from docdigest.providers.rate_limiter import RateLimitConfig, RateLimiter
from docdigest.providers.retry import RetryOrchestrator, RetryPolicy
from docdigest.providers.summary_client import SummaryResponseFormatError
from docdigest.services.streaming_simulator import StreamingSimulator, StreamingState, StreamingTimingConfig
from docdigest.services.text_extraction import TextExtractor, extract_source_text


logger = logging.getLogger("docdigest.summarization")

RemoteCall = Callable[[str, str], Awaitable[list[str]]]


class SummaryOutcome(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class EmptySourceTextError(ValueError):
    def __init__(self, identifier: str) -> None:
        super().__init__("No text could be extracted from the document.")
        self.identifier = identifier


class SummaryGenerationError(Exception):
    """Carries only the user-facing message; the classified error stays on ``app_error``."""

    def __init__(self, app_error: AppError) -> None:
        super().__init__(app_error.user_message)
        self.app_error = app_error

    @property
    def user_message(self) -> str:
        return str(self)


class SummaryStream:
    """Handle for one summary invocation.

    Iterate it (once) to receive :class:`StreamingState` snapshots. ``cancel()``
    may be called at any time; the stream then ends without a completed snapshot
    and ``outcome`` becomes ``cancelled``. A classified failure is raised from
    the iteration as :class:`SummaryGenerationError`.
    """

    def __init__(
        self,
        coordinator: "SummarizationCoordinator",
        *,
        source_text: str,
        identifier: str,
        remote_call: RemoteCall,
    ) -> None:
        self._coordinator = coordinator
        self._source_text = source_text
        self.identifier = identifier
        self._remote_call = remote_call
        self._token = CancellationToken()
        self._started = False
        self.outcome = SummaryOutcome.PENDING
        self.error: AppError | None = None
        self.segments: tuple[str, ...] | None = None

    @property
    def cancelled(self) -> bool:
        return self._token.cancelled

    def cancel(self, reason: str | None = None) -> None:
        self._token.cancel(reason or "cancelled by caller")

    def __aiter__(self) -> AsyncIterator[StreamingState]:
        if self._started:
            raise RuntimeError("A summary stream can only be consumed once.")
        self._started = True
        return self._run()

    async def _run(self) -> AsyncIterator[StreamingState]:
        coordinator = self._coordinator
        try:
            segments = await coordinator._fetch_segments(
                self._source_text, self.identifier, self._remote_call, self._token
            )
        except OperationCancelledError:
            self._finish(SummaryOutcome.CANCELLED)
            return
        except AppError as error:
            self.error = error
            self._finish(SummaryOutcome.FAILED)
            raise SummaryGenerationError(error) from None

        self.segments = tuple(segments)
        last: StreamingState | None = None
        try:
            async for state in coordinator.simulator.simulate(segments, cancel_token=self._token):
                last = state
                yield state
        except GeneratorExit:
            if last is not None and last.is_complete:
                self._finish(SummaryOutcome.COMPLETED)
            else:
                self._token.cancel("stream closed by caller")
                self._finish(SummaryOutcome.CANCELLED)
            raise
        if last is not None and last.is_complete:
            self._finish(SummaryOutcome.COMPLETED)
        else:
            self._finish(SummaryOutcome.CANCELLED)

    def _finish(self, outcome: SummaryOutcome) -> None:
        self.outcome = outcome
        metrics.summaries_total.labels(outcome=outcome.value).inc()
        if outcome is SummaryOutcome.COMPLETED:
            emit_action("summary_generation_complete", filename=self.identifier, summary_length=len(self.segments or ()))
        elif outcome is SummaryOutcome.CANCELLED:
            emit_action("summary_generation_cancelled", filename=self.identifier, reason=self._token.reason)
        elif self.error is not None:
            emit_action(
                "summary_generation_error",
                filename=self.identifier,
                error_message=self.error.user_message,
                error_category=self.error.category.value,
            )


class SummarizationCoordinator:
    def __init__(
        self,
        *,
        rate_limiter: RateLimiter | None = None,
        retry_orchestrator: RetryOrchestrator | None = None,
        simulator: StreamingSimulator | None = None,
        retry_policy: RetryPolicy | None = None,
        provider_key: str = "anthropic",
    ) -> None:
        self.rate_limiter = rate_limiter or RateLimiter()
        self.retry_orchestrator = retry_orchestrator or RetryOrchestrator()
        self.simulator = simulator or StreamingSimulator()
        self.retry_policy = retry_policy or self.retry_orchestrator.policy
        self.provider_key = provider_key

    @classmethod
    def from_settings(cls, settings: Settings) -> "SummarizationCoordinator":
        provider_key = settings.summary_provider_key
        rate_limiter = RateLimiter(
            {
                provider_key: RateLimitConfig(
                    max_requests=settings.rate_limit_max_requests,
                    window_seconds=settings.rate_limit_window_seconds,
                    min_spacing_seconds=settings.rate_limit_min_spacing_seconds or None,
                )
            }
        )
        policy = RetryPolicy(
            max_retries=settings.retry_max_retries,
            base_delay_seconds=settings.retry_base_delay_seconds,
            multiplier=settings.retry_multiplier,
            max_delay_seconds=settings.retry_max_delay_seconds,
            attempt_timeout_seconds=settings.summary_request_timeout_seconds,
        )
        timing = StreamingTimingConfig(
            min_char_delay_seconds=settings.streaming_min_char_delay_seconds,
            max_char_delay_seconds=settings.streaming_max_char_delay_seconds,
            inter_segment_pause_seconds=settings.streaming_inter_segment_pause_seconds,
        )
        return cls(
            rate_limiter=rate_limiter,
            retry_orchestrator=RetryOrchestrator(policy),
            simulator=StreamingSimulator(timing),
            retry_policy=policy,
            provider_key=provider_key,
        )

    def produce_streamed_summary(self, source_text: str, identifier: str, remote_call: RemoteCall) -> SummaryStream:
        if not source_text or not source_text.strip():
            raise EmptySourceTextError(identifier)
        emit_action("summary_generation_start", filename=identifier, text_length=len(source_text))
        return SummaryStream(self, source_text=source_text, identifier=identifier, remote_call=remote_call)

    async def summarize_document(
        self,
        data: bytes,
        identifier: str,
        remote_call: RemoteCall,
        extractor: TextExtractor,
    ) -> SummaryStream:
        source_text = await extract_source_text(extractor, data)
        return self.produce_streamed_summary(source_text, identifier, remote_call)

    async def _fetch_segments(
        self,
        source_text: str,
        identifier: str,
        remote_call: RemoteCall,
        token: CancellationToken,
    ) -> list[str]:
        await self.rate_limiter.acquire(self.provider_key, cancel_token=token)

        async def _call() -> list[str]:
            segments = await remote_call(source_text, identifier)
            if not isinstance(segments, list | tuple) or not all(isinstance(item, str) for item in segments):
                raise SummaryResponseFormatError(payload=segments)
            return list(segments)

        try:
            segments = await self.retry_orchestrator.run(
                _call,
                self.retry_policy,
                token,
                context={"filename": identifier, "provider": self.provider_key},
            )
        except AppError:
            self.rate_limiter.register_request(self.provider_key, success=False)
            raise
        self.rate_limiter.register_request(self.provider_key, success=True)
        return segments
