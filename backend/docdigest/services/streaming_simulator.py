from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable, Sequence
from dataclasses import dataclass
import random

from docdigest.providers.cancellation import CancellationToken, OperationCancelledError, SleepFn


@dataclass(frozen=True)
class StreamingState:
    is_complete: bool
    bullet_points: tuple[str, ...]
    current_bullet_index: int
    current_bullet_text: str

    def to_dict(self) -> dict[str, object]:
        return {
            "is_complete": self.is_complete,
            "bullet_points": list(self.bullet_points),
            "current_bullet_index": self.current_bullet_index,
            "current_bullet_text": self.current_bullet_text,
        }


@dataclass(frozen=True)
class StreamingTimingConfig:
    min_char_delay_seconds: float = 0.015
    max_char_delay_seconds: float = 0.045
    inter_segment_pause_seconds: float = 0.3

    def __post_init__(self) -> None:
        if self.min_char_delay_seconds < 0 or self.inter_segment_pause_seconds < 0:
            raise ValueError("streaming delays must not be negative")
        if self.min_char_delay_seconds > self.max_char_delay_seconds:
            raise ValueError("min_char_delay_seconds must not exceed max_char_delay_seconds")


class StreamingSimulator:
    """Replays an already complete list of segments as if it were being typed.

    Every call to :meth:`simulate` yields a fresh, finite sequence of immutable
    :class:`StreamingState` snapshots. Only the delays between snapshots are
    random; their content depends on the segments alone.
    """

    def __init__(
        self,
        timing: StreamingTimingConfig | None = None,
        *,
        sleep_fn: SleepFn = asyncio.sleep,
        random_fn: Callable[[float, float], float] = random.uniform,
    ) -> None:
        self.timing = timing or StreamingTimingConfig()
        self._sleep_fn = sleep_fn
        self._random_fn = random_fn

    async def simulate(
        self,
        segments: Sequence[str],
        timing: StreamingTimingConfig | None = None,
        *,
        cancel_token: CancellationToken | None = None,
    ) -> AsyncIterator[StreamingState]:
        final = tuple(segments)
        active = timing or self.timing
        token = cancel_token or CancellationToken()

        if not final:
            if not token.cancelled:
                yield StreamingState(
                    is_complete=True,
                    bullet_points=(),
                    current_bullet_index=-1,
                    current_bullet_text="",
                )
            return

        try:
            for index, segment in enumerate(final):
                if index > 0:
                    await token.sleep(active.inter_segment_pause_seconds, sleep_fn=self._sleep_fn)
                # An empty segment still gets one snapshot so the index advances.
                for length in range(1 if segment else 0, len(segment) + 1):
                    if length > 1:
                        await token.sleep(self._char_delay(active), sleep_fn=self._sleep_fn)
                    token.raise_if_cancelled()
                    yield _partial_state(final, index, segment[:length])
        except OperationCancelledError:
            return

        if token.cancelled:
            return
        yield StreamingState(
            is_complete=True,
            bullet_points=final,
            current_bullet_index=len(final) - 1,
            current_bullet_text=final[-1],
        )

    def _char_delay(self, timing: StreamingTimingConfig) -> float:
        if timing.max_char_delay_seconds == timing.min_char_delay_seconds:
            return timing.min_char_delay_seconds
        return self._random_fn(timing.min_char_delay_seconds, timing.max_char_delay_seconds)


def _partial_state(final: tuple[str, ...], index: int, prefix: str) -> StreamingState:
    bullet_points = final[:index] + (prefix,) + ("",) * (len(final) - index - 1)
    return StreamingState(
        is_complete=False,
        bullet_points=bullet_points,
        current_bullet_index=index,
        current_bullet_text=prefix,
    )
