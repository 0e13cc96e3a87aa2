import os
os.environ["APP_ENV"] = "test"

# THEN import anything else
import asyncio
from typing import Generator

import pytest

from docdigest.core.settings import get_settings


class FakeClock:
    """Monotonic clock whose sleeps advance time instantly and are recorded."""

    def __init__(self, start: float = 0.0) -> None:
        self.now_value = start
        self.sleeps: list[float] = []

    def now(self) -> float:
        return self.now_value

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now_value += seconds
        await asyncio.sleep(0)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture(autouse=True)
def fresh_settings() -> Generator[None, None, None]:
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
