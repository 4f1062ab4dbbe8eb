"""
FACTURADOR-DIAN — Shared simulation machinery
Injectable randomness and latency for the authority simulators.

Every simulator is built with:
- a SimulationConfig (delay window + error rate)
- an rng exposing random(), randint(), randrange(), sample() (random.Random by default)
- an async sleep(seconds) callable (asyncio.sleep by default)

Tests pass random.Random(seed), a stub rng, or a no-op sleep to get
deterministic, instant runs.
"""

import asyncio
import logging
import random
import uuid
from typing import Awaitable, Callable, Optional, Protocol, Sequence

from facturador.core.config import SimulationConfig
from facturador.schemas.models import SimulatedError
from facturador.utils.dian_helpers import fail, log_line, ok

logger = logging.getLogger(__name__)

SleepFn = Callable[[float], Awaitable[None]]


class RandomSource(Protocol):
    def random(self) -> float: ...
    def randint(self, a: int, b: int) -> int: ...
    def randrange(self, stop: int) -> int: ...
    def sample(self, population: Sequence, k: int) -> list: ...


class ValidationLog:
    """
    Ordered, timestamped log of a simulated validation.
    `failure` holds the structural error that short-circuited the run, if any.
    """

    def __init__(self, sleep: SleepFn):
        self._sleep = sleep
        self.lines: list[str] = []
        self.failure: Optional[SimulatedError] = None

    async def step(self, message: str, delay_ms: int) -> None:
        self.lines.append(log_line(message))
        await self._sleep(delay_ms / 1000)

    def passed(self, message: str) -> None:
        self.lines.append(ok(message))

    def failed(self, message: str, code: str, error_message: Optional[str] = None) -> None:
        self.lines.append(fail(message))
        self.failure = SimulatedError(code=code, message=error_message or message)

    @property
    def is_valid(self) -> bool:
        return self.failure is None


class BaseSimulator:
    """Delay/error-rate plumbing shared by DianSimulator and DianHabilitacionSimulator."""

    def __init__(
        self,
        config: Optional[SimulationConfig] = None,
        rng: Optional[RandomSource] = None,
        sleep: Optional[SleepFn] = None,
    ):
        self.config = config or SimulationConfig()
        self.rng = rng or random.Random()
        self.sleep = sleep or asyncio.sleep

    @property
    def error_rate(self) -> float:
        return self.config.error_rate

    def random_delay_ms(self) -> int:
        """Uniform integer delay within [min, max] (inclusive)."""
        return self.rng.randint(self.config.delay_min_ms, self.config.delay_max_ms)

    def is_rejected(self) -> bool:
        """Weighted coin: True with probability error_rate."""
        return self.rng.random() < self.config.error_rate

    def pick_errors(self, catalog: Sequence[tuple[str, str]]) -> list[SimulatedError]:
        """1 or 2 catalog entries drawn without replacement."""
        count = min(self.rng.randint(1, 2), len(catalog))
        return [SimulatedError(code=code, message=message)
                for code, message in self.rng.sample(list(catalog), count)]

    def new_log(self) -> ValidationLog:
        return ValidationLog(self.sleep)

    async def network_latency(self, delay_ms: int) -> None:
        await self.sleep(delay_ms / 1000)

    @staticmethod
    def new_track_id() -> str:
        return str(uuid.uuid4())
