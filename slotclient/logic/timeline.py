"""Animation phases as data, and the clocks that wait them out."""
import asyncio
import heapq
import itertools
import logging
from enum import Enum
from typing import Protocol

from slotclient.config import Settings, settings


logger = logging.getLogger(__name__)


class Phase(str, Enum):
    """Timed animation phases."""

    REEL_SPIN = "reel_spin"  # reels roll before a result is committed
    DROP_ANIMATION = "drop_animation"  # cascade board rolls to a stop
    CASCADE_LEAD_IN = "cascade_lead_in"  # pause before the first cascade step
    BONUS_SETTLE = "bonus_settle"  # cascade bonus purchase acknowledgement


def phase_durations(config: Settings = settings) -> dict[Phase, tuple[int, int]]:
    """Phase -> (normal_ms, turbo_ms)."""
    return {
        Phase.REEL_SPIN: (config.spin_duration_ms, config.spin_duration_turbo_ms),
        Phase.DROP_ANIMATION: (config.drop_animation_ms, config.drop_animation_turbo_ms),
        Phase.CASCADE_LEAD_IN: (config.cascade_lead_in_ms, config.cascade_lead_in_turbo_ms),
        Phase.BONUS_SETTLE: (config.bonus_settle_ms, config.bonus_settle_turbo_ms),
    }


class Clock(Protocol):
    """Something that can suspend the current task for a while."""

    def now(self) -> float:
        ...

    async def sleep(self, seconds: float) -> None:
        ...


class AsyncioClock:
    """Wall-clock time on the running event loop."""

    def now(self) -> float:
        return asyncio.get_running_loop().time()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)


class VirtualClock:
    """
    Manually advanced clock for tests and replays.

    sleep() parks the caller until advance() moves time past its deadline.
    """

    SETTLE_ROUNDS = 50

    def __init__(self):
        self._now = 0.0
        self._sleepers: list[tuple[float, int, asyncio.Future]] = []
        self._seq = itertools.count()

    def now(self) -> float:
        return self._now

    @property
    def pending(self) -> int:
        return sum(1 for _, _, fut in self._sleepers if not fut.done())

    async def sleep(self, seconds: float) -> None:
        fut = asyncio.get_running_loop().create_future()
        heapq.heappush(self._sleepers, (self._now + max(seconds, 0.0), next(self._seq), fut))
        await fut

    async def settle(self) -> None:
        """Let every runnable task proceed to its next suspension point."""
        for _ in range(self.SETTLE_ROUNDS):
            await asyncio.sleep(0)

    async def advance(self, seconds: float) -> None:
        """Move time forward, waking sleepers in deadline order."""
        target = self._now + seconds
        await self.settle()
        while self._sleepers and self._sleepers[0][0] <= target:
            deadline, _, fut = heapq.heappop(self._sleepers)
            self._now = deadline
            if not fut.done():
                fut.set_result(None)
            await self.settle()
        self._now = target


class Timeline:
    """Waits out named phases, scaled by the turbo flag."""

    def __init__(self, clock: Clock | None = None, config: Settings = settings):
        self.clock = clock or AsyncioClock()
        self._durations = phase_durations(config)

    def duration(self, phase: Phase, turbo: bool) -> float:
        """Duration of a phase in seconds."""
        normal_ms, turbo_ms = self._durations[phase]
        return (turbo_ms if turbo else normal_ms) / 1000

    async def wait(self, *phases: Phase, turbo: bool) -> None:
        """Wait for the given phases back to back."""
        seconds = sum(self.duration(phase, turbo) for phase in phases)
        logger.debug("Waiting %.3fs for %s", seconds, ", ".join(p.value for p in phases))
        await self.clock.sleep(seconds)
