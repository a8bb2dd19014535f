"""Per-configuration concurrency limits for outbound LLM calls."""

import asyncio
import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Awaitable, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class AdmissionLane:
    """Slot accounting and FIFO wait queue for one upstream configuration."""

    name: str
    max_concurrent: int
    active: int = 0
    waiters: deque[asyncio.Future] = field(default_factory=deque)

    @property
    def queued(self) -> int:
        return sum(1 for waiter in self.waiters if not waiter.done())


class AdmissionController:
    """
    Bounds in-flight tasks per configuration name.

    A task that finds a free slot runs at once. Otherwise the caller waits in
    a FIFO queue; when a running task finishes, its slot is handed directly to
    the oldest waiter so later arrivals cannot jump the queue. Lanes are
    created on first use with the limit returned by ``resolve_limit``.
    """

    def __init__(self, resolve_limit: Callable[[str], int]):
        self._resolve_limit = resolve_limit
        self._lanes: dict[str, AdmissionLane] = {}

    def lane(self, name: str) -> AdmissionLane:
        lane = self._lanes.get(name)
        if lane is None:
            lane = AdmissionLane(name=name, max_concurrent=max(1, self._resolve_limit(name)))
            self._lanes[name] = lane
        return lane

    async def submit(self, name: str, task: Callable[[], Awaitable[T]]) -> T:
        """Run task under the named lane's concurrency limit."""
        lane = self.lane(name)
        await self._admit(lane)
        try:
            return await task()
        finally:
            self._release(lane)

    async def _admit(self, lane: AdmissionLane) -> None:
        if lane.active < lane.max_concurrent and lane.queued == 0:
            lane.active += 1
            return

        waiter = asyncio.get_running_loop().create_future()
        lane.waiters.append(waiter)
        logger.debug(
            f"Lane '{lane.name}' saturated ({lane.active}/{lane.max_concurrent}), "
            f"{len(lane.waiters)} waiting"
        )
        try:
            await waiter
        except asyncio.CancelledError:
            if waiter.done() and not waiter.cancelled():
                # The slot was already handed over; pass it on.
                self._release(lane)
            elif waiter in lane.waiters:
                lane.waiters.remove(waiter)
            raise

    def _release(self, lane: AdmissionLane) -> None:
        lane.active -= 1
        while lane.waiters:
            waiter = lane.waiters.popleft()
            if not waiter.done():
                lane.active += 1
                waiter.set_result(None)
                break

    def get_status(self) -> dict[str, dict]:
        """Active and queued counts per lane, for monitoring."""
        return {
            name: {
                "active": lane.active,
                "queued": lane.queued,
                "max_concurrent": lane.max_concurrent,
            }
            for name, lane in self._lanes.items()
        }
