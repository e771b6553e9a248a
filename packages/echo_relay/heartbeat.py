"""Keep-alive scheduler driven by window/tab lifecycle signals.

The scheduler pings a companion channel on a repeating timer. The first tick
comes after a short bootstrap interval so liveness is confirmed early; shortly
after that first tick the timer is restarted at the steady interval.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable, Hashable, Optional, Protocol, Set

from .channel import PING, ChannelConnector, ChannelError, LivenessChannel, loopback_connector
from .config import Settings

logger = logging.getLogger(__name__)


def _hms(seconds: float) -> str:
    return time.strftime("%H:%M:%S", time.gmtime(seconds))


@dataclass
class HeartbeatState:
    first_call: Optional[float] = None
    last_call: Optional[float] = None
    interval_ms: int = 0
    is_first_round: bool = True
    awake: bool = False
    open_context_count: int = 0


class HeartbeatScheduler:
    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        connect: Optional[ChannelConnector] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.settings = settings or Settings()
        self.state = HeartbeatState(interval_ms=self.settings.heartbeat_bootstrap_ms)
        self.rounds = 0
        self._connect = connect or loopback_connector()
        self._clock = clock
        self._channel: Optional[LivenessChannel] = None
        self._timer: Optional[asyncio.Task] = None
        self._escalation: Optional[asyncio.TimerHandle] = None

    @property
    def running(self) -> bool:
        return self._timer is not None and not self._timer.done()

    @property
    def channel(self) -> Optional[LivenessChannel]:
        return self._channel

    def activate(self) -> None:
        if self._timer is not None and not self._timer.done():
            return
        now = self._clock()
        self.state.first_call = now
        self.state.last_call = now
        self.state.interval_ms = self.settings.heartbeat_bootstrap_ms
        self.state.is_first_round = True
        self.state.awake = True
        self._start_timer()
        logger.info(f"Heartbeat started at {_hms(now)}")

    def deactivate(self) -> None:
        if self._escalation is not None:
            self._escalation.cancel()
            self._escalation = None
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
            logger.info("Heartbeat stopped")
        self.state.awake = False

    def heartbeat(self) -> None:
        now = self._clock()
        self.state.last_call = now
        self.rounds += 1
        elapsed = now - (self.state.first_call or now)
        logger.debug(f"Heartbeat round {self.rounds}, {_hms(elapsed)} since first start")

        self._ping()

        if self.state.is_first_round and self._escalation is None:
            delay = self.settings.heartbeat_escalation_delay_ms / 1000
            self._escalation = asyncio.get_running_loop().call_later(delay, self._escalate)

    # Internals -------------------------------------------------------------

    def _ping(self) -> None:
        if self._channel is None:
            try:
                channel = self._connect(self.settings.liveness_channel)
                channel.on_disconnect(self._on_disconnect)
            except ChannelError as exc:
                logger.debug(f"Could not open liveness channel: {exc}")
                return
            except Exception as exc:
                logger.warning(f"Could not open liveness channel: {exc}")
                return
            self._channel = channel
        try:
            self._channel.post_message(PING)
        except ChannelError as exc:
            logger.debug(f"Ping on {self._channel.name} failed: {exc}")
        except Exception as exc:
            # Reopen on the next round.
            logger.warning(f"Ping on {self._channel.name} failed: {exc}")
            self._channel = None
        else:
            logger.debug(f"Ping sent through {self._channel.name}")

    def _on_disconnect(self, channel: LivenessChannel) -> None:
        logger.debug(f"Liveness channel {channel.name} disconnected")
        if channel is self._channel:
            self._channel = None

    def _escalate(self) -> None:
        self._escalation = None
        if self._timer is None:
            return
        self._timer.cancel()
        self.state.interval_ms = self.settings.heartbeat_steady_ms
        self._start_timer()
        self.state.is_first_round = False
        logger.debug(f"Heartbeat interval raised to {self.state.interval_ms} ms")

    def _start_timer(self) -> None:
        interval = self.state.interval_ms / 1000
        self._timer = asyncio.get_running_loop().create_task(self._tick(interval))

    async def _tick(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            self.heartbeat()


class ContextSource(Protocol):
    async def count_open_contexts(self) -> int:  # pragma: no cover - interface
        ...


class ContextSet:
    """Minimal in-process :class:`ContextSource` tracking open context ids."""

    def __init__(self) -> None:
        self._open: Set[Hashable] = set()

    def add(self, context_id: Hashable) -> None:
        self._open.add(context_id)

    def discard(self, context_id: Hashable) -> None:
        self._open.discard(context_id)

    async def count_open_contexts(self) -> int:
        return len(self._open)


class ContextTracker:
    """Starts and stops the scheduler as contexts open and close.

    The open count is re-read from the host on every signal, so a missed
    close notification is corrected by the next one.
    """

    def __init__(self, scheduler: HeartbeatScheduler, source: ContextSource) -> None:
        self.scheduler = scheduler
        self.source = source
        self._seen_open = False

    async def context_opened(self, *_: object) -> None:
        await self._recount(delta=1)
        if not self._seen_open or not self.scheduler.state.awake:
            self._seen_open = True
            self.scheduler.activate()

    async def context_closed(self, *_: object) -> None:
        count = await self._recount(delta=-1)
        if count == 0:
            self.scheduler.deactivate()

    async def bootstrap(self) -> None:
        """Pick up contexts that were already open before any signal arrived."""

        count = await self._recount(delta=0)
        if count > 0 and not self.scheduler.state.awake:
            self._seen_open = True
            self.scheduler.activate()

    async def _recount(self, *, delta: int) -> int:
        state = self.scheduler.state
        try:
            count = await self.source.count_open_contexts()
        except Exception as exc:
            logger.warning(f"Could not enumerate open contexts: {exc}")
            count = state.open_context_count + delta
        state.open_context_count = max(0, count)
        return state.open_context_count
