"""Companion channel used by the heartbeat as a liveness signal."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Dict, List, Protocol

logger = logging.getLogger(__name__)

PING = {"content": "ping"}


class ChannelError(RuntimeError):
    """Raised when a message cannot be posted on a liveness channel."""


class LivenessChannel(Protocol):
    name: str

    def post_message(self, message: Dict[str, Any]) -> None:  # pragma: no cover - interface
        ...

    def on_disconnect(self, callback: Callable[["LivenessChannel"], None]) -> None:  # pragma: no cover
        ...


ChannelConnector = Callable[[str], LivenessChannel]


class LoopbackChannel:
    """In-process channel; messages are queued for a local receiver.

    When nobody drains the queue the oldest message is dropped, so posting
    never fails on an open channel.
    """

    def __init__(self, name: str, *, maxsize: int = 64) -> None:
        self.name = name
        self.closed = False
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._listeners: List[Callable[[LivenessChannel], None]] = []

    def post_message(self, message: Dict[str, Any]) -> None:
        if self.closed:
            raise ChannelError(f"channel {self.name} is closed")
        if self._queue.full():
            self._queue.get_nowait()
        self._queue.put_nowait(dict(message))

    def qsize(self) -> int:
        return self._queue.qsize()

    def on_disconnect(self, callback: Callable[[LivenessChannel], None]) -> None:
        self._listeners.append(callback)

    async def receive(self) -> Dict[str, Any]:
        return await self._queue.get()

    def disconnect(self) -> None:
        if self.closed:
            return
        self.closed = True
        for callback in list(self._listeners):
            callback(self)


def loopback_connector(**kwargs: Any) -> ChannelConnector:
    """Return a connector that opens a fresh :class:`LoopbackChannel` per call."""

    def connect(name: str) -> LivenessChannel:
        logger.debug(f"Opening liveness channel {name}")
        return LoopbackChannel(name, **kwargs)

    return connect
