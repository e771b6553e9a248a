"""Forwarding of finished records to the local collector."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional, Protocol, Set, Union

import httpx

from .records import CompletedRecord, StartNotification

logger = logging.getLogger(__name__)

Payload = Union[CompletedRecord, StartNotification]


class RecordSink(Protocol):
    def send(self, payload: Payload, endpoint: str) -> Optional[asyncio.Task]:  # pragma: no cover - interface
        ...


class HTTPForwardingSink:
    """Posts payloads as JSON without making the caller wait.

    Every :meth:`send` becomes a background task. Failures are logged and
    dropped; nothing is retried.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        *,
        timeout: float = 10.0,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._pending: Set[asyncio.Task] = set()

    def send(self, payload: Payload, endpoint: str) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(self._post(payload, endpoint))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _post(self, payload: Payload, endpoint: str) -> bool:
        try:
            response = await self._client.post(
                endpoint,
                json=payload.model_dump(mode="json"),
                headers={"Content-Type": "application/json"},
            )
            response.raise_for_status()
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.error(f"Failed to send {type(payload).__name__} to {endpoint}: {exc}")
            return False
        logger.debug(f"Sent {type(payload).__name__} to {endpoint}")
        return True

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        """Wait for in-flight sends. Only used on shutdown and in tests."""

        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def aclose(self) -> None:
        await self.drain()
        if self._owns_client:
            await self._client.aclose()
