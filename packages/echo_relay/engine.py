"""Correlation of request fragments into complete capture records.

Header, body and cookie fragments for one request arrive from independent
events in no particular order. The engine merges each into the
:class:`~echo_relay.store.FragmentStore`, then decides whether the entry is
excluded, complete or still partial. A complete entry is evicted and handed
to the sink exactly once.
"""

from __future__ import annotations

import enum
import logging
from typing import Any, Iterable, Mapping, Optional, Tuple, Union

from .config import Settings
from .cookies import CookieSource
from .policy import decode_body, is_complete, should_discard
from .records import MalformedPayloadError, PendingRecord, parse_player_payload
from .sink import RecordSink
from .store import FragmentStore

logger = logging.getLogger(__name__)

HeaderInput = Union[Mapping[str, Optional[str]], Iterable[Tuple[str, Optional[str]]]]


class RequestState(str, enum.Enum):
    EMPTY = "empty"
    PARTIAL = "partial"
    COMPLETE = "complete"
    DISCARDED = "discarded"


def _clean_headers(headers: Optional[HeaderInput]) -> Optional[dict[str, str]]:
    if headers is None:
        return None
    items = headers.items() if isinstance(headers, Mapping) else headers
    return {name: value for name, value in items if name and value}


class CorrelationEngine:
    def __init__(
        self,
        store: FragmentStore,
        sink: RecordSink,
        cookies: CookieSource,
        settings: Optional[Settings] = None,
    ) -> None:
        self.store = store
        self.sink = sink
        self.cookies = cookies
        self.settings = settings or Settings()

    # Fragment handlers -----------------------------------------------------

    def on_headers(
        self,
        request_id: str,
        url: str,
        method: Optional[str],
        headers: Optional[HeaderInput],
    ) -> RequestState:
        if self._skip(url):
            return RequestState.DISCARDED
        fragment = {
            "url": url,
            "method": method or self._existing_method(request_id),
            "headers": (
                _clean_headers(headers) if headers is not None else self._existing_headers(request_id)
            ),
        }
        return self._arrive(request_id, fragment)

    async def on_body(
        self,
        request_id: str,
        url: str,
        method: Optional[str],
        raw_body: Optional[bytes],
    ) -> RequestState:
        """Record the body, then look up cookies for ``url`` and record them.

        The cookie lookup is the only suspension point; other fragments for
        the same request may be merged while it is pending.
        """

        if self._skip(url):
            return RequestState.DISCARDED
        fragment = {
            "url": url,
            "method": method or self._existing_method(request_id),
            "body": decode_body(raw_body),
        }
        state = self._arrive(request_id, fragment)
        if state is not RequestState.PARTIAL:
            return state

        try:
            cookie_header = await self.cookies.cookie_header(url)
        except Exception as exc:
            logger.warning(f"Cookie lookup failed for request {request_id}: {exc}")
            cookie_header = ""
        return self._arrive(request_id, {"cookies": cookie_header or ""})

    def on_player(self, url: str, raw_body: Optional[bytes]) -> bool:
        """Forward the track id carried by a player request, if any."""

        try:
            notification = parse_player_payload(raw_body)
        except MalformedPayloadError as exc:
            logger.warning(f"Dropping player request {url}: {exc}")
            return False
        logger.debug(f"Forwarding start notification for track {notification.trackId}")
        self.sink.send(notification, self.settings.start_endpoint)
        return True

    # Internals -------------------------------------------------------------

    def _skip(self, url: str) -> bool:
        return should_discard(url, self.settings.skip_param, self.settings.skip_value)

    def _existing_method(self, request_id: str) -> str:
        entry = self.store.get(request_id)
        if entry is not None and entry.method is not None:
            return entry.method
        return "GET"

    def _existing_headers(self, request_id: str) -> dict[str, str]:
        entry = self.store.get(request_id)
        if entry is not None and entry.headers is not None:
            return entry.headers
        return {}

    def _arrive(self, request_id: str, fragment: Mapping[str, Any]) -> RequestState:
        if self.settings.pending_ttl_seconds > 0:
            self.store.expire(self.settings.pending_ttl_seconds)
        entry = self.store.merge(request_id, fragment)
        return self._evaluate(request_id, entry)

    def _evaluate(self, request_id: str, entry: PendingRecord) -> RequestState:
        if entry.url is not None and self._skip(entry.url):
            logger.debug(f"Discarding request {request_id}: {entry.url}")
            self.store.evict(request_id)
            return RequestState.DISCARDED

        if not is_complete(entry):
            return RequestState.PARTIAL

        record = entry.complete()
        self.store.evict(request_id)
        logger.debug(f"Forwarding capture for request {request_id}")
        self.sink.send(record, self.settings.capture_endpoint)
        return RequestState.COMPLETE
