"""In-memory store of partially assembled request records."""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, Mapping, Optional

from .records import FRAGMENT_FIELDS, PendingRecord

logger = logging.getLogger(__name__)


class FragmentStore:
    """Maps request ids to the fragments observed for them so far.

    Merges are additive: a field that is absent (``None``) in an update never
    clears a value that was already recorded.
    """

    def __init__(self) -> None:
        self._entries: Dict[str, PendingRecord] = {}

    def merge(self, request_id: str, fragment: Mapping[str, Any]) -> PendingRecord:
        unknown = set(fragment) - set(FRAGMENT_FIELDS)
        if unknown:
            raise KeyError(f"unknown fragment fields: {sorted(unknown)}")

        entry = self._entries.get(request_id)
        if entry is None:
            entry = PendingRecord()
            self._entries[request_id] = entry

        for name, value in fragment.items():
            if value is None:
                continue
            if name == "headers":
                value = dict(value)
            setattr(entry, name, value)
        return entry.snapshot()

    def get(self, request_id: str) -> Optional[PendingRecord]:
        entry = self._entries.get(request_id)
        return entry.snapshot() if entry is not None else None

    def evict(self, request_id: str) -> None:
        self._entries.pop(request_id, None)

    def expire(self, max_age: float, now: Optional[float] = None) -> list[str]:
        """Drop entries older than ``max_age`` seconds and return their ids."""

        now = time.monotonic() if now is None else now
        stale = [
            request_id
            for request_id, entry in self._entries.items()
            if now - entry.created_at > max_age
        ]
        for request_id in stale:
            logger.debug(f"Expiring stale pending record {request_id}")
            del self._entries[request_id]
        return stale

    def __contains__(self, request_id: object) -> bool:
        return request_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)
