"""Completeness and exclusion rules applied to pending records."""

from __future__ import annotations

import logging
from urllib.parse import parse_qs, urlsplit

from .records import PendingRecord

logger = logging.getLogger(__name__)

SKIP_PARAM = "itag"
SKIP_VALUE = "243"


def is_complete(entry: PendingRecord) -> bool:
    return not entry.missing()


def should_discard(url: str, param: str = SKIP_PARAM, sentinel: str = SKIP_VALUE) -> bool:
    """Return True when ``url`` carries ``param=sentinel`` in its query.

    URLs that cannot be parsed are kept, so a parsing problem never turns
    into silent data loss.
    """

    try:
        parts = urlsplit(url)
        if not parts.scheme or not parts.netloc:
            raise ValueError(f"not an absolute URL: {url!r}")
        # Accessing the port validates it.
        parts.port
    except (TypeError, ValueError) as exc:
        logger.debug(f"Keeping unparsable URL: {exc}")
        return False

    values = parse_qs(parts.query, keep_blank_values=True).get(param)
    return bool(values) and values[0] == sentinel


def decode_body(raw: bytes | None) -> str:
    """Decode a raw request body as UTF-8; undecodable bodies become ``""``."""

    if not raw:
        return ""
    try:
        return bytes(raw).decode("utf-8")
    except UnicodeDecodeError as exc:
        logger.warning(f"Failed to decode request body: {exc}")
        return ""
