"""Subscription interface for host-delivered request and lifecycle signals.

Hosts (a browser bridge, a proxy addon, a replay script) publish signals on a
:class:`SignalBus`; the relay subscribes one handler per signal kind. Signals
that carry a URL are only delivered to handlers whose match pattern accepts
that URL.
"""

from __future__ import annotations

import enum
import inspect
import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import urlsplit

logger = logging.getLogger(__name__)


class Signal(str, enum.Enum):
    HEADERS = "headers"  # (request_id, url, method, headers)
    BODY = "body"  # (request_id, url, method, raw_body)
    PLAYER = "player"  # (url, raw_body)
    CONTEXT_OPENED = "context_opened"
    CONTEXT_CLOSED = "context_closed"


_URL_ARG = {Signal.HEADERS: 1, Signal.BODY: 1, Signal.PLAYER: 0}


# ---------------------------------------------------------------------------
# URL match patterns
# ---------------------------------------------------------------------------


def _glob(pattern: str) -> re.Pattern[str]:
    return re.compile(".*".join(re.escape(part) for part in pattern.split("*")) + r"\Z")


def match_url(pattern: str, url: str) -> bool:
    """Match ``url`` against a ``scheme://host/path`` pattern.

    ``*`` as scheme means http or https, a ``*.`` host prefix matches the
    domain and all of its subdomains, and ``*`` in the path is a wildcard.
    """

    scheme_pat, sep, rest = pattern.partition("://")
    if not sep:
        raise ValueError(f"invalid match pattern: {pattern!r}")
    host_pat, _, path_pat = rest.partition("/")

    try:
        parts = urlsplit(url)
        host = (parts.hostname or "").lower()
    except ValueError:
        return False

    scheme = parts.scheme.lower()
    if scheme_pat == "*":
        if scheme not in ("http", "https"):
            return False
    elif scheme != scheme_pat.lower():
        return False

    host_pat = host_pat.lower()
    if host_pat.startswith("*."):
        base = host_pat[2:]
        if host != base and not host.endswith("." + base):
            return False
    elif host_pat != "*" and host != host_pat:
        return False

    path = parts.path or "/"
    if parts.query:
        path = f"{path}?{parts.query}"
    return _glob("/" + path_pat).match(path) is not None


# ---------------------------------------------------------------------------
# Bus
# ---------------------------------------------------------------------------


Handler = Callable[..., Any]


@dataclass(eq=False)
class Subscription:
    kind: Signal
    handler: Handler
    pattern: Optional[str] = None

    def accepts(self, args: tuple) -> bool:
        if self.pattern is None or self.kind not in _URL_ARG:
            return True
        return match_url(self.pattern, args[_URL_ARG[self.kind]])


class SignalBus:
    def __init__(self) -> None:
        self._subscriptions: Dict[Signal, List[Subscription]] = {kind: [] for kind in Signal}

    def subscribe(
        self, kind: Signal, handler: Handler, pattern: Optional[str] = None
    ) -> Callable[[], None]:
        """Register ``handler`` for ``kind`` and return a function that removes it."""

        if pattern is not None:
            match_url(pattern, "http://validate.invalid/")
        subscription = Subscription(kind=Signal(kind), handler=handler, pattern=pattern)
        self._subscriptions[subscription.kind].append(subscription)

        def unsubscribe() -> None:
            if subscription in self._subscriptions[subscription.kind]:
                self._subscriptions[subscription.kind].remove(subscription)

        return unsubscribe

    def subscribers(self, kind: Signal) -> int:
        return len(self._subscriptions[Signal(kind)])

    async def emit(self, kind: Signal, *args: Any) -> List[Any]:
        """Deliver a signal and return the results of the handlers that ran."""

        results = []
        for subscription in list(self._subscriptions[Signal(kind)]):
            if not subscription.accepts(args):
                continue
            try:
                result = subscription.handler(*args)
                if inspect.isawaitable(result):
                    result = await result
            except Exception:
                logger.exception(f"Handler for {Signal(kind).value} signal failed")
                continue
            results.append(result)
        return results
