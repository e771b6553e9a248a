"""Cookie lookup used to complete captured requests."""

from __future__ import annotations

from http.cookiejar import CookieJar
from typing import Iterable, Protocol, Tuple, Union
from urllib.request import Request

import httpx


class CookieSource(Protocol):
    async def cookie_header(self, url: str) -> str:  # pragma: no cover - interface
        ...


def format_cookie_pairs(pairs: Iterable[Tuple[str, str]]) -> str:
    return "; ".join(f"{name}={value}" for name, value in pairs)


class StaticCookieSource:
    """Returns the same cookie string for every URL."""

    def __init__(self, header: str = "") -> None:
        self.header = header

    async def cookie_header(self, url: str) -> str:
        return self.header


class JarCookieSource:
    """Selects the cookies of a jar that a browser would send to ``url``."""

    def __init__(self, jar: Union[CookieJar, httpx.Cookies]) -> None:
        self._jar = jar.jar if isinstance(jar, httpx.Cookies) else jar

    async def cookie_header(self, url: str) -> str:
        request = Request(url)
        self._jar.add_cookie_header(request)
        return request.get_header("Cookie", "")
