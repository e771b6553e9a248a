from http.cookiejar import Cookie, CookieJar

import httpx
import pytest

from echo_relay.cookies import JarCookieSource, StaticCookieSource, format_cookie_pairs


def _cookie(name, value, domain, path="/", secure=False):
    return Cookie(
        version=0,
        name=name,
        value=value,
        port=None,
        port_specified=False,
        domain=domain,
        domain_specified=True,
        domain_initial_dot=domain.startswith("."),
        path=path,
        path_specified=True,
        secure=secure,
        expires=None,
        discard=True,
        comment=None,
        comment_url=None,
        rest={},
    )


def test_format_cookie_pairs():
    assert format_cookie_pairs([("a", "1"), ("b", "2")]) == "a=1; b=2"
    assert format_cookie_pairs([]) == ""


@pytest.mark.asyncio
class TestCookieSources:
    async def test_static_source(self):
        assert await StaticCookieSource("c=1").cookie_header("https://any.test/") == "c=1"

    async def test_jar_source_selects_matching_domain(self):
        jar = CookieJar()
        jar.set_cookie(_cookie("VISITOR", "v1", ".googlevideo.com"))
        jar.set_cookie(_cookie("OTHER", "x", ".example.com"))

        header = await JarCookieSource(jar).cookie_header("https://rr1.googlevideo.com/videoplayback")

        assert header == "VISITOR=v1"

    async def test_jar_source_skips_secure_cookies_on_http(self):
        jar = CookieJar()
        jar.set_cookie(_cookie("SID", "s", ".googlevideo.com", secure=True))

        source = JarCookieSource(jar)

        assert await source.cookie_header("http://rr1.googlevideo.com/") == ""
        assert await source.cookie_header("https://rr1.googlevideo.com/") == "SID=s"

    async def test_accepts_httpx_cookies(self):
        cookies = httpx.Cookies()
        cookies.set("c", "1", domain="music.youtube.com")

        header = await JarCookieSource(cookies).cookie_header("https://music.youtube.com/watch")

        assert header == "c=1"

    async def test_no_cookies_gives_empty_string(self):
        assert await JarCookieSource(CookieJar()).cookie_header("https://a.test/") == ""
