"""Shared fixtures: per-test SQLite database, fake HTTP transport, RSS samples."""
from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Callable, Union

import httpx
import pytest

# Settings are read at import time; never touch a real database from tests
os.environ.setdefault("DB_PATH", str(Path(tempfile.gettempdir()) / "gator_tests_unused.db"))

from gator.core.db import init_db, make_engine, make_session_factory, sqlite_url  # noqa: E402
from gator.services.fetcher import Fetcher  # noqa: E402


def rss(*items: str, title: str = "Example Feed") -> str:
    return f"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0" xmlns:atom="http://www.w3.org/2005/Atom">
  <channel>
    <title>{title}</title>
    <link>https://example.com/</link>
    <atom:link href="https://example.com/feed.xml" rel="self" type="application/rss+xml"/>
    <description>Test feed</description>
    {"".join(items)}
  </channel>
</rss>
"""


def item(slug: str, pub_date: str = "Fri, 10 Jan 2026 12:00:00 GMT", description: str = "") -> str:
    desc = f"<description>{description}</description>" if description else ""
    return f"""
    <item>
      <title>Post {slug}</title>
      <link>https://example.com/posts/{slug}</link>
      <pubDate>{pub_date}</pubDate>
      {desc}
    </item>"""


Page = Union[str, int, Exception]


def fetcher_for(pages: dict[str, Page], seen: list | None = None) -> Fetcher:
    """Fetcher answering from ``pages``: a str is a 200 body, an int a bare status, an exception is raised."""

    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        page = pages.get(str(request.url), 404)
        if isinstance(page, Exception):
            raise page
        if isinstance(page, int):
            return httpx.Response(page, request=request)
        return httpx.Response(
            200,
            content=page.encode("utf-8"),
            headers={"Content-Type": "application/rss+xml; charset=utf-8"},
            request=request,
        )

    return Fetcher("gator", 5, transport=httpx.MockTransport(handler))


@pytest.fixture
async def engine(tmp_path):
    eng = make_engine(sqlite_url(str(tmp_path / "test.db")))
    await init_db(eng)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as s:
        yield s


@pytest.fixture
def make_fetcher() -> Callable[..., Fetcher]:
    return fetcher_for
