"""
PyTest Configuration and Fixtures
=================================

Shared fixtures, sample feed documents and fake collaborators for FeedTape
tests. Fakes stand in for the network and the feed directory so pipeline
tests run fully in-process.
"""

import asyncio
import os
import sys
from pathlib import Path
from typing import Dict, List, Optional, Union

import pytest

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent.parent))

# Set test environment variables before any imports
os.environ["FEEDTAPE_DEBUG"] = "false"
os.environ.pop("FEEDTAPE_API__BASE_URL", None)

from feedtape.config.settings import FeedTapeSettings
from feedtape.models import Feed
from feedtape.utils.exceptions import FeedFetchError

LONG_PARAGRAPH = (
    "The city council approved the new transit plan on Tuesday evening after "
    "a long debate about funding and routes."
)


# ============================================================================
# Sample documents
# ============================================================================


def make_rss(name: str, count: int, body: str = LONG_PARAGRAPH) -> bytes:
    """RSS 2.0 document with ``count`` items linking to example.com/<name>/<n>."""
    items = "".join(
        f"""
        <item>
            <title>{name} story {n}</title>
            <link>https://example.com/{name}/{n}</link>
            <description><![CDATA[<p>{body} Story number {n}.</p>]]></description>
            <pubDate>Thu, 05 Sep 2024 12:00:00 GMT</pubDate>
            <author>desk@example.com</author>
        </item>"""
        for n in range(1, count + 1)
    )
    return f"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
    <channel>
        <title>{name}</title>
        <link>https://example.com/{name}</link>
        <description>Test feed {name}</description>{items}
    </channel>
</rss>""".encode("utf-8")


def make_atom(name: str, count: int, body: str = LONG_PARAGRAPH) -> bytes:
    """Atom 1.0 document with ``count`` entries."""
    entries = "".join(
        f"""
    <entry>
        <title>{name} entry {n}</title>
        <link href="https://example.com/{name}/atom/{n}"/>
        <id>urn:uuid:{name}-{n}</id>
        <updated>2024-09-05T12:00:00Z</updated>
        <author><name>Atom Author</name></author>
        <content type="html">&lt;p&gt;{body} Entry number {n}.&lt;/p&gt;</content>
    </entry>"""
        for n in range(1, count + 1)
    )
    return f"""<?xml version="1.0" encoding="UTF-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
    <title>{name}</title>
    <id>urn:uuid:{name}</id>
    <updated>2024-09-05T12:00:00Z</updated>{entries}
</feed>""".encode("utf-8")


# ============================================================================
# Fake collaborators
# ============================================================================


class FakeFetcher:
    """In-memory fetcher keyed by URL.

    Values are document bytes or an exception instance to raise. ``delays``
    adds an asyncio sleep before answering.
    """

    def __init__(
        self,
        documents: Dict[str, Union[bytes, Exception]],
        delays: Optional[Dict[str, float]] = None,
    ):
        self.documents = dict(documents)
        self.delays = delays or {}
        self.calls: List[str] = []
        self.closed = False

    async def fetch_bytes(self, url: str) -> bytes:
        self.calls.append(url)
        delay = self.delays.get(url)
        if delay:
            await asyncio.sleep(delay)
        document = self.documents.get(url)
        if document is None:
            raise FeedFetchError("HTTP 404: Not Found", feed_url=url)
        if isinstance(document, Exception):
            raise document
        return document

    async def aclose(self) -> None:
        self.closed = True


class FakeDirectory:
    """Feed directory over a fixed list that counts its calls."""

    def __init__(self, feeds: List[Feed]):
        self.feeds = list(feeds)
        self.calls = 0

    async def list_feeds(self) -> List[Feed]:
        self.calls += 1
        return list(self.feeds)


class ScriptedCleaner:
    """Synchronous cleaner with per-marker behaviour.

    Bodies containing ``REJECT`` yield None, bodies containing ``EXPLODE``
    raise, everything else is upper-cased.
    """

    def __init__(self):
        self.calls = 0

    def clean_content(self, raw_html: str) -> Optional[str]:
        self.calls += 1
        if "REJECT" in raw_html:
            return None
        if "EXPLODE" in raw_html:
            raise RuntimeError("cleaner exploded")
        return raw_html.upper()


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def test_settings():
    """Settings with the production defaults, independent of the environment."""
    return FeedTapeSettings(
        pipeline={"feed_workers": 5, "entry_workers": 5, "max_entries_per_feed": 15},
        limits={"fetch_timeout": 15.0, "max_content_length": 500_000, "min_content_length": 50},
    )


@pytest.fixture
def sample_feeds():
    """Two subscribed feeds."""
    return [
        Feed(id="feed-a", url="https://feeds.example.com/a.xml", title="Feed A"),
        Feed(id="feed-b", url="https://feeds.example.com/b.xml", title="Feed B"),
    ]


@pytest.fixture
def scripted_cleaner():
    return ScriptedCleaner()
