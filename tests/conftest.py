"""Shared test fixtures for news feed synchronizer tests."""

import pytest

from newsfeed_sync.config import Config
from newsfeed_sync.feed_parser import ParsedFeed
from newsfeed_sync.models import Headline, Publisher
from newsfeed_sync.storage import FeedStorage


SAMPLE_RSS_XML = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0"
     xmlns:dc="http://purl.org/dc/elements/1.1/"
     xmlns:media="http://search.yahoo.com/mrss/">
  <channel>
    <title>Test Feed</title>
    <link>https://example.com</link>
    <description>A test RSS feed</description>
    <image>
      <url>https://example.com/logo.png</url>
      <title>Test Feed</title>
      <link>https://example.com</link>
    </image>
    <item>
      <title>Second Article</title>
      <link>https://example.com/article-2</link>
      <guid>article-2</guid>
      <dc:creator>Jane Doe</dc:creator>
      <category>World</category>
      <media:thumbnail url="https://example.com/thumb-2.jpg" width="240" height="135"/>
      <pubDate>Fri, 13 Feb 2026 09:00:00 GMT</pubDate>
    </item>
    <item>
      <title>First Article</title>
      <link>https://example.com/article-1</link>
      <guid>article-1</guid>
      <pubDate>Fri, 13 Feb 2026 10:00:00 GMT</pubDate>
    </item>
    <item>
      <title>Undated Article</title>
      <link>https://example.com/article-3</link>
      <guid>article-3</guid>
    </item>
  </channel>
</rss>"""

SAMPLE_NOT_A_FEED_XML = """<?xml version="1.0" encoding="UTF-8"?>
<html>
  <body>This is not a feed</body>
</html>"""

TEST_SCHEMA = {"name": "Test Headlines", "description": "Headlines for tests"}


@pytest.fixture
def sample_rss_xml():
    """Sample valid RSS 2.0 XML."""
    return SAMPLE_RSS_XML


@pytest.fixture
def sample_not_a_feed_xml():
    """Sample XML that is not a feed."""
    return SAMPLE_NOT_A_FEED_XML


@pytest.fixture
def schema():
    return dict(TEST_SCHEMA)


@pytest.fixture
def storage(tmp_path, schema):
    """A connected storage with the 'news' drive opened."""
    store = FeedStorage(str(tmp_path / "drives"), schema)
    store.connect()
    store.feed("news")
    yield store
    store.close()


@pytest.fixture
def make_config(tmp_path):
    """Build a Config pointing at a temporary storage directory."""

    def _make(feeds, refresh_interval=60_000):
        return Config(
            drive_id="news",
            feeds=list(feeds),
            storage_path=str(tmp_path / "engine-data"),
            refresh_interval=refresh_interval,
        )

    return _make


def make_parsed(*headlines, title="Example News"):
    """Build a ParsedFeed from (published, title) pairs."""
    return ParsedFeed(
        publisher=Publisher(title=title, link="https://example.com"),
        headlines=[
            Headline(title=t, published=p, link=f"https://example.com/articles/{p}")
            for p, t in headlines
        ],
        warnings=[],
    )
