"""Shared test fixtures for feedstore tests."""

import os
import tempfile
from datetime import datetime, timedelta, timezone

import pytest

from feedstore.database import SQLiteStore
from feedstore.memory import MemoryStore
from feedstore.models import Item


SAMPLE_RSS_XML = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>Test Feed</title>
    <link>https://example.com</link>
    <description>A test RSS feed</description>
    <item>
      <title>First Article</title>
      <link>https://example.com/article-1</link>
      <guid>article-1</guid>
      <author>alice@example.com (Alice)</author>
      <description>Description of the first article</description>
      <pubDate>Fri, 13 Feb 2026 10:00:00 GMT</pubDate>
    </item>
    <item>
      <title>Second Article</title>
      <link>https://example.com/article-2</link>
      <guid>article-2</guid>
      <description>Description of the second article</description>
      <pubDate>Fri, 13 Feb 2026 09:00:00 GMT</pubDate>
    </item>
  </channel>
</rss>"""

SAMPLE_ATOM_XML = """<?xml version="1.0" encoding="UTF-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
  <title>Test Atom Feed</title>
  <link href="https://example.com"/>
  <subtitle>A test Atom feed</subtitle>
  <entry>
    <title>Atom Entry 1</title>
    <link href="https://example.com/entry-1"/>
    <id>urn:uuid:entry-1</id>
    <summary>Summary of entry 1</summary>
    <content type="text">Full content of entry 1</content>
    <updated>2026-02-13T10:00:00Z</updated>
  </entry>
</feed>"""

SAMPLE_NO_GUID_RSS_XML = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>Sloppy Feed</title>
    <link>https://sloppy.example.com</link>
    <item>
      <title>Untracked</title>
      <description>No guid or link here</description>
    </item>
  </channel>
</rss>"""

SAMPLE_NOT_A_FEED_XML = """<?xml version="1.0" encoding="UTF-8"?>
<html>
  <body>This is not a feed</body>
</html>"""


@pytest.fixture
def tmp_db_path():
    """Provide a temporary SQLite database path."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        path = f.name
    yield path
    for suffix in ("", "-wal", "-shm"):
        try:
            os.unlink(path + suffix)
        except OSError:
            pass


@pytest.fixture
def sqlite_store(tmp_db_path):
    """A connected SQLiteStore on a temporary file."""
    store = SQLiteStore(tmp_db_path)
    store.connect()
    yield store
    store.close()


@pytest.fixture(params=["memory", "sqlite"])
def store(request):
    """Each backend in turn, so contract tests run against both."""
    if request.param == "memory":
        yield MemoryStore()
    else:
        yield request.getfixturevalue("sqlite_store")


@pytest.fixture
def now():
    return datetime(2026, 2, 13, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def make_item():
    """Factory for candidate items with sensible defaults."""

    def _make(guid="guid-1", feed_url="http://example.com/feed1", title=None, **kwargs):
        return Item(
            guid=guid,
            feed_url=feed_url,
            title=title if title is not None else f"Item {guid}",
            **kwargs,
        )

    return _make


@pytest.fixture
def publish_times(now):
    """T-2h, T-1h and T."""
    return [now - timedelta(hours=2), now - timedelta(hours=1), now]


@pytest.fixture
def sample_rss_xml():
    """Sample valid RSS 2.0 XML."""
    return SAMPLE_RSS_XML


@pytest.fixture
def sample_atom_xml():
    """Sample valid Atom XML."""
    return SAMPLE_ATOM_XML


@pytest.fixture
def sample_no_guid_rss_xml():
    """RSS item with neither guid nor link."""
    return SAMPLE_NO_GUID_RSS_XML


@pytest.fixture
def sample_not_a_feed_xml():
    """Sample XML that is not a feed."""
    return SAMPLE_NOT_A_FEED_XML
