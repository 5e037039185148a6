"""Turn parsed feed documents into item candidates and store them."""

import logging
from contextlib import nullcontext
from datetime import datetime, timezone
from time import struct_time
from typing import Any

import feedparser

from feedstore.models import Item
from feedstore.store import Store

logger = logging.getLogger(__name__)


class FeedParseError(Exception):
    """Raised when a document is not a usable RSS or Atom feed."""


def parse_feed(data: Any) -> feedparser.FeedParserDict:
    """Parse an RSS or Atom document already in hand.

    Args:
        data: Document text, bytes or a file-like object.

    Raises:
        FeedParseError: If the document has no feed structure at all.
    """
    parsed = feedparser.parse(data)

    if not parsed.get("version") and not parsed.entries:
        raise FeedParseError("Document is not a valid RSS or Atom feed")

    if parsed.bozo:
        logger.warning("Feed has formatting issues: %s", parsed.get("bozo_exception"))

    return parsed


def item_from_entry(feed_url: str, entry: Any) -> Item:
    """Build an Item candidate from one feedparser entry.

    Entries without an id keep an empty GUID and are stored as new
    items every time they are ingested.
    """
    return Item(
        feed_url=feed_url,
        guid=entry.get("id") or entry.get("guid") or "",
        title=entry.get("title", ""),
        author=entry.get("author", ""),
        link=entry.get("link", ""),
        content=_entry_content(entry),
        published_at=_parse_date(entry, "published_parsed"),
        updated_at=_parse_date(entry, "updated_parsed"),
    )


def ingest(store: Store, feed_url: str, parsed: Any) -> int:
    """Upsert every entry of a parsed feed in one batch.

    If the caller already has a batch open (one per ingestion run across
    several feeds), the entries join it instead.

    Returns:
        Number of entries written.
    """
    with nullcontext() if store.in_batch else store.batch():
        for entry in parsed.entries:
            store.upsert_item(item_from_entry(feed_url, entry))

    count = len(parsed.entries)
    logger.info("Feed '%s': %d entries ingested", feed_url, count)
    return count


def _entry_content(entry: Any) -> str:
    content = entry.get("content")
    if content:
        return content[0].get("value", "")
    return entry.get("summary") or entry.get("description") or ""


def _parse_date(entry: Any, field: str) -> datetime | None:
    """feedparser normalises dates to UTC struct_time."""
    time_struct = entry.get(field)
    if isinstance(time_struct, struct_time):
        try:
            return datetime(*time_struct[:6], tzinfo=timezone.utc)
        except (ValueError, OverflowError):
            return None
    return None
