"""Data models for the feed item store."""

from dataclasses import dataclass
from datetime import datetime, timezone


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


@dataclass
class Item:
    """Represents a single feed entry as tracked locally.

    A ``read_at`` of ``None`` means the item is unread. ``id`` and
    ``created_at`` are assigned by the store on first insert.
    """

    feed_url: str = ""
    guid: str = ""
    title: str = ""
    author: str = ""
    link: str = ""
    content: str = ""
    favourite: bool = False
    feed_name: str = ""  # set by the caller from configuration
    read_at: datetime | None = None
    published_at: datetime | None = None
    updated_at: datetime | None = None
    created_at: datetime | None = None
    id: int | None = None

    @property
    def read(self) -> bool:
        return self.read_at is not None

    @property
    def dedup_key(self) -> tuple[str, str] | None:
        """(feed_url, guid) for items with a GUID, else None."""
        if not self.guid:
            return None
        return (self.feed_url, self.guid)
