"""Ordering tokens and the sort policy applied to item listings."""

from collections.abc import Iterable
from datetime import datetime, timezone

from feedstore.models import Item

ASCENDING = "asc"
DESCENDING = "desc"
DEFAULT_ORDERING = ASCENDING


def _timestamp(dt: datetime | None) -> float:
    if dt is None:
        return float("-inf")
    # Naive values are taken as UTC so they compare with aware ones
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.timestamp()


def sort_key(item: Item) -> tuple[float, int]:
    return (_timestamp(item.published_at), item.id or 0)


def sort_items(items: Iterable[Item], ordering: str = DEFAULT_ORDERING) -> list[Item]:
    """Sort by published_at with id as tie-break.

    "desc" reverses both keys (newest first, higher id first on ties).
    Anything else is ascending on both.
    """
    return sorted(items, key=sort_key, reverse=ordering == DESCENDING)
