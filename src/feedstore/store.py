"""Backend-agnostic storage contract for feed items."""

from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import contextmanager

from feedstore.models import Item
from feedstore.ordering import DEFAULT_ORDERING


class StoreError(Exception):
    """Base class for errors raised by a store."""


class PersistenceError(StoreError):
    """Raised when the underlying storage medium cannot be read or written."""


class NotFoundError(StoreError, KeyError):
    """Raised when no item has the requested identifier."""

    def __init__(self, item_id: int):
        super().__init__(f"Item {item_id} not found")
        self.item_id = item_id

    def __str__(self) -> str:
        return self.args[0]


class InvalidStateError(StoreError, RuntimeError):
    """Raised on illegal operation sequencing, e.g. nested batches."""


class Store(ABC):
    """Operations every item store backend implements.

    Items are deduplicated on (feed_url, guid). Outside a batch each
    mutation is committed immediately; inside one, nothing is visible
    to a later session until end_batch().
    """

    @abstractmethod
    def upsert_item(self, item: Item) -> None:
        """Insert a new item or refresh the existing one with the same GUID.

        On update, id, created_at, favourite and read_at of the stored
        record are kept. The candidate receives the stored id and
        created_at.

        Raises:
            PersistenceError: If the item could not be written.
        """

    @abstractmethod
    def begin_batch(self) -> None:
        """Start buffering writes until end_batch().

        Raises:
            InvalidStateError: If a batch is already open.
        """

    @abstractmethod
    def end_batch(self) -> None:
        """Commit all writes made since begin_batch().

        Raises:
            InvalidStateError: If no batch is open.
            PersistenceError: If the batch could not be committed, or was
                already lost to a storage error. Nothing is committed.
        """

    @abstractmethod
    def rollback_batch(self) -> None:
        """Discard all writes made since begin_batch().

        Raises:
            InvalidStateError: If no batch is open.
        """

    @property
    @abstractmethod
    def in_batch(self) -> bool:
        """Whether a batch is currently open."""

    @abstractmethod
    def get_all_items(self, ordering: str = DEFAULT_ORDERING) -> list[Item]:
        """Return every item sorted by published_at ("asc" or "desc")."""

    @abstractmethod
    def get_item_by_id(self, item_id: int) -> Item:
        """Return one item. Raises NotFoundError if absent."""

    @abstractmethod
    def get_all_feed_urls(self) -> list[str]:
        """Return the distinct feed URLs present, in first-seen order."""

    @abstractmethod
    def toggle_read(self, item_id: int) -> None:
        """Flip read state. Raises NotFoundError if absent."""

    @abstractmethod
    def mark_read(self, item_id: int) -> None:
        """Mark an item read, keeping read_at if it is already set."""

    @abstractmethod
    def mark_unread(self, item_id: int) -> None:
        """Mark an item unread."""

    @abstractmethod
    def mark_all_read(self) -> None:
        """Stamp read_at on every unread item. Read items are untouched."""

    @abstractmethod
    def toggle_favourite(self, item_id: int) -> None:
        """Flip the favourite flag. Raises NotFoundError if absent."""

    @abstractmethod
    def delete_by_feed_url(self, feed_url: str, include_favourites: bool) -> None:
        """Delete every item of a feed.

        Favourites are kept unless include_favourites is True. Deleting
        a feed with no items is not an error.
        """

    @abstractmethod
    def count_unread(self) -> int:
        """Count unread items across all feeds."""

    def close(self) -> None:
        """Release any resources held by the store."""

    @contextmanager
    def batch(self) -> Iterator["Store"]:
        """Run a block of writes as one batch, rolling back on error."""
        self.begin_batch()
        try:
            yield self
        except BaseException:
            self.rollback_batch()
            raise
        self.end_batch()

    def __enter__(self) -> "Store":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
