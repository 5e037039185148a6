"""In-memory item store used for preview sessions."""

import logging
from dataclasses import replace

from feedstore.models import Item, utcnow
from feedstore.ordering import DEFAULT_ORDERING, sort_items
from feedstore.store import InvalidStateError, NotFoundError, Store

logger = logging.getLogger(__name__)


class MemoryStore(Store):
    """Store that keeps everything in process memory.

    Items live in an id-ordered dict; a second dict maps (feed_url, guid)
    to the owning id for dedup. Nothing survives the process.
    """

    def __init__(self) -> None:
        self.items: dict[int, Item] = {}
        self.guid_index: dict[tuple[str, str], int] = {}
        self.next_id = 1
        self._snapshot: tuple[dict, dict, int] | None = None

    # --- Batches ---

    @property
    def in_batch(self) -> bool:
        return self._snapshot is not None

    def begin_batch(self) -> None:
        if self._snapshot is not None:
            raise InvalidStateError("Batch already in progress")
        self._snapshot = (
            {item_id: replace(item) for item_id, item in self.items.items()},
            dict(self.guid_index),
            self.next_id,
        )

    def end_batch(self) -> None:
        if self._snapshot is None:
            raise InvalidStateError("No batch in progress")
        self._snapshot = None

    def rollback_batch(self) -> None:
        if self._snapshot is None:
            raise InvalidStateError("No batch in progress")
        self.items, self.guid_index, self.next_id = self._snapshot
        self._snapshot = None
        logger.info("Discarded in-memory batch")

    # --- Writes ---

    def upsert_item(self, item: Item) -> None:
        key = item.dedup_key
        existing_id = self.guid_index.get(key) if key else None

        if existing_id is not None:
            stored = self.items[existing_id]
            stored.title = item.title
            stored.author = item.author
            stored.content = item.content
            stored.link = item.link
            stored.published_at = item.published_at
            stored.updated_at = item.updated_at
        else:
            stored = replace(item, id=self.next_id, created_at=utcnow(), feed_name="")
            self.next_id += 1
            self.items[stored.id] = stored
            if key:
                self.guid_index[key] = stored.id

        item.id = stored.id
        item.created_at = stored.created_at

    def toggle_read(self, item_id: int) -> None:
        item = self._get(item_id)
        item.read_at = None if item.read else utcnow()

    def mark_read(self, item_id: int) -> None:
        item = self._get(item_id)
        if not item.read:
            item.read_at = utcnow()

    def mark_unread(self, item_id: int) -> None:
        self._get(item_id).read_at = None

    def mark_all_read(self) -> None:
        now = utcnow()
        for item in self.items.values():
            if not item.read:
                item.read_at = now

    def toggle_favourite(self, item_id: int) -> None:
        item = self._get(item_id)
        item.favourite = not item.favourite

    def delete_by_feed_url(self, feed_url: str, include_favourites: bool) -> None:
        doomed = [
            item
            for item in self.items.values()
            if item.feed_url == feed_url and (include_favourites or not item.favourite)
        ]
        for item in doomed:
            del self.items[item.id]
            key = item.dedup_key
            if key:
                self.guid_index.pop(key, None)

    # --- Reads ---

    def get_all_items(self, ordering: str = DEFAULT_ORDERING) -> list[Item]:
        return sort_items((replace(item) for item in self.items.values()), ordering)

    def get_item_by_id(self, item_id: int) -> Item:
        return replace(self._get(item_id))

    def get_all_feed_urls(self) -> list[str]:
        return list(dict.fromkeys(item.feed_url for item in self.items.values()))

    def count_unread(self) -> int:
        return sum(1 for item in self.items.values() if not item.read)

    def _get(self, item_id: int) -> Item:
        try:
            return self.items[item_id]
        except KeyError:
            raise NotFoundError(item_id) from None
