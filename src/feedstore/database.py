"""SQLite-backed durable item store."""

import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime

from feedstore.models import Item, utcnow
from feedstore.ordering import DEFAULT_ORDERING, sort_items
from feedstore.store import InvalidStateError, NotFoundError, PersistenceError, Store

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS items (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    feed_url TEXT NOT NULL,
    guid TEXT NOT NULL DEFAULT '',
    author TEXT NOT NULL DEFAULT '',
    title TEXT NOT NULL DEFAULT '',
    link TEXT NOT NULL DEFAULT '',
    content TEXT NOT NULL DEFAULT '',
    favourite INTEGER NOT NULL DEFAULT 0,
    read_at TEXT,
    published_at TEXT,
    updated_at TEXT,
    created_at TEXT NOT NULL
);

CREATE UNIQUE INDEX IF NOT EXISTS idx_items_feed_guid
    ON items(feed_url, guid) WHERE guid != '';
CREATE INDEX IF NOT EXISTS idx_items_feed_url ON items(feed_url);
CREATE INDEX IF NOT EXISTS idx_items_published_at ON items(published_at);
CREATE INDEX IF NOT EXISTS idx_items_read_at ON items(read_at);
"""


class SQLiteStore(Store):
    """Durable store persisted to a single SQLite file.

    The connection runs in autocommit mode and transactions are issued
    explicitly: one per mutating call, or one spanning a whole batch.
    A dict from (feed_url, guid) to row id is kept alongside the table
    so upserts never have to query for the dedup key.
    """

    def __init__(self, db_path: str):
        self.db_path = db_path
        self._conn: sqlite3.Connection | None = None
        self._guid_index: dict[tuple[str, str], int] = {}
        self._batch_open = False
        self._batch_aborted = False
        self._batch_writes = 0

    def connect(self) -> None:
        """Open the database, apply the schema and load the dedup index."""
        try:
            conn = sqlite3.connect(
                self.db_path, isolation_level=None, check_same_thread=False
            )
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA journal_mode=WAL")
            conn.executescript(SCHEMA_SQL)
        except sqlite3.Error as e:
            raise PersistenceError(f"Could not open database {self.db_path}: {e}") from e
        self._conn = conn
        self._load_index()
        logger.info("Opened item store %s (%d indexed items)", self.db_path, len(self._guid_index))

    def close(self) -> None:
        """Close the connection. An unfinished batch is discarded."""
        if self._conn is None:
            return
        if self._batch_open:
            logger.warning(
                "Closing %s with an open batch; %d writes discarded",
                self.db_path,
                self._batch_writes,
            )
            self._end_batch_state()
        self._conn.close()
        self._conn = None
        self._guid_index.clear()

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise InvalidStateError("Database not connected. Call connect() first.")
        return self._conn

    # --- Batches ---

    @property
    def in_batch(self) -> bool:
        return self._batch_open

    def begin_batch(self) -> None:
        if self._batch_open:
            raise InvalidStateError("Batch already in progress")
        with _translate_errors():
            self.conn.execute("BEGIN IMMEDIATE")
        self._batch_open = True
        self._batch_aborted = False
        self._batch_writes = 0

    def end_batch(self) -> None:
        if not self._batch_open:
            raise InvalidStateError("No batch in progress")
        writes = self._batch_writes
        aborted = self._batch_aborted
        self._end_batch_state()
        if aborted:
            raise PersistenceError("Batch was rolled back by a storage error; nothing committed")
        self._commit()
        logger.info("Committed batch of %d writes to %s", writes, self.db_path)

    def rollback_batch(self) -> None:
        if not self._batch_open:
            raise InvalidStateError("No batch in progress")
        aborted = self._batch_aborted
        self._end_batch_state()
        if not aborted:
            self._rollback()
        logger.info("Rolled back batch on %s", self.db_path)

    # --- Writes ---

    def upsert_item(self, item: Item) -> None:
        key = item.dedup_key
        with self._write():
            existing_id = self._guid_index.get(key) if key else None
            if existing_id is not None:
                self.conn.execute(
                    """UPDATE items SET title = ?, author = ?, content = ?, link = ?,
                       published_at = ?, updated_at = ? WHERE id = ?""",
                    (
                        item.title,
                        item.author,
                        item.content,
                        item.link,
                        _dt_to_str(item.published_at),
                        _dt_to_str(item.updated_at),
                        existing_id,
                    ),
                )
                row = self.conn.execute(
                    "SELECT created_at FROM items WHERE id = ?", (existing_id,)
                ).fetchone()
                item.id = existing_id
                item.created_at = _str_to_dt(row["created_at"])
                logger.debug("Updated item %d (%s)", existing_id, item.guid)
                return

            created_at = utcnow()
            cursor = self.conn.execute(
                """INSERT INTO items (feed_url, guid, author, title, link, content,
                   favourite, read_at, published_at, updated_at, created_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    item.feed_url,
                    item.guid,
                    item.author,
                    item.title,
                    item.link,
                    item.content,
                    int(item.favourite),
                    _dt_to_str(item.read_at),
                    _dt_to_str(item.published_at),
                    _dt_to_str(item.updated_at),
                    _dt_to_str(created_at),
                ),
            )
            item.id = cursor.lastrowid
            item.created_at = created_at
            if key:
                self._guid_index[key] = item.id
            logger.debug("Inserted item %d (%s)", item.id, item.guid or "no guid")

    def toggle_read(self, item_id: int) -> None:
        with self._write():
            row = self._fetch_row(item_id)
            read_at = None if row["read_at"] else _dt_to_str(utcnow())
            self.conn.execute(
                "UPDATE items SET read_at = ? WHERE id = ?", (read_at, item_id)
            )

    def mark_read(self, item_id: int) -> None:
        with self._write():
            self._fetch_row(item_id)
            self.conn.execute(
                "UPDATE items SET read_at = ? WHERE id = ? AND read_at IS NULL",
                (_dt_to_str(utcnow()), item_id),
            )

    def mark_unread(self, item_id: int) -> None:
        with self._write():
            self._fetch_row(item_id)
            self.conn.execute(
                "UPDATE items SET read_at = NULL WHERE id = ?", (item_id,)
            )

    def mark_all_read(self) -> None:
        with self._write():
            cursor = self.conn.execute(
                "UPDATE items SET read_at = ? WHERE read_at IS NULL",
                (_dt_to_str(utcnow()),),
            )
        logger.info("Marked %d items read", cursor.rowcount)

    def toggle_favourite(self, item_id: int) -> None:
        with self._write():
            self._fetch_row(item_id)
            self.conn.execute(
                "UPDATE items SET favourite = 1 - favourite WHERE id = ?", (item_id,)
            )

    def delete_by_feed_url(self, feed_url: str, include_favourites: bool) -> None:
        where = "feed_url = ?"
        if not include_favourites:
            where += " AND favourite = 0"

        with self._write():
            rows = self.conn.execute(
                f"SELECT id, guid FROM items WHERE {where}", (feed_url,)
            ).fetchall()
            self.conn.execute(f"DELETE FROM items WHERE {where}", (feed_url,))
            for row in rows:
                if row["guid"]:
                    self._guid_index.pop((feed_url, row["guid"]), None)

        logger.info("Deleted %d items from feed %s", len(rows), feed_url)

    # --- Reads ---

    def get_all_items(self, ordering: str = DEFAULT_ORDERING) -> list[Item]:
        with _translate_errors():
            rows = self.conn.execute("SELECT * FROM items").fetchall()
        return sort_items((_row_to_item(r) for r in rows), ordering)

    def get_item_by_id(self, item_id: int) -> Item:
        with _translate_errors():
            return _row_to_item(self._fetch_row(item_id))

    def get_all_feed_urls(self) -> list[str]:
        with _translate_errors():
            rows = self.conn.execute(
                "SELECT feed_url FROM items GROUP BY feed_url ORDER BY MIN(id)"
            ).fetchall()
        return [r["feed_url"] for r in rows]

    def count_unread(self) -> int:
        with _translate_errors():
            row = self.conn.execute(
                "SELECT COUNT(*) as cnt FROM items WHERE read_at IS NULL"
            ).fetchone()
        return row["cnt"] if row else 0

    # --- Internals ---

    def _fetch_row(self, item_id: int) -> sqlite3.Row:
        row = self.conn.execute(
            "SELECT * FROM items WHERE id = ?", (item_id,)
        ).fetchone()
        if row is None:
            raise NotFoundError(item_id)
        return row

    def _load_index(self) -> None:
        with _translate_errors():
            rows = self.conn.execute(
                "SELECT id, feed_url, guid FROM items WHERE guid != ''"
            ).fetchall()
        self._guid_index = {(r["feed_url"], r["guid"]): r["id"] for r in rows}

    @contextmanager
    def _write(self) -> Iterator[None]:
        """Scope one mutating call.

        Inside a batch the statements join the open transaction; otherwise
        they get their own, committed on success and rolled back on error.
        If SQLite drops the batch transaction after an error, the batch is
        marked aborted and refuses further writes until rolled back, so
        nothing can be autocommitted outside it.
        """
        if self._batch_open:
            if self._batch_aborted:
                raise InvalidStateError(
                    "Batch was aborted by a storage error; call rollback_batch()"
                )
            try:
                yield
            except sqlite3.Error as e:
                if not self.conn.in_transaction:
                    # SQLite rolled the whole transaction back (FULL, IOERR, BUSY)
                    self._batch_aborted = True
                    self._load_index()
                    logger.error("Batch on %s aborted: %s", self.db_path, e)
                raise PersistenceError(str(e)) from e
            self._batch_writes += 1
            return

        with _translate_errors():
            self.conn.execute("BEGIN IMMEDIATE")
        try:
            yield
        except sqlite3.Error as e:
            self._rollback()
            raise PersistenceError(str(e)) from e
        except BaseException:
            # Index is only touched after a statement succeeds
            self._rollback(reload_index=False)
            raise
        self._commit()

    def _commit(self) -> None:
        try:
            self.conn.execute("COMMIT")
        except sqlite3.Error as e:
            self._rollback()
            raise PersistenceError(f"Commit failed: {e}") from e

    def _rollback(self, reload_index: bool = True) -> None:
        try:
            if self.conn.in_transaction:
                self.conn.execute("ROLLBACK")
        except sqlite3.Error as e:
            logger.error("Rollback failed on %s: %s", self.db_path, e)
        # Index may hold keys written by the discarded transaction
        if reload_index:
            self._load_index()

    def _end_batch_state(self) -> None:
        self._batch_open = False
        self._batch_aborted = False
        self._batch_writes = 0


@contextmanager
def _translate_errors() -> Iterator[None]:
    """Re-raise sqlite3 errors as PersistenceError."""
    try:
        yield
    except sqlite3.Error as e:
        raise PersistenceError(str(e)) from e


# --- Helper functions ---


def _dt_to_str(dt: datetime | None) -> str | None:
    """Convert datetime to ISO string for storage."""
    return dt.isoformat() if dt else None


def _str_to_dt(s: str | None) -> datetime | None:
    """Convert stored ISO string back to datetime."""
    if not s:
        return None
    return datetime.fromisoformat(s)


def _row_to_item(row: sqlite3.Row) -> Item:
    """Convert a database row to an Item dataclass."""
    return Item(
        id=row["id"],
        feed_url=row["feed_url"],
        guid=row["guid"],
        author=row["author"],
        title=row["title"],
        link=row["link"],
        content=row["content"],
        favourite=bool(row["favourite"]),
        read_at=_str_to_dt(row["read_at"]),
        published_at=_str_to_dt(row["published_at"]),
        updated_at=_str_to_dt(row["updated_at"]),
        created_at=_str_to_dt(row["created_at"]),
    )
