"""Environment-driven settings and backend selection."""

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from feedstore.database import SQLiteStore
from feedstore.memory import MemoryStore
from feedstore.store import PersistenceError, Store

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_DIR_NAME = "nom"
DEFAULT_DB_NAME = "nom.db"

_TRUTHY = {"1", "true", "yes", "on"}


def default_db_path(environ: Mapping[str, str] | None = None) -> str:
    """<config dir>/nom/nom.db, honouring XDG_CONFIG_HOME."""
    environ = os.environ if environ is None else environ
    base = environ.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    return str(Path(base) / DEFAULT_CONFIG_DIR_NAME / DEFAULT_DB_NAME)


@dataclass
class Settings:
    """Runtime settings for opening a store."""

    db_path: str
    preview: bool = False

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        environ = os.environ if environ is None else environ
        return cls(
            db_path=environ.get("FEEDSTORE_DB_PATH") or default_db_path(environ),
            preview=environ.get("FEEDSTORE_PREVIEW", "").strip().lower() in _TRUTHY,
        )


def open_store(settings: Settings | None = None, *, preview: bool | None = None) -> Store:
    """Build the store for a session.

    Preview sessions get a MemoryStore; otherwise a connected SQLiteStore
    at settings.db_path, creating its directory if needed. An explicit
    ``preview`` argument overrides the setting.
    """
    if settings is None:
        settings = Settings.from_env()
    if preview is None:
        preview = settings.preview

    if preview:
        logger.info("Preview mode: using in-memory store")
        return MemoryStore()

    if settings.db_path != ":memory:":
        try:
            Path(settings.db_path).parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise PersistenceError(f"Could not create directory for {settings.db_path}: {e}") from e
    store = SQLiteStore(settings.db_path)
    store.connect()
    return store
