"""Tests for settings and store selection."""

import os

import pytest

from feedstore.config import Settings, default_db_path, open_store
from feedstore.database import SQLiteStore
from feedstore.memory import MemoryStore
from feedstore.store import PersistenceError


def test_default_db_path_uses_xdg_config_home(tmp_path):
    path = default_db_path({"XDG_CONFIG_HOME": str(tmp_path)})
    assert path == os.path.join(str(tmp_path), "nom", "nom.db")


def test_settings_from_env():
    settings = Settings.from_env(
        {
            "FEEDSTORE_DB_PATH": "/data/items.db",
            "FEEDSTORE_PREVIEW": "yes",
        }
    )

    assert settings.db_path == "/data/items.db"
    assert settings.preview is True


def test_settings_defaults(tmp_path):
    settings = Settings.from_env({"XDG_CONFIG_HOME": str(tmp_path)})

    assert settings.db_path.endswith(os.path.join("nom", "nom.db"))
    assert settings.preview is False


def test_open_store_preview_returns_memory_store(tmp_path):
    settings = Settings(db_path=str(tmp_path / "never.db"), preview=True)

    store = open_store(settings)

    assert isinstance(store, MemoryStore)
    assert not (tmp_path / "never.db").exists()


def test_open_store_preview_override(tmp_path):
    settings = Settings(db_path=str(tmp_path / "never.db"))

    assert isinstance(open_store(settings, preview=True), MemoryStore)


def test_open_store_creates_directory(tmp_path):
    db_path = tmp_path / "nested" / "dir" / "nom.db"

    with open_store(Settings(db_path=str(db_path))) as store:
        assert isinstance(store, SQLiteStore)
        assert store.count_unread() == 0

    assert db_path.exists()


def test_open_store_unwritable_directory(tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("not a directory")

    with pytest.raises(PersistenceError):
        open_store(Settings(db_path=str(blocker / "nom.db")))
