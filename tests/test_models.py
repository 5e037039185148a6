"""Tests for the Item model."""

from feedstore.models import Item, utcnow


def test_read_derived_from_read_at():
    item = Item()
    assert item.read is False

    item.read_at = utcnow()
    assert item.read is True


def test_dedup_key():
    assert Item(feed_url="http://a", guid="g").dedup_key == ("http://a", "g")
    assert Item(feed_url="http://a", guid="").dedup_key is None


def test_utcnow_is_aware():
    assert utcnow().tzinfo is not None
