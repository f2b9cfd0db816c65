"""Unit tests for the in-memory data store."""
import pytest

from luxrig.core.datastore import DataStore
from luxrig.core.errors import ItemNotFound, UnknownCollection


@pytest.fixture
def store():
    return DataStore()


def test_create_assigns_id(store):
    item = store.create("projects", {"name": "bridge"})
    assert item["id"].startswith("id_")
    assert store.list("projects") == [item]


def test_create_keeps_given_id(store):
    item = store.create("models", {"id": "qwen", "size": "4b"})
    assert item["id"] == "qwen"


def test_update_merges(store):
    store.create("models", {"id": "qwen", "size": "4b"})
    updated = store.update("models", "qwen", {"size": "8b", "local": True})
    assert updated == {"id": "qwen", "size": "8b", "local": True}


def test_delete(store):
    store.create("conversations", {"id": "c1"})
    store.delete("conversations", "c1")
    assert store.list("conversations") == []


def test_unknown_collection(store):
    with pytest.raises(UnknownCollection):
        store.list("portfolios")


def test_missing_item(store):
    with pytest.raises(ItemNotFound):
        store.update("projects", "nope", {})
    with pytest.raises(ItemNotFound):
        store.delete("projects", "nope")
