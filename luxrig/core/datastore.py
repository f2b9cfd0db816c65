"""In-memory data API backing /api/data/{type} — frontend sync scratch space.

Nothing here survives a restart.
"""
from typing import Any
from uuid import uuid4

import structlog

from luxrig.core.errors import ItemNotFound, UnknownCollection

log = structlog.get_logger()

COLLECTIONS = ("projects", "providers", "models", "conversations")


class DataStore:
    def __init__(self, collections=COLLECTIONS):
        self._data: dict[str, list[dict[str, Any]]] = {name: [] for name in collections}

    def _collection(self, kind: str) -> list[dict[str, Any]]:
        try:
            return self._data[kind]
        except KeyError:
            raise UnknownCollection(kind) from None

    def _index(self, kind: str, item_id: str) -> int:
        items = self._collection(kind)
        for i, item in enumerate(items):
            if str(item.get("id")) == item_id:
                return i
        raise ItemNotFound(f"{kind}/{item_id}")

    def list(self, kind: str) -> list[dict[str, Any]]:
        return list(self._collection(kind))

    def create(self, kind: str, item: dict[str, Any]) -> dict[str, Any]:
        items = self._collection(kind)
        record = {**item, "id": item.get("id") or f"id_{uuid4().hex}"}
        items.append(record)
        log.debug("datastore.created", kind=kind, id=record["id"])
        return record

    def update(self, kind: str, item_id: str, patch: dict[str, Any]) -> dict[str, Any]:
        items = self._collection(kind)
        idx = self._index(kind, item_id)
        items[idx] = {**items[idx], **patch}
        return items[idx]

    def delete(self, kind: str, item_id: str) -> None:
        items = self._collection(kind)
        del items[self._index(kind, item_id)]
        log.debug("datastore.deleted", kind=kind, id=item_id)
