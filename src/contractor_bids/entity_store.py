from __future__ import annotations

import copy
import threading
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Literal, Mapping, Protocol, Sequence

from .errors import EntityNotFoundError

Entity = Dict[str, Any]


@dataclass(frozen=True)
class Filter:
    field: str
    op: Literal["==", "in"]
    value: Any

    def matches(self, entity: Mapping[str, Any]) -> bool:
        actual = entity.get(self.field)
        if self.op == "in":
            return actual in self.value
        return actual == self.value


def owned_by(owner: str) -> Filter:
    return Filter("created_by", "==", owner)


class EntityStore(Protocol):
    """Remote CRUD store; documents are plain dicts with an ``id`` key."""

    def list(
        self,
        collection: str,
        *,
        filters: Sequence[Filter] = (),
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[Entity]:
        ...

    def get(self, collection: str, entity_id: str) -> Entity:
        ...

    def create(self, collection: str, fields: Mapping[str, Any]) -> Entity:
        ...

    def update(self, collection: str, entity_id: str, fields: Mapping[str, Any]) -> Entity:
        ...

    def delete(self, collection: str, entity_id: str) -> None:
        ...


def _now() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryEntityStore:
    def __init__(self) -> None:
        self._collections: Dict[str, Dict[str, Entity]] = {}
        self._lock = threading.Lock()

    def list(
        self,
        collection: str,
        *,
        filters: Sequence[Filter] = (),
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[Entity]:
        with self._lock:
            documents = [
                copy.deepcopy(doc)
                for doc in self._collections.get(collection, {}).values()
                if all(f.matches(doc) for f in filters)
            ]
        if order_by is not None:
            documents.sort(key=lambda doc: (doc.get(order_by) is not None, doc.get(order_by)), reverse=descending)
        if limit is not None:
            documents = documents[:limit]
        return documents

    def get(self, collection: str, entity_id: str) -> Entity:
        with self._lock:
            doc = self._collections.get(collection, {}).get(entity_id)
            if doc is None:
                raise EntityNotFoundError(collection, entity_id)
            return copy.deepcopy(doc)

    def create(self, collection: str, fields: Mapping[str, Any]) -> Entity:
        with self._lock:
            entity_id = uuid.uuid4().hex
            now = _now()
            doc = {**copy.deepcopy(dict(fields)), "id": entity_id, "created_date": now, "updated_date": now}
            self._collections.setdefault(collection, {})[entity_id] = doc
            return copy.deepcopy(doc)

    def update(self, collection: str, entity_id: str, fields: Mapping[str, Any]) -> Entity:
        with self._lock:
            docs = self._collections.get(collection, {})
            if entity_id not in docs:
                raise EntityNotFoundError(collection, entity_id)
            doc = docs[entity_id]
            doc.update(copy.deepcopy(dict(fields)))
            doc["id"] = entity_id
            doc["updated_date"] = _now()
            return copy.deepcopy(doc)

    def delete(self, collection: str, entity_id: str) -> None:
        with self._lock:
            docs = self._collections.get(collection, {})
            if entity_id not in docs:
                raise EntityNotFoundError(collection, entity_id)
            del docs[entity_id]


__all__ = ["Entity", "EntityStore", "Filter", "InMemoryEntityStore", "owned_by"]
