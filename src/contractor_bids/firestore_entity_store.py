from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Mapping, Sequence

from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter

from .entity_store import Entity, Filter
from .errors import EntityNotFoundError

logger = logging.getLogger(__name__)

# Firestore caps the number of values in a single "in" clause.
IN_QUERY_LIMIT = 30


class FirestoreEntityStore:
    """Firestore-backed entity store for production use."""

    def __init__(self, project_id: str | None = None) -> None:
        self._db = firestore.Client(project=project_id)

    def list(
        self,
        collection: str,
        *,
        filters: Sequence[Filter] = (),
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[Entity]:
        """List documents, splitting oversized ``in`` filters into several queries."""
        in_filters = [f for f in filters if f.op == "in"]
        if len(in_filters) > 1:
            raise ValueError("Only one 'in' filter is supported per query")
        equality = [f for f in filters if f.op == "=="]

        if not in_filters:
            return self._run_query(collection, equality, order_by, descending, limit)

        values = list(in_filters[0].value)
        if not values:
            return []
        documents: list[Entity] = []
        for start in range(0, len(values), IN_QUERY_LIMIT):
            chunk = Filter(in_filters[0].field, "in", values[start : start + IN_QUERY_LIMIT])
            documents.extend(self._run_query(collection, [*equality, chunk], order_by, descending, None))
        if order_by is not None:
            documents.sort(key=lambda doc: (doc.get(order_by) is not None, doc.get(order_by)), reverse=descending)
        return documents[:limit] if limit is not None else documents

    def get(self, collection: str, entity_id: str) -> Entity:
        doc = self._db.collection(collection).document(entity_id).get()
        if not doc.exists:
            raise EntityNotFoundError(collection, entity_id)
        return {**doc.to_dict(), "id": doc.id}

    def create(self, collection: str, fields: Mapping[str, Any]) -> Entity:
        now = datetime.now(timezone.utc)
        doc_ref = self._db.collection(collection).document()
        data = {**dict(fields), "created_date": now, "updated_date": now}
        data.pop("id", None)
        doc_ref.set(data)

        logger.info("Created entity", extra={"collection": collection, "entity_id": doc_ref.id})
        return {**data, "id": doc_ref.id}

    def update(self, collection: str, entity_id: str, fields: Mapping[str, Any]) -> Entity:
        doc_ref = self._db.collection(collection).document(entity_id)
        if not doc_ref.get().exists:
            raise EntityNotFoundError(collection, entity_id)

        data = {**dict(fields), "updated_date": datetime.now(timezone.utc)}
        data.pop("id", None)
        doc_ref.update(data)

        logger.info(
            "Updated entity",
            extra={"collection": collection, "entity_id": entity_id, "fields": sorted(data)},
        )

        updated = doc_ref.get()
        return {**updated.to_dict(), "id": updated.id}

    def delete(self, collection: str, entity_id: str) -> None:
        doc_ref = self._db.collection(collection).document(entity_id)
        if not doc_ref.get().exists:
            raise EntityNotFoundError(collection, entity_id)
        doc_ref.delete()
        logger.info("Deleted entity", extra={"collection": collection, "entity_id": entity_id})

    def _run_query(
        self,
        collection: str,
        filters: Sequence[Filter],
        order_by: str | None,
        descending: bool,
        limit: int | None,
    ) -> list[Entity]:
        query = self._db.collection(collection)
        for item in filters:
            query = query.where(filter=FieldFilter(item.field, item.op, item.value))
        if order_by is not None:
            direction = firestore.Query.DESCENDING if descending else firestore.Query.ASCENDING
            query = query.order_by(order_by, direction=direction)
        if limit is not None:
            query = query.limit(limit)
        return [{**doc.to_dict(), "id": doc.id} for doc in query.stream()]


__all__ = ["FirestoreEntityStore", "IN_QUERY_LIMIT"]
