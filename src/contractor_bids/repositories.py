from __future__ import annotations

from typing import Any, Generic, Mapping, Sequence, Type, TypeVar

from pydantic import BaseModel
from pydantic_core import to_jsonable_python

from .entity_store import Entity, EntityStore, Filter, owned_by
from .models.bid import Bid
from .models.invoice import Invoice
from .models.profile import UserProfile
from .models.proposal import ProposalResponse
from .models.rate import RateEntry


ModelT = TypeVar("ModelT", bound=BaseModel)

# Managed by the store, never written by callers.
_STORE_FIELDS = {"id", "created_date", "updated_date"}


def to_document(model: BaseModel, *, exclude: set[str] | None = None) -> dict[str, Any]:
    return model.model_dump(mode="json", exclude=_STORE_FIELDS | (exclude or set()))


def to_fields(fields: Mapping[str, Any]) -> dict[str, Any]:
    return {key: to_jsonable_python(value) for key, value in fields.items() if key not in _STORE_FIELDS}


class Repository(Generic[ModelT]):
    collection: str
    model: Type[ModelT]
    document_exclude: set[str] = set()

    def __init__(self, store: EntityStore) -> None:
        self._store = store

    def _parse(self, document: Entity) -> ModelT:
        return self.model.model_validate(document)

    def get(self, entity_id: str) -> ModelT:
        return self._parse(self._store.get(self.collection, entity_id))

    def list(
        self,
        *,
        filters: Sequence[Filter] = (),
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[ModelT]:
        documents = self._store.list(
            self.collection, filters=filters, order_by=order_by, descending=descending, limit=limit
        )
        return [self._parse(doc) for doc in documents]

    def list_for_owner(self, owner: str, *, order_by: str = "updated_date") -> list[ModelT]:
        return self.list(filters=[owned_by(owner)], order_by=order_by, descending=True)

    def create(self, owner: str | None, entity: ModelT) -> ModelT:
        document = to_document(entity, exclude=self.document_exclude)
        if owner is not None:
            document["created_by"] = owner
        return self._parse(self._store.create(self.collection, document))

    def update(self, entity_id: str, fields: Mapping[str, Any] | ModelT) -> ModelT:
        if isinstance(fields, BaseModel):
            payload = to_document(fields, exclude=self.document_exclude | {"created_by"})
        else:
            payload = to_fields(fields)
        return self._parse(self._store.update(self.collection, entity_id, payload))

    def delete(self, entity_id: str) -> None:
        self._store.delete(self.collection, entity_id)


class BidRepository(Repository[Bid]):
    collection = "job_bids"
    model = Bid
    document_exclude = {"is_example"}


class RateRepository(Repository[RateEntry]):
    collection = "service_rates"
    model = RateEntry


class InvoiceRepository(Repository[Invoice]):
    collection = "invoices"
    model = Invoice


class ProposalResponseRepository(Repository[ProposalResponse]):
    collection = "proposal_responses"
    model = ProposalResponse

    def for_bids(self, bid_ids: Sequence[str]) -> list[ProposalResponse]:
        if not bid_ids:
            return []
        return self.list(filters=[Filter("bid_id", "in", list(bid_ids))], order_by="created_date")

    def for_bid(self, bid_id: str) -> list[ProposalResponse]:
        return self.list(filters=[Filter("bid_id", "==", bid_id)], order_by="created_date")


class ProfileRepository(Repository[UserProfile]):
    collection = "user_profiles"
    model = UserProfile

    def find(self, email: str) -> tuple[str, UserProfile] | None:
        documents = self._store.list(self.collection, filters=[Filter("email", "==", email)], limit=1)
        if not documents:
            return None
        return documents[0]["id"], self._parse(documents[0])


__all__ = [
    "Repository",
    "BidRepository",
    "RateRepository",
    "InvoiceRepository",
    "ProposalResponseRepository",
    "ProfileRepository",
    "to_document",
    "to_fields",
]
