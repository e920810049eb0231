from __future__ import annotations

from typing import Sequence


class ContractorBidsError(Exception):
    """Base class for errors raised by the bidding core."""


class EntityNotFoundError(ContractorBidsError):
    def __init__(self, collection: str, entity_id: str) -> None:
        super().__init__(f"{collection} entity not found: {entity_id}")
        self.collection = collection
        self.entity_id = entity_id


class UnknownFieldError(ContractorBidsError, ValueError):
    def __init__(self, kind: str, field: str) -> None:
        super().__init__(f"{kind} has no editable field {field!r}")
        self.kind = kind
        self.field = field


class BidValidationError(ContractorBidsError):
    def __init__(self, problems: Sequence[str]) -> None:
        super().__init__("; ".join(problems))
        self.problems = list(problems)


class BidSaveError(ContractorBidsError):
    """An explicit save failed; the editing session keeps its local state."""


class BidListLoadError(ContractorBidsError):
    """The bid list could not be loaded after all retries."""


class ProposalPersistError(ContractorBidsError):
    """Generated proposal content could not be stored on the bid."""


class ProposalLinkError(ContractorBidsError):
    """A public proposal link points at a missing bid or an ungenerated proposal."""


class ProposalAlreadyAnsweredError(ContractorBidsError):
    pass


class InvalidResponseError(ContractorBidsError, ValueError):
    pass


__all__ = [
    "ContractorBidsError",
    "EntityNotFoundError",
    "UnknownFieldError",
    "BidValidationError",
    "BidSaveError",
    "BidListLoadError",
    "ProposalPersistError",
    "ProposalLinkError",
    "ProposalAlreadyAnsweredError",
    "InvalidResponseError",
]
