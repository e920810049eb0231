from __future__ import annotations

import logging
from dataclasses import dataclass

from .errors import EntityNotFoundError, InvalidResponseError, ProposalAlreadyAnsweredError, ProposalLinkError
from .models.bid import Bid
from .models.proposal import ProposalResponse, ResponseType
from .notifications import ResponseNotifier
from .rendering import render
from .repositories import BidRepository, ProposalResponseRepository
from .validation import is_valid_email

logger = logging.getLogger(__name__)

UNAVAILABLE_MESSAGE = (
    "This proposal could not be loaded. It may have been removed or the link may be incorrect."
)


@dataclass
class PublicProposal:
    bid: Bid
    response: ProposalResponse | None = None

    @property
    def answered(self) -> bool:
        return self.response is not None


def validate_response(
    response_type: ResponseType, *, notes: str | None = None, client_email: str | None = None
) -> None:
    email = (client_email or "").strip()
    if (email or response_type is ResponseType.accepted) and not is_valid_email(email):
        raise InvalidResponseError("Please enter a valid email address.")
    if response_type is ResponseType.changes_requested and not (notes or "").strip():
        raise InvalidResponseError("Please describe the changes you would like to request.")


class PublicProposalService:
    """The client side of a shared proposal link: view it and answer it once."""

    def __init__(
        self,
        bids: BidRepository,
        responses: ProposalResponseRepository,
        notifier: ResponseNotifier | None = None,
    ) -> None:
        self._bids = bids
        self._responses = responses
        self._notifier = notifier

    def load(self, bid_id: str) -> PublicProposal:
        try:
            bid = self._bids.get(bid_id)
        except EntityNotFoundError as exc:
            raise ProposalLinkError(UNAVAILABLE_MESSAGE) from exc
        if not bid.proposal_html:
            raise ProposalLinkError(UNAVAILABLE_MESSAGE)
        existing = self._responses.for_bid(bid_id)
        return PublicProposal(bid=bid, response=existing[-1] if existing else None)

    def respond(
        self,
        bid_id: str,
        response_type: ResponseType,
        *,
        notes: str | None = None,
        client_email: str | None = None,
    ) -> ProposalResponse:
        proposal = self.load(bid_id)
        if proposal.answered:
            raise ProposalAlreadyAnsweredError("A response has already been recorded for this proposal.")
        validate_response(response_type, notes=notes, client_email=client_email)

        response = self._responses.create(
            None,
            ProposalResponse(
                bid_id=bid_id,
                response_type=response_type,
                notes=(notes or "").strip() or None,
                client_email=(client_email or "").strip() or None,
            ),
        )
        logger.info(
            "Recorded proposal response",
            extra={"bid_id": bid_id, "response_type": response_type.value},
        )
        self._notify(proposal.bid, response)
        return response

    def _notify(self, bid: Bid, response: ProposalResponse) -> None:
        if self._notifier is None:
            return
        try:
            self._notifier.notify(bid, response)
        except Exception:
            # The response record is what counts; the owner still sees it on the next list load.
            logger.warning("Failed to notify bid owner", exc_info=True, extra={"bid_id": bid.id})


def render_public_proposal(proposal: PublicProposal) -> str:
    return render("public_proposal.html", bid=proposal.bid, response=proposal.response)


def render_unavailable(message: str = UNAVAILABLE_MESSAGE) -> str:
    return render("proposal_unavailable.html", message=message)


__all__ = [
    "PublicProposal",
    "PublicProposalService",
    "UNAVAILABLE_MESSAGE",
    "render_public_proposal",
    "render_unavailable",
    "validate_response",
]
