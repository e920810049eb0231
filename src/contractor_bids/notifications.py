from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

from .models.bid import Bid
from .models.proposal import ProposalResponse, ResponseType
from .pubsub_client import PubSubClient

logger = logging.getLogger(__name__)

DEFAULT_TOPIC = "proposal-responses"
SIGNATURE = "\n\nRegards,\nThe Contractor Bids Team"


@dataclass(frozen=True)
class NotificationMessage:
    recipient: str
    subject: str
    body: str


class ResponseNotifier(Protocol):
    def notify(self, bid: Bid, response: ProposalResponse) -> None:
        ...


def notification_message(bid: Bid, response: ProposalResponse) -> NotificationMessage:
    """Owner-facing subject and body for a client's answer to a proposal."""
    title = bid.project_title
    if response.response_type is ResponseType.accepted:
        subject = f'Proposal Accepted: "{title}"'
        body = (
            f'Good news!\n\n{bid.client_name} has accepted your proposal for "{title}".\n\n'
            "A permanent acceptance record has been created in your account. "
            "You can log in to create an invoice.\n\n"
            f"Client Contact: {response.client_email or ''}"
        )
    elif response.response_type is ResponseType.rejected:
        subject = f'Proposal Not Accepted: "{title}"'
        body = (
            f"This is an automated notification that {bid.client_name} has decided not to move "
            f'forward with the proposal for "{title}" at this time.'
        )
    else:
        subject = f'Change Request for "{title}"'
        body = (
            f'{bid.client_name} has requested changes for the proposal "{title}".\n\n'
            f'Their notes: "{response.notes or ""}"'
        )
    return NotificationMessage(recipient=bid.created_by or "", subject=subject, body=body + SIGNATURE)


class PubSubResponseNotifier:
    """Hands owner notifications to the mailer through a Pub/Sub topic."""

    def __init__(self, client: PubSubClient, *, topic_id: str = DEFAULT_TOPIC) -> None:
        self._client = client
        self._topic_id = topic_id

    def notify(self, bid: Bid, response: ProposalResponse) -> None:
        message = notification_message(bid, response)
        if not message.recipient:
            logger.warning("Bid has no owner to notify", extra={"bid_id": bid.id})
            return
        self._client.publish_proposal_response(
            self._topic_id,
            bid_id=bid.id or "",
            response_type=response.response_type.value,
            recipient=message.recipient,
            subject=message.subject,
            body=message.body,
        )


__all__ = [
    "DEFAULT_TOPIC",
    "NotificationMessage",
    "PubSubResponseNotifier",
    "ResponseNotifier",
    "notification_message",
]
