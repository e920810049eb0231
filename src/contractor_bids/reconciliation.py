from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Sequence

from tenacity import RetryError, Retrying, before_sleep_log, stop_after_attempt, wait_fixed

from .errors import BidListLoadError
from .models.bid import EXAMPLE_BID, Bid
from .models.proposal import ProposalResponse
from .repositories import BidRepository, ProposalResponseRepository

logger = logging.getLogger(__name__)

LOAD_ATTEMPTS = 3
LOAD_RETRY_DELAY = 1.5


@dataclass
class BidListing:
    bids: list[Bid]
    responses: dict[str, ProposalResponse] = field(default_factory=dict)
    synced: int = 0

    @property
    def has_only_example(self) -> bool:
        return len(self.bids) == 1 and self.bids[0].is_example


def latest_responses(responses: Sequence[ProposalResponse]) -> dict[str, ProposalResponse]:
    """Map bid id to response; with duplicates the last one in creation order wins."""
    mapped: dict[str, ProposalResponse] = {}
    for response in responses:
        mapped[response.bid_id] = response
    return mapped


def pending_status_updates(bids: Sequence[Bid], responses: dict[str, ProposalResponse]) -> dict[str, dict]:
    updates: dict[str, dict] = {}
    for bid in bids:
        response = responses.get(bid.id or "")
        if response is None or bid.status.value == response.response_type.value:
            continue
        updates[bid.id] = {
            "status": response.response_type.value,
            "change_request_notes": response.notes or bid.change_request_notes,
        }
    return updates


class BidListService:
    """Loads an owner's bids and folds client proposal responses into their status."""

    def __init__(
        self,
        bids: BidRepository,
        responses: ProposalResponseRepository,
        *,
        attempts: int = LOAD_ATTEMPTS,
        retry_delay: float = LOAD_RETRY_DELAY,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._bids = bids
        self._responses = responses
        self._attempts = attempts
        self._retry_delay = retry_delay
        self._sleep = sleep

    def load_and_sync(self, owner: str) -> BidListing:
        retrying = Retrying(
            stop=stop_after_attempt(self._attempts),
            wait=wait_fixed(self._retry_delay),
            sleep=self._sleep,
            before_sleep=before_sleep_log(logger, logging.WARNING),
        )
        try:
            return retrying(self._load_and_sync_once, owner)
        except RetryError as exc:
            logger.error(
                "Failed to load bid data",
                exc_info=exc.last_attempt.exception(),
                extra={"owner": owner, "attempts": self._attempts},
            )
            raise BidListLoadError(
                "Failed to load bid data. Please check your connection and try again."
            ) from exc.last_attempt.exception()

    def _load_and_sync_once(self, owner: str) -> BidListing:
        bids = self._bids.list_for_owner(owner)
        responses = latest_responses(self._responses.for_bids([bid.id for bid in bids if bid.id]))

        updates = pending_status_updates(bids, responses)
        for bid_id, fields in updates.items():
            self._bids.update(bid_id, fields)
        if updates:
            logger.info("Synced bid statuses from proposal responses", extra={"owner": owner, "count": len(updates)})
            bids = self._bids.list_for_owner(owner)

        if not bids:
            return BidListing(bids=[EXAMPLE_BID.model_copy()], responses={}, synced=len(updates))
        return BidListing(bids=bids, responses=responses, synced=len(updates))


__all__ = ["BidListService", "BidListing", "latest_responses", "pending_status_updates"]
