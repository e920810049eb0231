import pytest

from contractor_bids.errors import BidListLoadError
from contractor_bids.models.bid import EXAMPLE_BID, Bid, BidStatus
from contractor_bids.models.proposal import ProposalResponse, ResponseType
from contractor_bids.reconciliation import BidListService, latest_responses, pending_status_updates
from contractor_bids.repositories import BidRepository

OWNER = "owner@example.com"


class FlakyBidRepository(BidRepository):
    def __init__(self, store, failures):
        super().__init__(store)
        self.failures = failures
        self.calls = 0

    def list_for_owner(self, owner, *, order_by="updated_date"):
        self.calls += 1
        if self.calls <= self.failures:
            raise ConnectionError("offline")
        return super().list_for_owner(owner, order_by=order_by)


def make_service(bid_repo, response_repo, sleeps=None):
    sleeps = [] if sleeps is None else sleeps
    return BidListService(bid_repo, response_repo, sleep=sleeps.append)


def test_accepted_response_updates_sent_bid(bid_repo, response_repo):
    bid = bid_repo.create(OWNER, Bid(project_title="Deck", status=BidStatus.sent))
    response_repo.create(None, ProposalResponse(bid_id=bid.id, response_type=ResponseType.accepted))

    listing = make_service(bid_repo, response_repo).load_and_sync(OWNER)

    assert listing.synced == 1
    assert [b.status for b in listing.bids] == [BidStatus.accepted]
    assert bid_repo.get(bid.id).status is BidStatus.accepted
    assert listing.responses[bid.id].response_type is ResponseType.accepted


def test_change_request_notes_are_merged(bid_repo, response_repo):
    with_notes = bid_repo.create(OWNER, Bid(project_title="Deck", status=BidStatus.sent))
    keeps_notes = bid_repo.create(
        OWNER, Bid(project_title="Fence", status=BidStatus.sent, change_request_notes="Earlier notes")
    )
    response_repo.create(
        None,
        ProposalResponse(bid_id=with_notes.id, response_type=ResponseType.changes_requested, notes="Use oak"),
    )
    response_repo.create(None, ProposalResponse(bid_id=keeps_notes.id, response_type=ResponseType.changes_requested))

    make_service(bid_repo, response_repo).load_and_sync(OWNER)

    assert bid_repo.get(with_notes.id).change_request_notes == "Use oak"
    assert bid_repo.get(keeps_notes.id).change_request_notes == "Earlier notes"
    assert bid_repo.get(keeps_notes.id).status is BidStatus.changes_requested


def test_matching_status_is_left_alone(bid_repo, response_repo):
    bid = bid_repo.create(OWNER, Bid(project_title="Deck", status=BidStatus.rejected))
    response_repo.create(None, ProposalResponse(bid_id=bid.id, response_type=ResponseType.rejected))

    listing = make_service(bid_repo, response_repo).load_and_sync(OWNER)

    assert listing.synced == 0


def test_owner_without_bids_sees_example(bid_repo, response_repo):
    bid_repo.create("someone-else@example.com", Bid(project_title="Other"))

    listing = make_service(bid_repo, response_repo).load_and_sync(OWNER)

    assert listing.has_only_example
    assert listing.bids[0].id == EXAMPLE_BID.id


def test_transient_failures_are_retried(store, response_repo):
    flaky = FlakyBidRepository(store, failures=2)
    flaky.create(OWNER, Bid(project_title="Deck"))
    sleeps = []

    listing = make_service(flaky, response_repo, sleeps).load_and_sync(OWNER)

    assert len(listing.bids) == 1
    assert sleeps == [1.5, 1.5]


def test_persistent_failure_raises_after_three_attempts(store, response_repo):
    flaky = FlakyBidRepository(store, failures=10)

    with pytest.raises(BidListLoadError, match="Failed to load bid data"):
        make_service(flaky, response_repo).load_and_sync(OWNER)
    assert flaky.calls == 3


def test_latest_response_wins_for_duplicates():
    first = ProposalResponse(bid_id="b1", response_type=ResponseType.rejected)
    second = ProposalResponse(bid_id="b1", response_type=ResponseType.accepted)
    assert latest_responses([first, second])["b1"] is second


def test_pending_updates_skip_bids_without_responses():
    bids = [Bid(id="b1", status=BidStatus.sent), Bid(id="b2", status=BidStatus.sent)]
    responses = {"b2": ProposalResponse(bid_id="b2", response_type=ResponseType.accepted)}
    assert pending_status_updates(bids, responses) == {
        "b2": {"status": "accepted", "change_request_notes": None}
    }
