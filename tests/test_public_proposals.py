import pytest

from conftest import RecordingNotifier

from contractor_bids.errors import InvalidResponseError, ProposalAlreadyAnsweredError, ProposalLinkError
from contractor_bids.models.bid import Bid
from contractor_bids.models.proposal import ProposalResponse, ResponseType
from contractor_bids.notifications import notification_message
from contractor_bids.public_proposals import PublicProposalService, render_public_proposal, render_unavailable
from contractor_bids.reconciliation import latest_responses

OWNER = "owner@example.com"


def shared_bid(bid_repo, **overrides) -> Bid:
    fields = dict(client_name="Dana", project_title="Deck", proposal_html="<div class='proposal'>Deck proposal</div>")
    fields.update(overrides)
    return bid_repo.create(OWNER, Bid(**fields))


def test_load_requires_generated_proposal(bid_repo, response_repo):
    service = PublicProposalService(bid_repo, response_repo)
    without_html = shared_bid(bid_repo, proposal_html=None)

    with pytest.raises(ProposalLinkError):
        service.load("missing")
    with pytest.raises(ProposalLinkError):
        service.load(without_html.id)


def test_accepting_records_response_and_notifies(bid_repo, response_repo):
    notifier = RecordingNotifier()
    service = PublicProposalService(bid_repo, response_repo, notifier)
    bid = shared_bid(bid_repo)

    response = service.respond(bid.id, ResponseType.accepted, client_email=" dana@example.com ")

    assert response.id
    assert response.client_email == "dana@example.com"
    assert notifier.sent == [(bid.id, "accepted")]
    assert service.load(bid.id).response.id == response.id


def test_duplicate_responses_show_the_latest(bid_repo, response_repo):
    service = PublicProposalService(bid_repo, response_repo)
    bid = shared_bid(bid_repo)
    response_repo.create(None, ProposalResponse(bid_id=bid.id, response_type=ResponseType.rejected))
    latest = response_repo.create(
        None, ProposalResponse(bid_id=bid.id, response_type=ResponseType.changes_requested, notes="Use oak")
    )

    shown = service.load(bid.id).response

    assert shown.id == latest.id
    assert latest_responses(response_repo.for_bids([bid.id]))[bid.id].id == shown.id


def test_only_one_response_per_proposal(bid_repo, response_repo):
    service = PublicProposalService(bid_repo, response_repo)
    bid = shared_bid(bid_repo)
    service.respond(bid.id, ResponseType.rejected)

    with pytest.raises(ProposalAlreadyAnsweredError):
        service.respond(bid.id, ResponseType.accepted, client_email="dana@example.com")
    assert len(response_repo.for_bid(bid.id)) == 1


@pytest.mark.parametrize(
    "response_type, fields",
    [
        (ResponseType.accepted, {}),
        (ResponseType.accepted, {"client_email": "not-an-email"}),
        (ResponseType.accepted, {"client_email": "dana@"}),
        (ResponseType.rejected, {"client_email": "dana at example.com"}),
        (ResponseType.changes_requested, {"notes": "   "}),
    ],
)
def test_invalid_responses_are_rejected(bid_repo, response_repo, response_type, fields):
    service = PublicProposalService(bid_repo, response_repo)
    bid = shared_bid(bid_repo)

    with pytest.raises(InvalidResponseError):
        service.respond(bid.id, response_type, **fields)
    assert response_repo.for_bid(bid.id) == []


def test_notification_failure_does_not_lose_response(bid_repo, response_repo):
    service = PublicProposalService(bid_repo, response_repo, RecordingNotifier(fail=True))
    bid = shared_bid(bid_repo)

    service.respond(bid.id, ResponseType.changes_requested, notes="Use oak")

    assert response_repo.for_bid(bid.id)[0].notes == "Use oak"


def test_notification_messages():
    bid = Bid(id="b1", created_by=OWNER, client_name="Dana", project_title="Deck")

    accepted = notification_message(
        bid, ProposalResponse(bid_id="b1", response_type=ResponseType.accepted, client_email="dana@example.com")
    )
    rejected = notification_message(bid, ProposalResponse(bid_id="b1", response_type=ResponseType.rejected))
    changes = notification_message(
        bid, ProposalResponse(bid_id="b1", response_type=ResponseType.changes_requested, notes="Use oak")
    )

    assert accepted.recipient == OWNER
    assert accepted.subject == 'Proposal Accepted: "Deck"'
    assert "Client Contact: dana@example.com" in accepted.body
    assert rejected.subject == 'Proposal Not Accepted: "Deck"'
    assert changes.subject == 'Change Request for "Deck"'
    assert 'Their notes: "Use oak"' in changes.body


def test_public_pages(bid_repo, response_repo):
    service = PublicProposalService(bid_repo, response_repo)
    bid = shared_bid(bid_repo)

    page = render_public_proposal(service.load(bid.id))
    assert "<div class='proposal'>Deck proposal</div>" in page
    assert "already been recorded" not in page

    service.respond(bid.id, ResponseType.changes_requested, notes="Use oak")
    assert "changes requested" in render_public_proposal(service.load(bid.id))

    assert "Proposal Not Found" in render_unavailable()
