from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Mapping

import pytest

from contractor_bids.entity_store import InMemoryEntityStore
from contractor_bids.repositories import BidRepository, ProposalResponseRepository


class FakeClock:
    def __init__(self, start: float = 0.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeGenerator:
    """Returns canned sections, failing the first ``failures`` calls."""

    def __init__(
        self,
        payload: Mapping[str, Any] | None = None,
        *,
        failures: int = 0,
        text: str = "",
        text_error: Exception | None = None,
    ) -> None:
        self.payload = dict(payload or {})
        self.failures = failures
        self.text = text
        self.text_error = text_error
        self.prompts: list[str] = []
        self.text_calls: list[tuple[str, bool]] = []

    def generate_json(self, prompt: str, *, schema: Mapping[str, Any]) -> dict[str, Any]:
        self.prompts.append(prompt)
        if len(self.prompts) <= self.failures:
            raise RuntimeError("model unavailable")
        return dict(self.payload)

    def generate_text(self, prompt: str, *, use_external_knowledge: bool = False) -> str:
        self.text_calls.append((prompt, use_external_knowledge))
        if self.text_error is not None:
            raise self.text_error
        return self.text


class RecordingNotifier:
    def __init__(self, *, fail: bool = False) -> None:
        self.fail = fail
        self.sent: list[tuple[str | None, str]] = []

    def notify(self, bid, response) -> None:
        if self.fail:
            raise RuntimeError("pubsub down")
        self.sent.append((bid.id, response.response_type.value))


FIXED_NOW = datetime(2026, 10, 19, 9, 30, tzinfo=timezone.utc)


@pytest.fixture
def store() -> InMemoryEntityStore:
    return InMemoryEntityStore()


@pytest.fixture
def bid_repo(store: InMemoryEntityStore) -> BidRepository:
    return BidRepository(store)


@pytest.fixture
def response_repo(store: InMemoryEntityStore) -> ProposalResponseRepository:
    return ProposalResponseRepository(store)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
