from __future__ import annotations

import asyncio
import logging
import threading
import time
from datetime import datetime, timezone
from enum import Enum
from typing import Callable

from .bid_editor import BidEditor
from .errors import BidSaveError
from .models.bid import Bid, BidStatus
from .pricing import normalize_bid
from .repositories import BidRepository
from .validation import validate_for_submission, validate_strict

logger = logging.getLogger(__name__)

AUTOSAVE_QUIET_PERIOD = 10.0

SAVE_CONFIRMATION = "You have unsaved changes. Do you want to save this bid and finish editing?"
CANCEL_CONFIRMATION = (
    "You have unsaved changes. Are you sure you want to cancel? "
    "Your changes will be auto-saved as a draft."
)

Clock = Callable[[], float]
Confirm = Callable[[str], bool]


def _always_confirm(message: str) -> bool:
    return True


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionState(str, Enum):
    clean = "clean"
    dirty = "dirty"
    autosaving = "autosaving"


class DebounceTimer:
    """Deadline that moves back by ``delay`` every time it is restarted."""

    def __init__(self, delay: float, *, clock: Clock = time.monotonic) -> None:
        self.delay = delay
        self._clock = clock
        self._deadline: float | None = None

    def restart(self) -> None:
        self._deadline = self._clock() + self.delay

    def cancel(self) -> None:
        self._deadline = None

    def is_due(self) -> bool:
        return self._deadline is not None and self._clock() >= self._deadline


class BidEditingSession:
    """One open bid form: dirty tracking, debounced draft autosave and explicit save.

    Autosave only ever writes drafts and never raises; explicit saves use
    the status chosen on the form and raise on failure without touching
    local state.
    """

    def __init__(
        self,
        *,
        owner: str,
        bids: BidRepository,
        editor: BidEditor,
        clock: Clock = time.monotonic,
        now: Callable[[], datetime] = _utcnow,
        quiet_period: float = AUTOSAVE_QUIET_PERIOD,
    ) -> None:
        self.owner = owner
        self.editor = editor
        self._bids = bids
        self._now = now
        # Edits arrive on the event loop while autosaves run in a worker thread.
        self._lock = threading.Lock()
        self._timer = DebounceTimer(quiet_period, clock=clock)
        self._revision = 0
        self._saved_revision = 0
        self._autosaving = False

        start = editor.bid
        self.bid_id: str | None = None if start.is_example else start.id
        self.last_autosave_at: datetime | None = None
        self.closed = False
        editor.subscribe(self._on_change)

    @property
    def is_dirty(self) -> bool:
        return self._revision != self._saved_revision

    @property
    def state(self) -> SessionState:
        if self._autosaving:
            return SessionState.autosaving
        return SessionState.dirty if self.is_dirty else SessionState.clean

    def blocks_unload(self) -> bool:
        return self.is_dirty

    def _on_change(self, bid: Bid) -> None:
        with self._lock:
            self._revision += 1
            self._timer.restart()

    def poll(self) -> bool:
        """Run the autosave if the quiet period has elapsed since the last edit."""
        with self._lock:
            if not self._timer.is_due():
                return False
            self._timer.cancel()
        return self.autosave()

    def autosave(self) -> bool:
        with self._lock:
            bid = self.editor.bid
            if self._autosaving or not self.is_dirty or not bid.project_title:
                return False
            self._autosaving = True
            revision = self._revision

        draft = normalize_bid(bid).model_copy(update={"status": BidStatus.draft})
        try:
            self._persist(draft)
        except Exception:
            logger.warning(
                "Autosave failed, keeping unsaved changes",
                exc_info=True,
                extra={"owner": self.owner, "bid_id": self.bid_id},
            )
            return False
        finally:
            with self._lock:
                self._autosaving = False

        with self._lock:
            self._saved_revision = max(self._saved_revision, revision)
        self.last_autosave_at = self._now()
        logger.debug("Autosaved draft", extra={"owner": self.owner, "bid_id": self.bid_id})
        return True

    def save_and_finish(self, confirm: Confirm = _always_confirm, *, strict: bool = False) -> Bid | None:
        """Persist the bid with its chosen status and close the session.

        Returns ``None`` when the user declines the confirmation.
        """
        bid = normalize_bid(self.editor.bid)
        if strict:
            validate_strict(self.editor.bid)
        else:
            validate_for_submission(bid)

        if self.is_dirty and not confirm(SAVE_CONFIRMATION):
            return None

        with self._lock:
            revision = self._revision
        try:
            saved = self._persist(bid)
        except Exception as exc:
            logger.error("Failed to save bid", exc_info=True, extra={"owner": self.owner, "bid_id": self.bid_id})
            raise BidSaveError("Failed to save bid. Please check your internet connection and try again.") from exc

        with self._lock:
            self._saved_revision = max(self._saved_revision, revision)
            self._timer.cancel()
        self.closed = True
        return saved

    def cancel(self, confirm: Confirm = _always_confirm) -> bool:
        if self.is_dirty and not confirm(CANCEL_CONFIRMATION):
            return False
        with self._lock:
            self._timer.cancel()
        self.closed = True
        return True

    async def run_autosave(self, *, poll_interval: float = 0.5) -> None:
        """Drive the autosave timer until the session is closed."""
        while not self.closed:
            await asyncio.sleep(poll_interval)
            with self._lock:
                due = self._timer.is_due()
            if due:
                await asyncio.to_thread(self.poll)

    def _persist(self, bid: Bid) -> Bid:
        if self.bid_id:
            return self._bids.update(self.bid_id, bid)
        created = self._bids.create(self.owner, bid)
        # Later autosaves and the final save must target the same record.
        self.bid_id = created.id
        return created


__all__ = [
    "AUTOSAVE_QUIET_PERIOD",
    "BidEditingSession",
    "DebounceTimer",
    "SessionState",
    "SAVE_CONFIRMATION",
    "CANCEL_CONFIRMATION",
]
