"""Optimistic vote toggling for gallery clients.

A click flips the local count and membership at once, the request to the API is
sent without waiting, and a single completion callback either adopts the
server's answer or restores what was shown before the click.
"""
from __future__ import annotations

import logging
import threading
from concurrent.futures import Future
from dataclasses import dataclass, field
from typing import Callable

from src.application.use_cases.vote_image import VoteState

logger = logging.getLogger(__name__)

VoteSender = Callable[[str], "Future[VoteState]"]


@dataclass
class GalleryVoteState:
    """What a gallery shows: vote counts and which images the viewer voted for."""

    votes: dict[str, int] = field(default_factory=dict)
    voted: dict[str, bool] = field(default_factory=dict)
    pending: dict[str, OptimisticVote] = field(default_factory=dict)
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def load(self, image_id: str, votes: int, voted: bool) -> None:
        with self.lock:
            self.votes[image_id] = votes
            self.voted[image_id] = voted

    def is_pending(self, image_id: str) -> bool:
        with self.lock:
            return image_id in self.pending


@dataclass
class OptimisticVote:
    image_id: str
    previous_votes: int
    previous_voted: bool
    request: Future | None = None

    @property
    def intended_voted(self) -> bool:
        return not self.previous_voted

    @property
    def intended_votes(self) -> int:
        return self.previous_votes + (1 if self.intended_voted else -1)

    def apply(self, state: GalleryVoteState) -> None:
        state.votes[self.image_id] = self.intended_votes
        state.voted[self.image_id] = self.intended_voted
        state.pending[self.image_id] = self

    def revert(self, state: GalleryVoteState) -> None:
        state.votes[self.image_id] = self.previous_votes
        state.voted[self.image_id] = self.previous_voted

    def reconcile(self, state: GalleryVoteState, future: Future) -> None:
        """Completion callback: keep the server's state, or roll back on failure."""
        error = future.exception()
        with state.lock:
            state.pending.pop(self.image_id, None)
            if error is not None:
                logger.warning("Vote on %s failed, restoring local state: %s", self.image_id, error)
                self.revert(state)
                return
            result = future.result()
            state.votes[self.image_id] = result.votes
            state.voted[self.image_id] = result.voted


def submit_vote(state: GalleryVoteState, image_id: str, send: VoteSender) -> OptimisticVote | None:
    """Apply a vote toggle locally and fire ``send`` without waiting for it.

    Returns None, and changes nothing, while an earlier vote on the same image
    is still in flight.
    """
    with state.lock:
        if image_id in state.pending:
            return None
        command = OptimisticVote(
            image_id=image_id,
            previous_votes=state.votes.get(image_id, 0),
            previous_voted=state.voted.get(image_id, False),
        )
        command.apply(state)

    try:
        command.request = send(image_id)
    except Exception as exc:
        failed: Future = Future()
        failed.set_exception(exc)
        command.request = failed
    command.request.add_done_callback(lambda done: command.reconcile(state, done))
    return command
