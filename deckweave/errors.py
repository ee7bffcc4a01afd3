"""
deckweave.errors
----------------

This module defines the exceptions raised by the deckweave package.

Classes:
    DeckweaveError: Base class of every deckweave exception.
    EmptySessionError: No eligible cards were found in any requested deck.
    OutOfSequenceError: An answer was submitted for a slot other than the current one.
    SessionCompletedError: An answer was submitted to a session that has already been completed.
    SessionExpiredError: An answer was submitted to a session whose expiry has passed.
    InvalidRatingError: A rating outside of the four-level rating scale was given.
    ConcurrencyConflictError: A scheduling state write kept losing its compare-and-swap.
"""

from __future__ import annotations
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from deckweave.session import QuizSession


class DeckweaveError(Exception):
    """
    Base class of every exception raised by deckweave.
    """


class EmptySessionError(DeckweaveError):
    """
    Raised when none of the requested decks contributes a single card to a session.

    Attributes:
        deck_ids: The decks that were requested.
    """

    def __init__(self, deck_ids: tuple[str, ...]) -> None:
        self.deck_ids = deck_ids
        super().__init__(
            f"No eligible cards in any of the requested decks: {', '.join(deck_ids)}"
        )


class OutOfSequenceError(DeckweaveError):
    """
    Raised when an answer is recorded for a slot other than the session's current slot.

    Attributes:
        session_id: The session the answer was submitted to.
        expected_index: The session's current slot index.
        slot_index: The slot index that was submitted.
    """

    def __init__(self, session_id: str, expected_index: int, slot_index: int) -> None:
        self.session_id = session_id
        self.expected_index = expected_index
        self.slot_index = slot_index
        super().__init__(
            f"Session {session_id} expects an answer for slot {expected_index}, got slot {slot_index}"
        )


class SessionCompletedError(DeckweaveError):
    """
    Raised when an answer is recorded for a session that has already been completed.
    """

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(f"Session {session_id} is already completed")


class SessionExpiredError(DeckweaveError):
    """
    Raised when an answer is recorded for a session whose expiry has passed.

    Attributes:
        session: The session, moved to the Expired state, so the caller can persist it.
    """

    def __init__(self, session: QuizSession) -> None:
        self.session = session
        super().__init__(
            f"Session {session.session_id} expired at {session.expires_at.isoformat() if session.expires_at else None}"
        )


class InvalidRatingError(DeckweaveError, ValueError):
    """
    Raised when a value that is not a Rating is passed where a Rating is required.
    """

    def __init__(self, rating: object) -> None:
        self.rating = rating
        super().__init__(f"Invalid rating: {rating!r}")


class ConcurrencyConflictError(DeckweaveError):
    """
    Raised when a scheduling state write keeps conflicting with concurrent writers.

    Attributes:
        card_id: The card whose scheduling state could not be written.
        attempts: The number of read-compute-write attempts that were made.
    """

    def __init__(self, card_id: str, attempts: int) -> None:
        self.card_id = card_id
        self.attempts = attempts
        super().__init__(
            f"Scheduling state of card {card_id} changed concurrently on each of {attempts} attempts"
        )


__all__ = [
    "DeckweaveError",
    "EmptySessionError",
    "OutOfSequenceError",
    "SessionCompletedError",
    "SessionExpiredError",
    "InvalidRatingError",
    "ConcurrencyConflictError",
]
