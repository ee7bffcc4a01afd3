"""
deckweave.store
---------------

This module defines the interfaces deckweave expects from its storage collaborators, an in-memory
implementation of them, and the optimistic concurrency loop used to write scheduling states.

Classes:
    SchedulingStateStore: Versioned reads and compare-and-swap writes of scheduling states.
    DeckCardSource: Supplies the candidate card pool of a deck.
    SessionStore: Persists and loads quiz sessions.
    ResultStore: Persists quiz results.
    ReviewStore: Everything needed to record an answer.
    InMemoryStore: A thread-safe in-memory implementation of all of the above.

Functions:
    commit_review: Read, compute and conditionally write a scheduling state, retrying on conflict.
"""

from __future__ import annotations
from collections.abc import Callable, Iterable
from typing import Protocol
import logging
import threading
from deckweave.card import Card, DeckCardPool
from deckweave.difficulty import Difficulty
from deckweave.errors import ConcurrencyConflictError
from deckweave.quiz_result import QuizResult
from deckweave.scheduling_state import SchedulingState
from deckweave.session import QuizSession

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 5


class SchedulingStateStore(Protocol):
    def fetch_scheduling_state(self, card_id: str) -> tuple[SchedulingState, int]:
        """
        Returns a card's scheduling state together with its version marker.
        """
        ...

    def save_scheduling_state(
        self, card_id: str, state: SchedulingState, expected_version: int
    ) -> bool:
        """
        Writes a card's scheduling state if its version is still `expected_version`.

        Returns False on a version conflict, in which case nothing is written.
        """
        ...


class DeckCardSource(Protocol):
    def fetch_deck_card_pool(
        self, deck_id: str, difficulty: Difficulty | None = None
    ) -> DeckCardPool: ...


class SessionStore(Protocol):
    def persist_session(self, session: QuizSession) -> None: ...

    def load_session(self, session_id: str) -> QuizSession: ...


class ResultStore(Protocol):
    def persist_result(self, result: QuizResult) -> None: ...


class ReviewStore(SchedulingStateStore, SessionStore, ResultStore, Protocol):
    pass


class InMemoryStore:
    """
    Keeps cards, sessions and results in memory.

    Every card carries a version that is bumped by each successful scheduling state write.
    """

    def __init__(self, cards: Iterable[Card] = ()) -> None:
        self._lock = threading.Lock()
        self._cards: dict[str, Card] = {}
        self._versions: dict[str, int] = {}
        self._sessions: dict[str, QuizSession] = {}
        self._results: dict[str, QuizResult] = {}

        for card in cards:
            self.add_card(card)

    def add_card(self, card: Card) -> None:
        with self._lock:
            self._cards[card.card_id] = card
            self._versions[card.card_id] = 0

    def get_card(self, card_id: str) -> Card:
        with self._lock:
            return self._cards[card_id]

    def fetch_deck_card_pool(
        self, deck_id: str, difficulty: Difficulty | None = None
    ) -> list[Card]:
        with self._lock:
            return [
                card
                for card in self._cards.values()
                if card.deck_id == deck_id
                and (difficulty is None or card.difficulty == difficulty)
            ]

    def fetch_scheduling_state(self, card_id: str) -> tuple[SchedulingState, int]:
        with self._lock:
            return self._cards[card_id].scheduling, self._versions[card_id]

    def save_scheduling_state(
        self, card_id: str, state: SchedulingState, expected_version: int
    ) -> bool:
        with self._lock:
            if self._versions[card_id] != expected_version:
                return False

            self._cards[card_id] = self._cards[card_id].with_scheduling(state)
            self._versions[card_id] = expected_version + 1
            return True

    def persist_session(self, session: QuizSession) -> None:
        with self._lock:
            self._sessions[session.session_id] = session

    def load_session(self, session_id: str) -> QuizSession:
        with self._lock:
            return self._sessions[session_id]

    def persist_result(self, result: QuizResult) -> None:
        with self._lock:
            self._results[result.result_id] = result

    def results_for_card(self, card_id: str) -> list[QuizResult]:
        with self._lock:
            return [
                result for result in self._results.values() if result.card_id == card_id
            ]

    def results_for_session(self, session_id: str) -> list[QuizResult]:
        with self._lock:
            results = [
                result
                for result in self._results.values()
                if result.session_id == session_id
            ]
        return sorted(results, key=lambda result: result.answered_at)


def commit_review(
    store: SchedulingStateStore,
    card_id: str,
    compute: Callable[[SchedulingState], SchedulingState],
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
) -> SchedulingState:
    """
    Writes a new scheduling state for a card under optimistic concurrency.

    The current state is read with its version, `compute` derives the new state from it, and the write
    only succeeds if the version did not change in between. On a conflict the whole computation is
    repeated from a fresh read; two computed states are never merged.

    Args:
        store: The scheduling state store.
        card_id: The card whose state is written.
        compute: Pure function from the current state to the new state.
        max_attempts: How many read-compute-write rounds to try.

    Returns:
        SchedulingState: The state that was written.

    Raises:
        ConcurrencyConflictError: If every attempt hit a version conflict.
    """

    if max_attempts < 1:
        raise ValueError(f"max_attempts = {max_attempts} must be at least 1")

    for attempt in range(1, max_attempts + 1):
        state, version = store.fetch_scheduling_state(card_id)
        new_state = compute(state)

        if store.save_scheduling_state(card_id, new_state, version):
            return new_state

        logger.warning(
            "Scheduling state of card %s changed concurrently (attempt %d of %d)",
            card_id,
            attempt,
            max_attempts,
        )

    raise ConcurrencyConflictError(card_id, max_attempts)


__all__ = [
    "SchedulingStateStore",
    "DeckCardSource",
    "SessionStore",
    "ResultStore",
    "ReviewStore",
    "InMemoryStore",
    "commit_review",
]
