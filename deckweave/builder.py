"""
deckweave.builder
-----------------

This module defines the SessionBuilder class, which builds deck-interleaved review sessions.

Classes:
    SessionBuilder: Builds QuizSession objects from the card pools of several decks.

Functions:
    derive_seed: The shuffle seed of one deck within one session.
    interleave: Orders per-deck queues so that no deck is drawn twice in a row while another deck has cards.
"""

from __future__ import annotations
from collections import deque
from collections.abc import Callable, Iterable, Mapping, Sequence
from datetime import datetime, timedelta
from random import Random
import hashlib
import logging
import uuid
from deckweave.card import Card, DeckCardPool
from deckweave.difficulty import Difficulty
from deckweave.errors import EmptySessionError
from deckweave.scheduling_state import ensure_utc
from deckweave.selector import filter_by_difficulty, review_order, select_due_cards
from deckweave.session import QuizSession, SessionSlot, SessionStatus
from deckweave.store import DeckCardSource

logger = logging.getLogger(__name__)

DEFAULT_TIME_LIMIT = timedelta(hours=24)


def derive_seed(session_id: str, deck_id: str) -> int:
    """
    Derives the shuffle seed of a deck within a session.

    The seed only depends on the two ids, so rebuilding a session with the same id reproduces its order.
    """

    digest = hashlib.sha256(f"{session_id}:{deck_id}".encode("utf-8")).digest()
    return int.from_bytes(digest[:8], "big")


def interleave(queues: Mapping[str, Sequence[str]]) -> list[tuple[str, str]]:
    """
    Merges per-deck card queues into one sequence, drawing from the decks round-robin.

    The deck drawn from last is skipped while any other deck still has cards, so two consecutive
    entries only share a deck once every other deck is exhausted.

    Args:
        queues: Card ids to draw from, per deck id. Decks are visited in mapping order.

    Returns:
        list[tuple[str, str]]: (deck_id, card_id) pairs in session order.
    """

    order = [deck_id for deck_id, card_ids in queues.items() if len(card_ids) > 0]
    pending = {deck_id: deque(queues[deck_id]) for deck_id in order}

    interleaved: list[tuple[str, str]] = []
    cursor = 0
    last_deck_id: str | None = None

    while order:
        index = cursor % len(order)
        if order[index] == last_deck_id and len(order) > 1:
            index = (index + 1) % len(order)

        deck_id = order[index]
        interleaved.append((deck_id, pending[deck_id].popleft()))
        last_deck_id = deck_id

        if pending[deck_id]:
            cursor = index + 1
        else:
            # the next deck slides into this index
            del order[index]
            cursor = index

    return interleaved


class SessionBuilder:
    """
    Builds interleaved review sessions from several decks.

    Attributes:
        card_source: Supplies the candidate card pool of a deck.
        default_time_limit: How long a session accepts answers when no time limit is given, or None for no expiry.
    """

    def __init__(
        self,
        card_source: DeckCardSource | Callable[[str, Difficulty | None], DeckCardPool],
        default_time_limit: timedelta | None = DEFAULT_TIME_LIMIT,
    ) -> None:
        if hasattr(card_source, "fetch_deck_card_pool"):
            self._fetch_deck_card_pool = card_source.fetch_deck_card_pool
        elif callable(card_source):
            self._fetch_deck_card_pool = card_source
        else:
            raise TypeError(
                "card_source must be callable or provide fetch_deck_card_pool()"
            )

        self.card_source = card_source
        self.default_time_limit = default_time_limit

    def build(
        self,
        deck_ids: Iterable[str],
        now: datetime,
        cards_per_deck: int | None = None,
        difficulty: Difficulty | str | None = None,
        due_only: bool = True,
        session_id: str | None = None,
        time_limit: timedelta | None = None,
    ) -> QuizSession:
        """
        Builds a session interleaving the cards of the given decks.

        Each deck contributes its due cards (or its whole pool when `due_only` is False), filtered by
        difficulty and capped at `cards_per_deck`, most overdue first. The contributed cards of a deck are
        shuffled with a seed derived from the session and deck ids, then the decks are interleaved.

        Args:
            deck_ids: The decks to draw cards from. Repeated ids are ignored.
            now: The reference date and time for due selection and session expiry.
            cards_per_deck: The maximum number of cards per deck, or None for no cap.
            difficulty: If given, only cards with this difficulty label are used.
            due_only: Whether to restrict each deck to its cards that are due at `now`.
            session_id: The id of the new session. A random id is generated if None.
            time_limit: How long the session accepts answers. Defaults to the builder's default_time_limit.

        Returns:
            QuizSession: An Active session whose slots hold every contributed card exactly once.

        Raises:
            ValueError: If no deck is given, `cards_per_deck` is below 1 or `now` is not timezone-aware.
            EmptySessionError: If no deck contributes any card.
        """

        now = ensure_utc(now)
        deck_ids = tuple(dict.fromkeys(deck_ids))
        difficulty = Difficulty.coerce(difficulty)

        if len(deck_ids) == 0:
            raise ValueError("At least one deck must be selected")
        if cards_per_deck is not None and cards_per_deck < 1:
            raise ValueError(f"cards_per_deck = {cards_per_deck} must be at least 1")

        if session_id is None:
            session_id = uuid.uuid4().hex

        queues: dict[str, list[str]] = {}
        seen_card_ids: set[str] = set()

        for deck_id in deck_ids:
            selected = self._select_cards(
                deck_id=deck_id,
                now=now,
                difficulty=difficulty,
                due_only=due_only,
            )

            card_ids = []
            for card in selected:
                if card.card_id in seen_card_ids:
                    continue
                seen_card_ids.add(card.card_id)
                card_ids.append(card.card_id)

            if cards_per_deck is not None:
                card_ids = card_ids[:cards_per_deck]

            Random(derive_seed(session_id, deck_id)).shuffle(card_ids)
            queues[deck_id] = card_ids

        per_deck_counts = {deck_id: len(card_ids) for deck_id, card_ids in queues.items()}

        if sum(per_deck_counts.values()) == 0:
            raise EmptySessionError(deck_ids)

        slots = tuple(
            SessionSlot(card_id=card_id, deck_id=deck_id, position=position)
            for position, (deck_id, card_id) in enumerate(interleave(queues))
        )

        if time_limit is None:
            time_limit = self.default_time_limit

        session = QuizSession(
            session_id=session_id,
            deck_ids=deck_ids,
            slots=slots,
            per_deck_counts=per_deck_counts,
            difficulty=difficulty,
            status=SessionStatus.Building,
            created_at=now,
            expires_at=now + time_limit if time_limit is not None else None,
        )

        logger.debug(
            "Built session %s with %d slots from decks %s",
            session_id,
            len(slots),
            per_deck_counts,
        )

        return session.activate()

    def _select_cards(
        self,
        *,
        deck_id: str,
        now: datetime,
        difficulty: Difficulty | None,
        due_only: bool,
    ) -> list[Card]:
        pool = self._fetch_deck_card_pool(deck_id, difficulty)

        if due_only:
            return select_due_cards(pool, now, difficulty)

        return sorted(filter_by_difficulty(pool, difficulty), key=review_order)


__all__ = ["SessionBuilder", "derive_seed", "interleave", "DEFAULT_TIME_LIMIT"]
