"""
deckweave.selector
------------------

This module selects the cards of a pool that are due for review.

Functions:
    select_due_cards: The due cards of a pool, most overdue first.
    select_due: The ids of the due cards of a pool, most overdue first.
    select_new_cards: The cards of a pool with no successful review streak.
    retention_stats: Computes RetentionStats for a pool.

Classes:
    RetentionStats: Deck-level counts and averages of a card pool.
"""

from __future__ import annotations
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from statistics import mean
from deckweave.card import Card
from deckweave.difficulty import Difficulty
from deckweave.scheduling_state import ensure_utc


def review_order(card: Card) -> tuple[datetime, str]:
    """
    Sort key placing the most overdue card first, ties broken by card id.
    """

    return card.scheduling.next_review_date, card.card_id


def filter_by_difficulty(
    cards: Iterable[Card], difficulty: Difficulty | str | None
) -> list[Card]:
    difficulty = Difficulty.coerce(difficulty)

    if difficulty is None:
        return list(cards)

    return [card for card in cards if card.difficulty == difficulty]


def select_due_cards(
    pool: Iterable[Card],
    now: datetime,
    difficulty: Difficulty | str | None = None,
) -> list[Card]:
    """
    Selects every card of the pool that is due at the given time.

    A card is due when its next review date is at or before `now`, or when it has never been reviewed.
    The pool and the cards' scheduling states are not modified.

    Args:
        pool: The candidate cards.
        now: The reference date and time.
        difficulty: If given, only cards with this difficulty label are selected.

    Returns:
        list[Card]: The due cards, ordered by ascending next review date then ascending card id.

    Raises:
        ValueError: If `now` is not timezone-aware, or `difficulty` is an unknown name.
    """

    now = ensure_utc(now)

    due_cards = [
        card
        for card in filter_by_difficulty(pool, difficulty)
        if card.scheduling.is_due(now)
    ]

    return sorted(due_cards, key=review_order)


def select_due(
    pool: Iterable[Card],
    now: datetime,
    difficulty: Difficulty | str | None = None,
) -> list[str]:
    """
    Same as select_due_cards, returning card ids.
    """

    return [card.card_id for card in select_due_cards(pool, now, difficulty)]


def select_new_cards(pool: Iterable[Card]) -> list[Card]:
    """
    Selects the cards of the pool with no successful review streak, in card id order.
    """

    return sorted(
        (card for card in pool if card.scheduling.repetitions == 0),
        key=lambda card: card.card_id,
    )


# cards scheduled at least this many days apart count as mature
MATURE_INTERVAL = 21


@dataclass(frozen=True)
class RetentionStats:
    """
    Deck-level counts and averages of a card pool.

    Attributes:
        total_cards: The number of cards.
        due_cards: The number of cards due at the reference time.
        new_cards: The number of cards with no successful review streak.
        mature_cards: The number of cards with an interval of at least MATURE_INTERVAL days.
        average_ease_factor: The mean ease factor, 0 for an empty pool.
        retention_rate: The percentage of cards that are not due, 0 for an empty pool.
    """

    total_cards: int = 0
    due_cards: int = 0
    new_cards: int = 0
    mature_cards: int = 0
    average_ease_factor: float = 0.0
    retention_rate: float = 0.0


def retention_stats(pool: Iterable[Card], now: datetime) -> RetentionStats:
    """
    Computes the retention statistics of a pool at the given time.

    Raises:
        ValueError: If `now` is not timezone-aware.
    """

    now = ensure_utc(now)
    cards = list(pool)

    if not cards:
        return RetentionStats()

    total_cards = len(cards)
    due_cards = sum(1 for card in cards if card.scheduling.is_due(now))

    return RetentionStats(
        total_cards=total_cards,
        due_cards=due_cards,
        new_cards=sum(1 for card in cards if card.scheduling.repetitions == 0),
        mature_cards=sum(
            1 for card in cards if card.scheduling.interval_days >= MATURE_INTERVAL
        ),
        average_ease_factor=mean(card.scheduling.ease_factor for card in cards),
        retention_rate=(total_cards - due_cards) / total_cards * 100,
    )


__all__ = [
    "select_due",
    "select_due_cards",
    "select_new_cards",
    "filter_by_difficulty",
    "review_order",
    "RetentionStats",
    "retention_stats",
    "MATURE_INTERVAL",
]
