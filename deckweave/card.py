"""
deckweave.card
--------------

This module defines the Card class.

Classes:
    Card: A flashcard as seen by the scheduler and the session builder.
"""

from __future__ import annotations
from collections.abc import Sequence
from dataclasses import dataclass, replace
from typing import TypedDict
import json
from typing_extensions import Self
from deckweave.difficulty import Difficulty
from deckweave.scheduling_state import SchedulingState, SchedulingStateDict


class CardDict(TypedDict):
    """
    JSON-serializable dictionary representation of a Card object.
    """

    card_id: str
    deck_id: str
    difficulty: str
    scheduling: SchedulingStateDict


@dataclass(frozen=True)
class Card:
    """
    A flashcard candidate for review sessions.

    The question/answer content of a card is owned by the storage layer and is not needed for scheduling.

    Attributes:
        card_id: The id of the card.
        deck_id: The id of the deck the card belongs to.
        difficulty: The card's content difficulty label.
        scheduling: The card's current scheduling state.
    """

    card_id: str
    deck_id: str
    scheduling: SchedulingState
    difficulty: Difficulty = Difficulty.Intermediate

    def with_scheduling(self, scheduling: SchedulingState) -> Self:
        return replace(self, scheduling=scheduling)

    def to_dict(self) -> CardDict:
        """
        Returns a JSON-serializable dictionary representation of the Card object.

        Returns:
            A dictionary representation of the Card object.
        """

        return {
            "card_id": self.card_id,
            "deck_id": self.deck_id,
            "difficulty": self.difficulty.name,
            "scheduling": self.scheduling.to_dict(),
        }

    @classmethod
    def from_dict(cls, source_dict: CardDict) -> Self:
        """
        Creates a Card object from an existing dictionary.

        Args:
            source_dict: A dictionary representing an existing Card object.

        Returns:
            A Card object created from the provided dictionary.
        """

        return cls(
            card_id=str(source_dict["card_id"]),
            deck_id=str(source_dict["deck_id"]),
            difficulty=Difficulty.from_string(source_dict["difficulty"]),
            scheduling=SchedulingState.from_dict(source_dict["scheduling"]),
        )

    def to_json(self, indent: int | str | None = None) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_json(cls, source_json: str) -> Self:
        source_dict: CardDict = json.loads(source_json)
        return cls.from_dict(source_dict=source_dict)


# the candidate cards of one deck, in no particular order
DeckCardPool = Sequence[Card]


__all__ = ["Card", "DeckCardPool"]
