"""
deckweave.quiz_result
---------------------

This module defines the QuizResult class.

Classes:
    QuizResult: The immutable record of one answered session slot.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from typing import TypedDict
import json
from typing_extensions import Self
from deckweave.rating import Rating
from deckweave.scheduling_state import ensure_utc


class QuizResultDict(TypedDict):
    """
    JSON-serializable dictionary representation of a QuizResult object.
    """

    result_id: str
    session_id: str
    card_id: str
    deck_id: str
    rating: int
    is_correct: bool
    answered_at: str
    review_duration: int | None


@dataclass(frozen=True)
class QuizResult:
    """
    Represents the answer given to one slot of a quiz session.

    Attributes:
        result_id: The id of the result.
        session_id: The id of the session the answer belongs to.
        card_id: The id of the card that was answered.
        deck_id: The id of the deck the card was drawn from.
        rating: The rating given to the card.
        is_correct: Whether the rating counts as a successful recall.
        answered_at: The date and time of the answer.
        review_duration: The number of milliseconds it took to answer or None if unspecified.
    """

    result_id: str
    session_id: str
    card_id: str
    deck_id: str
    rating: Rating
    is_correct: bool
    answered_at: datetime
    review_duration: int | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "answered_at", ensure_utc(self.answered_at))

    def to_dict(self) -> QuizResultDict:
        """
        Returns a JSON-serializable dictionary representation of the QuizResult object.

        Returns:
            A dictionary representation of the QuizResult object.
        """

        return {
            "result_id": self.result_id,
            "session_id": self.session_id,
            "card_id": self.card_id,
            "deck_id": self.deck_id,
            "rating": int(self.rating),
            "is_correct": self.is_correct,
            "answered_at": self.answered_at.isoformat(),
            "review_duration": self.review_duration,
        }

    @classmethod
    def from_dict(cls, source_dict: QuizResultDict) -> Self:
        """
        Creates a QuizResult object from an existing dictionary.

        Args:
            source_dict: A dictionary representing an existing QuizResult object.

        Returns:
            A QuizResult object created from the provided dictionary.
        """

        return cls(
            result_id=source_dict["result_id"],
            session_id=source_dict["session_id"],
            card_id=source_dict["card_id"],
            deck_id=source_dict["deck_id"],
            rating=Rating(int(source_dict["rating"])),
            is_correct=bool(source_dict["is_correct"]),
            answered_at=datetime.fromisoformat(source_dict["answered_at"]),
            review_duration=source_dict["review_duration"],
        )

    def to_json(self, indent: int | str | None = None) -> str:
        """
        Returns a JSON-serialized string of the QuizResult object.

        Args:
            indent: Equivalent argument to the indent in json.dumps()

        Returns:
            str: A JSON-serialized string of the QuizResult object.
        """

        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_json(cls, source_json: str) -> Self:
        """
        Creates a QuizResult object from a JSON-serialized string.

        Args:
            source_json: A JSON-serialized string of an existing QuizResult object.

        Returns:
            Self: A QuizResult object created from the JSON string.
        """

        source_dict: QuizResultDict = json.loads(source_json)
        return cls.from_dict(source_dict=source_dict)


__all__ = ["QuizResult"]
