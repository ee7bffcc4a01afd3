"""
deckweave.scheduling_state
--------------------------

This module defines the SchedulingState class.

Classes:
    SchedulingState: The immutable spaced-repetition state of a single card.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TypedDict
import json
from typing_extensions import Self

DEFAULT_EASE_FACTOR = 2.5
MIN_EASE_FACTOR = 1.3


def ensure_utc(value: datetime) -> datetime:
    """
    Returns the given datetime expressed in UTC.

    Raises:
        ValueError: If the datetime is not timezone-aware.
    """

    if value.tzinfo is None:
        raise ValueError("datetime must be timezone-aware")
    if value.tzinfo != timezone.utc:
        value = value.astimezone(timezone.utc)
    return value


class SchedulingStateDict(TypedDict):
    """
    JSON-serializable dictionary representation of a SchedulingState object.
    """

    ease_factor: float
    interval_days: int
    repetitions: int
    next_review_date: str
    last_review_date: str | None


@dataclass(frozen=True)
class SchedulingState:
    """
    The spaced-repetition state of a single card.

    Instances are immutable; a new state is produced by Scheduler.advance for every review.

    Attributes:
        ease_factor: Multiplier controlling how fast the card's interval grows. Never below 1.3.
        interval_days: Days between the last review and the next one. 0 if the card was never reviewed.
        repetitions: Consecutive passing reviews since the last lapse.
        next_review_date: When the card is due next. The enrollment date for a card that was never reviewed.
        last_review_date: When the card was last reviewed, or None if it never was.
    """

    ease_factor: float
    interval_days: int
    repetitions: int
    next_review_date: datetime
    last_review_date: datetime | None = None

    def __post_init__(self) -> None:
        error_messages = []

        if self.ease_factor < MIN_EASE_FACTOR:
            error_messages.append(
                f"ease_factor = {self.ease_factor} is below the minimum of {MIN_EASE_FACTOR}"
            )
        if self.interval_days < 0:
            error_messages.append(f"interval_days = {self.interval_days} is negative")
        if self.repetitions < 0:
            error_messages.append(f"repetitions = {self.repetitions} is negative")

        if len(error_messages) > 0:
            raise ValueError(
                "Invalid scheduling state:\n" + "\n".join(error_messages)
            )

        # frozen dataclass, so normalize through object.__setattr__
        object.__setattr__(self, "next_review_date", ensure_utc(self.next_review_date))
        if self.last_review_date is not None:
            object.__setattr__(
                self, "last_review_date", ensure_utc(self.last_review_date)
            )

    @classmethod
    def new(
        cls, enrolled_at: datetime, ease_factor: float = DEFAULT_EASE_FACTOR
    ) -> Self:
        """
        Creates the state of a card that has never been reviewed.

        Args:
            enrolled_at: When the card was added; a new card is due from this moment.
            ease_factor: The starting ease factor.

        Returns:
            A SchedulingState with no review history.
        """

        return cls(
            ease_factor=ease_factor,
            interval_days=0,
            repetitions=0,
            next_review_date=enrolled_at,
            last_review_date=None,
        )

    @property
    def is_new(self) -> bool:
        return self.last_review_date is None

    def is_due(self, now: datetime) -> bool:
        """
        Whether the card should be reviewed at the given time.

        A card is due once its next review date has arrived, and a card that was never reviewed is always due.
        """

        return self.last_review_date is None or self.next_review_date <= ensure_utc(now)

    def to_dict(self) -> SchedulingStateDict:
        """
        Returns a JSON-serializable dictionary representation of the SchedulingState object.

        This method is specifically useful for storing SchedulingState objects in a database.

        Returns:
            A dictionary representation of the SchedulingState object.
        """

        return {
            "ease_factor": self.ease_factor,
            "interval_days": self.interval_days,
            "repetitions": self.repetitions,
            "next_review_date": self.next_review_date.isoformat(),
            "last_review_date": (
                self.last_review_date.isoformat() if self.last_review_date else None
            ),
        }

    @classmethod
    def from_dict(cls, source_dict: SchedulingStateDict) -> Self:
        """
        Creates a SchedulingState object from an existing dictionary.

        Args:
            source_dict: A dictionary representing an existing SchedulingState object.

        Returns:
            A SchedulingState object created from the provided dictionary.
        """

        return cls(
            ease_factor=float(source_dict["ease_factor"]),
            interval_days=int(source_dict["interval_days"]),
            repetitions=int(source_dict["repetitions"]),
            next_review_date=datetime.fromisoformat(source_dict["next_review_date"]),
            last_review_date=(
                datetime.fromisoformat(source_dict["last_review_date"])
                if source_dict["last_review_date"]
                else None
            ),
        )

    def to_json(self, indent: int | str | None = None) -> str:
        """
        Returns a JSON-serialized string of the SchedulingState object.

        Args:
            indent: Equivalent argument to the indent in json.dumps()

        Returns:
            str: A JSON-serialized string of the SchedulingState object.
        """

        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_json(cls, source_json: str) -> Self:
        """
        Creates a SchedulingState object from a JSON-serialized string.

        Args:
            source_json: A JSON-serialized string of an existing SchedulingState object.

        Returns:
            Self: A SchedulingState object created from the JSON string.
        """

        source_dict: SchedulingStateDict = json.loads(source_json)
        return cls.from_dict(source_dict=source_dict)


__all__ = ["SchedulingState", "ensure_utc"]
