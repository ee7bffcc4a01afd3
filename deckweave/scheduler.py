"""
deckweave.scheduler
-------------------

This module defines the Scheduler class as well as the default constants used in its calculations.

Classes:
    Scheduler: The SM-2 family spaced-repetition scheduler.
"""

from __future__ import annotations
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TypedDict
import json
from typing_extensions import Self
from deckweave.card import Card
from deckweave.errors import InvalidRatingError
from deckweave.quiz_result import QuizResult
from deckweave.rating import Rating
from deckweave.scheduling_state import (
    DEFAULT_EASE_FACTOR,
    MIN_EASE_FACTOR,
    SchedulingState,
    ensure_utc,
)

# quality scores on the 0-5 scale of the SM-2 ease formula
DEFAULT_QUALITY_MAP: Mapping[Rating, int] = {
    Rating.Again: 0,
    Rating.Hard: 3,
    Rating.Good: 4,
    Rating.Easy: 5,
}
MAX_QUALITY = 5
DEFAULT_PASSING_QUALITY = 3
DEFAULT_MAXIMUM_EASE_FACTOR = 3.0

DEFAULT_FIRST_INTERVAL = 1
DEFAULT_SECOND_INTERVAL = 6
DEFAULT_MAXIMUM_INTERVAL = 36500


class SchedulerDict(TypedDict):
    """
    JSON-serializable dictionary representation of a Scheduler object.
    """

    quality_map: dict[str, int]
    passing_quality: int
    initial_ease_factor: float
    minimum_ease_factor: float
    maximum_ease_factor: float | None
    first_interval: int
    second_interval: int
    maximum_interval: int


@dataclass(init=False)
class Scheduler:
    """
    The spaced-repetition scheduler.

    Computes the next scheduling state of a card from its current state and a review rating, following
    the two-branch SM-2 update: a lapse resets the streak, a pass grows the interval by the ease factor.

    Attributes:
        quality_map: The quality score (0-5) each rating is mapped to.
        passing_quality: The lowest quality score that counts as a successful recall.
        initial_ease_factor: The ease factor of newly enrolled cards.
        minimum_ease_factor: The ease factor never drops below this value.
        maximum_ease_factor: The ease factor never rises above this value, or None for no cap.
        first_interval: Days until the next review after a first pass, and after a lapse.
        second_interval: Days until the next review after a second consecutive pass.
        maximum_interval: The maximum number of days a card can be scheduled into the future.
    """

    quality_map: dict[Rating, int]
    passing_quality: int
    initial_ease_factor: float
    minimum_ease_factor: float
    maximum_ease_factor: float | None
    first_interval: int
    second_interval: int
    maximum_interval: int

    def __init__(
        self,
        quality_map: Mapping[Rating, int] = DEFAULT_QUALITY_MAP,
        passing_quality: int = DEFAULT_PASSING_QUALITY,
        initial_ease_factor: float = DEFAULT_EASE_FACTOR,
        minimum_ease_factor: float = MIN_EASE_FACTOR,
        maximum_ease_factor: float | None = DEFAULT_MAXIMUM_EASE_FACTOR,
        first_interval: int = DEFAULT_FIRST_INTERVAL,
        second_interval: int = DEFAULT_SECOND_INTERVAL,
        maximum_interval: int = DEFAULT_MAXIMUM_INTERVAL,
    ) -> None:
        self.quality_map = {Rating(rating): quality for rating, quality in quality_map.items()}
        self.passing_quality = passing_quality
        self.initial_ease_factor = initial_ease_factor
        self.minimum_ease_factor = minimum_ease_factor
        self.maximum_ease_factor = maximum_ease_factor
        self.first_interval = first_interval
        self.second_interval = second_interval
        self.maximum_interval = maximum_interval

        self._validate()

    def _validate(self) -> None:
        error_messages = []

        missing = [rating.name for rating in Rating if rating not in self.quality_map]
        if missing:
            error_messages.append(f"quality_map is missing ratings: {', '.join(missing)}")
        else:
            for rating, quality in self.quality_map.items():
                if not 0 <= quality <= MAX_QUALITY:
                    error_messages.append(
                        f"quality_map[{rating.name}] = {quality} is out of bounds: (0, {MAX_QUALITY})"
                    )

            qualities = [self.quality_map[rating] for rating in Rating]
            if qualities != sorted(qualities):
                error_messages.append("quality_map must not decrease from Again to Easy")

            if self.quality_map[Rating.Again] >= self.passing_quality:
                error_messages.append("quality_map[Again] must be below passing_quality")

        if not 0 < self.passing_quality <= MAX_QUALITY:
            error_messages.append(
                f"passing_quality = {self.passing_quality} is out of bounds: (1, {MAX_QUALITY})"
            )

        if self.minimum_ease_factor < MIN_EASE_FACTOR:
            error_messages.append(
                f"minimum_ease_factor = {self.minimum_ease_factor} is below {MIN_EASE_FACTOR}"
            )
        if self.initial_ease_factor < self.minimum_ease_factor:
            error_messages.append(
                f"initial_ease_factor = {self.initial_ease_factor} is below minimum_ease_factor"
            )
        if (
            self.maximum_ease_factor is not None
            and self.maximum_ease_factor < self.initial_ease_factor
        ):
            error_messages.append(
                f"maximum_ease_factor = {self.maximum_ease_factor} is below initial_ease_factor"
            )

        if self.first_interval < 1:
            error_messages.append(f"first_interval = {self.first_interval} must be at least 1")
        if self.second_interval < self.first_interval:
            error_messages.append(
                f"second_interval = {self.second_interval} is shorter than first_interval"
            )
        if self.maximum_interval < self.second_interval:
            error_messages.append(
                f"maximum_interval = {self.maximum_interval} is shorter than second_interval"
            )

        if len(error_messages) > 0:
            raise ValueError(
                "One or more scheduler settings are invalid:\n"
                + "\n".join(error_messages)
            )

    def quality(self, rating: Rating) -> int:
        """
        Maps a rating to its quality score.

        Raises:
            InvalidRatingError: If the rating is not a Rating.
        """

        if not isinstance(rating, Rating):
            raise InvalidRatingError(rating)

        return self.quality_map[rating]

    def is_passing(self, rating: Rating) -> bool:
        """
        Whether the rating counts as a successful recall. Again never does.
        """

        return self.quality(rating) >= self.passing_quality

    def new_state(self, enrolled_at: datetime) -> SchedulingState:
        """
        Creates the scheduling state of a newly enrolled card, due immediately.
        """

        return SchedulingState.new(
            enrolled_at=enrolled_at, ease_factor=self.initial_ease_factor
        )

    def advance(
        self, state: SchedulingState, rating: Rating, now: datetime
    ) -> SchedulingState:
        """
        Computes a card's scheduling state after a review.

        The computation is a pure function of its arguments: calling it twice with the same
        arguments gives equal results, and the given state is left untouched.

        Args:
            state: The card's scheduling state before the review.
            rating: The rating given during the review.
            now: The date and time of the review.

        Returns:
            SchedulingState: The card's scheduling state after the review.

        Raises:
            InvalidRatingError: If the rating is not a Rating.
            ValueError: If `now` is not timezone-aware.
        """

        quality = self.quality(rating)
        now = ensure_utc(now)

        ease_factor = self._next_ease_factor(
            ease_factor=state.ease_factor, quality=quality
        )

        if quality < self.passing_quality:
            # lapse
            repetitions = 0
            interval_days = self.first_interval

        else:
            repetitions = state.repetitions + 1

            if repetitions == 1:
                interval_days = self.first_interval
            elif repetitions == 2:
                interval_days = self.second_interval
            else:
                interval_days = max(
                    round(state.interval_days * ease_factor),
                    state.interval_days + 1,
                )

        interval_days = min(interval_days, self.maximum_interval)

        return SchedulingState(
            ease_factor=ease_factor,
            interval_days=interval_days,
            repetitions=repetitions,
            next_review_date=now + timedelta(days=interval_days),
            last_review_date=now,
        )

    def reschedule(
        self,
        card: Card,
        results: Iterable[QuizResult],
        enrolled_at: datetime | None = None,
    ) -> Card:
        """
        Recomputes a card's scheduling state by replaying its recorded results with this scheduler.

        Useful after changing the scheduler's settings, e.g. making Hard count as a lapse.

        The replay starts from a fresh state enrolled at `enrolled_at`. Without it, a card that was never
        reviewed keeps its own next review date (its enrollment date), and a reviewed card is enrolled at
        its last review date, so that with no results it is due again right away.

        Args:
            card: The card to be rescheduled.
            results: The card's recorded quiz results (order doesn't matter).
            enrolled_at: The date and time the card was enrolled, if known.

        Returns:
            Card: A copy of the card carrying the replayed scheduling state.

        Raises:
            ValueError: If any of the results belongs to a card other than the one specified.
        """

        results = list(results)
        for result in results:
            if result.card_id != card.card_id:
                raise ValueError(
                    f"QuizResult card_id {result.card_id} does not match Card card_id {card.card_id}"
                )

        results.sort(key=lambda result: result.answered_at)

        if enrolled_at is None:
            if card.scheduling.last_review_date is None:
                enrolled_at = card.scheduling.next_review_date
            else:
                enrolled_at = card.scheduling.last_review_date

        state = self.new_state(enrolled_at=enrolled_at)

        for result in results:
            state = self.advance(state, result.rating, result.answered_at)

        return card.with_scheduling(state)

    def to_dict(self) -> SchedulerDict:
        """
        Returns a dictionary representation of the Scheduler object.

        Returns:
            SchedulerDict: A dictionary representation of the Scheduler object.
        """

        return {
            "quality_map": {
                rating.name: quality for rating, quality in self.quality_map.items()
            },
            "passing_quality": self.passing_quality,
            "initial_ease_factor": self.initial_ease_factor,
            "minimum_ease_factor": self.minimum_ease_factor,
            "maximum_ease_factor": self.maximum_ease_factor,
            "first_interval": self.first_interval,
            "second_interval": self.second_interval,
            "maximum_interval": self.maximum_interval,
        }

    @classmethod
    def from_dict(cls, source_dict: SchedulerDict) -> Self:
        """
        Creates a Scheduler object from an existing dictionary.

        Args:
            source_dict: A dictionary representing an existing Scheduler object.

        Returns:
            Self: A Scheduler object created from the provided dictionary.
        """

        return cls(
            quality_map={
                Rating[name]: int(quality)
                for name, quality in source_dict["quality_map"].items()
            },
            passing_quality=source_dict["passing_quality"],
            initial_ease_factor=source_dict["initial_ease_factor"],
            minimum_ease_factor=source_dict["minimum_ease_factor"],
            maximum_ease_factor=source_dict["maximum_ease_factor"],
            first_interval=source_dict["first_interval"],
            second_interval=source_dict["second_interval"],
            maximum_interval=source_dict["maximum_interval"],
        )

    def to_json(self, indent: int | str | None = None) -> str:
        """
        Returns a JSON-serialized string of the Scheduler object.

        Args:
            indent: Equivalent argument to the indent in json.dumps()

        Returns:
            str: A JSON-serialized string of the Scheduler object.
        """

        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_json(cls, source_json: str) -> Self:
        """
        Creates a Scheduler object from a JSON-serialized string.

        Args:
            source_json: A JSON-serialized string of an existing Scheduler object.

        Returns:
            Self: A Scheduler object created from the JSON string.
        """

        source_dict: SchedulerDict = json.loads(source_json)
        return cls.from_dict(source_dict=source_dict)

    def _next_ease_factor(self, *, ease_factor: float, quality: int) -> float:
        delta = 0.1 - (MAX_QUALITY - quality) * (
            0.08 + (MAX_QUALITY - quality) * 0.02
        )

        next_ease_factor = max(ease_factor + delta, self.minimum_ease_factor)

        if self.maximum_ease_factor is not None:
            next_ease_factor = min(next_ease_factor, self.maximum_ease_factor)

        return next_ease_factor


__all__ = ["Scheduler", "DEFAULT_QUALITY_MAP"]
