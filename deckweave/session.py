"""
deckweave.session
-----------------

This module defines the SessionStatus, SessionSlot and QuizSession classes.

Classes:
    SessionStatus: Enum representing the lifecycle state of a QuizSession.
    SessionSlot: One position of a built session.
    QuizSession: An ordered, deck-interleaved review session and its answering progress.
"""

from __future__ import annotations
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import IntEnum
from typing import TypedDict
import json
from typing_extensions import Self
from deckweave.difficulty import Difficulty
from deckweave.scheduling_state import ensure_utc


class SessionStatus(IntEnum):
    """
    Enum representing the lifecycle state of a QuizSession.

    Building -> Active -> Completed, with Expired reachable from Active.
    """

    Building = 1
    Active = 2
    Completed = 3
    Expired = 4


class SessionSlotDict(TypedDict):
    """
    JSON-serializable dictionary representation of a SessionSlot object.
    """

    card_id: str
    deck_id: str
    position: int


@dataclass(frozen=True)
class SessionSlot:
    """
    One position of a quiz session.

    Attributes:
        card_id: The id of the card shown at this position.
        deck_id: The id of the deck the card was drawn from.
        position: The 0-based position of the slot in its session.
    """

    card_id: str
    deck_id: str
    position: int

    def to_dict(self) -> SessionSlotDict:
        return {
            "card_id": self.card_id,
            "deck_id": self.deck_id,
            "position": self.position,
        }

    @classmethod
    def from_dict(cls, source_dict: SessionSlotDict) -> Self:
        return cls(
            card_id=source_dict["card_id"],
            deck_id=source_dict["deck_id"],
            position=int(source_dict["position"]),
        )


class QuizSessionDict(TypedDict):
    """
    JSON-serializable dictionary representation of a QuizSession object.
    """

    session_id: str
    deck_ids: list[str]
    difficulty: str | None
    slots: list[SessionSlotDict]
    per_deck_counts: dict[str, int]
    current_index: int
    results: list[str]
    status: int
    created_at: str | None
    expires_at: str | None
    completed_at: str | None


@dataclass(frozen=True)
class QuizSession:
    """
    A review session built from one or more decks.

    Instances are immutable; answering a slot produces an advanced copy of the session.

    Attributes:
        session_id: The id of the session.
        deck_ids: The decks the session was requested for, in request order.
        slots: The ordered slots of the session.
        per_deck_counts: The number of cards each requested deck contributed.
        difficulty: The difficulty filter the session was built with, or None.
        current_index: The position of the next slot to be answered.
        results: The ids of the results recorded so far, in answering order.
        status: The session's lifecycle state.
        created_at: When the session was built.
        expires_at: After this moment no more answers are accepted, or None if the session never expires.
        completed_at: When the last slot was answered, or None.
    """

    session_id: str
    deck_ids: tuple[str, ...]
    slots: tuple[SessionSlot, ...]
    per_deck_counts: Mapping[str, int] = field(default_factory=dict)
    difficulty: Difficulty | None = None
    current_index: int = 0
    results: tuple[str, ...] = ()
    status: SessionStatus = SessionStatus.Building
    created_at: datetime | None = None
    expires_at: datetime | None = None
    completed_at: datetime | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "deck_ids", tuple(self.deck_ids))
        object.__setattr__(self, "slots", tuple(self.slots))
        object.__setattr__(self, "per_deck_counts", dict(self.per_deck_counts))
        object.__setattr__(self, "results", tuple(self.results))
        for name in ("created_at", "expires_at", "completed_at"):
            value = getattr(self, name)
            if value is not None:
                object.__setattr__(self, name, ensure_utc(value))

        error_messages = []

        for index, slot in enumerate(self.slots):
            if slot.position != index:
                error_messages.append(
                    f"slots[{index}] has position {slot.position}, expected {index}"
                )

        if sum(self.per_deck_counts.values()) != len(self.slots):
            error_messages.append(
                f"per_deck_counts add up to {sum(self.per_deck_counts.values())}, "
                f"but there are {len(self.slots)} slots"
            )

        if not 0 <= self.current_index <= len(self.slots):
            error_messages.append(
                f"current_index = {self.current_index} is out of bounds: (0, {len(self.slots)})"
            )

        if len(self.results) != self.current_index:
            error_messages.append(
                f"{len(self.results)} results recorded, but current_index is {self.current_index}"
            )

        if len(error_messages) > 0:
            raise ValueError("Invalid quiz session:\n" + "\n".join(error_messages))

    @property
    def total_slots(self) -> int:
        return len(self.slots)

    @property
    def remaining(self) -> int:
        return len(self.slots) - self.current_index

    @property
    def current_slot(self) -> SessionSlot | None:
        if self.current_index >= len(self.slots):
            return None
        return self.slots[self.current_index]

    @property
    def is_terminal(self) -> bool:
        return self.status in (SessionStatus.Completed, SessionStatus.Expired)

    def is_expired(self, now: datetime) -> bool:
        """
        Whether the session's expiry has been reached at the given time.
        """

        return self.status == SessionStatus.Expired or (
            self.expires_at is not None and ensure_utc(now) >= self.expires_at
        )

    def activate(self) -> Self:
        """
        Returns a copy of a Building session, ready to be answered.

        Raises:
            ValueError: If the session is not in the Building state.
        """

        if self.status != SessionStatus.Building:
            raise ValueError(
                f"Only a Building session can be activated, session {self.session_id} is {self.status.name}"
            )

        return replace(self, status=SessionStatus.Active)

    def advance(self, result_id: str, now: datetime) -> Self:
        """
        Returns a copy of the session with its current slot answered by the given result.

        The copy is Completed once every slot has been answered.
        """

        current_index = self.current_index + 1
        completed = current_index == len(self.slots)

        return replace(
            self,
            current_index=current_index,
            results=self.results + (result_id,),
            status=SessionStatus.Completed if completed else self.status,
            completed_at=ensure_utc(now) if completed else None,
        )

    def expire(self) -> Self:
        return replace(self, status=SessionStatus.Expired)

    def to_dict(self) -> QuizSessionDict:
        """
        Returns a JSON-serializable dictionary representation of the QuizSession object.

        Returns:
            A dictionary representation of the QuizSession object.
        """

        return {
            "session_id": self.session_id,
            "deck_ids": list(self.deck_ids),
            "difficulty": self.difficulty.name if self.difficulty else None,
            "slots": [slot.to_dict() for slot in self.slots],
            "per_deck_counts": dict(self.per_deck_counts),
            "current_index": self.current_index,
            "results": list(self.results),
            "status": self.status.value,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "completed_at": (
                self.completed_at.isoformat() if self.completed_at else None
            ),
        }

    @classmethod
    def from_dict(cls, source_dict: QuizSessionDict) -> Self:
        """
        Creates a QuizSession object from an existing dictionary.

        Args:
            source_dict: A dictionary representing an existing QuizSession object.

        Returns:
            A QuizSession object created from the provided dictionary.
        """

        def _parse(value: str | None) -> datetime | None:
            return datetime.fromisoformat(value) if value else None

        return cls(
            session_id=source_dict["session_id"],
            deck_ids=tuple(source_dict["deck_ids"]),
            difficulty=(
                Difficulty.from_string(source_dict["difficulty"])
                if source_dict["difficulty"]
                else None
            ),
            slots=tuple(SessionSlot.from_dict(slot) for slot in source_dict["slots"]),
            per_deck_counts={
                deck_id: int(count)
                for deck_id, count in source_dict["per_deck_counts"].items()
            },
            current_index=int(source_dict["current_index"]),
            results=tuple(source_dict["results"]),
            status=SessionStatus(int(source_dict["status"])),
            created_at=_parse(source_dict["created_at"]),
            expires_at=_parse(source_dict["expires_at"]),
            completed_at=_parse(source_dict["completed_at"]),
        )

    def to_json(self, indent: int | str | None = None) -> str:
        """
        Returns a JSON-serialized string of the QuizSession object.

        Args:
            indent: Equivalent argument to the indent in json.dumps()

        Returns:
            str: A JSON-serialized string of the QuizSession object.
        """

        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_json(cls, source_json: str) -> Self:
        """
        Creates a QuizSession object from a JSON-serialized string.

        Args:
            source_json: A JSON-serialized string of an existing QuizSession object.

        Returns:
            Self: A QuizSession object created from the JSON string.
        """

        source_dict: QuizSessionDict = json.loads(source_json)
        return cls.from_dict(source_dict=source_dict)


__all__ = ["SessionStatus", "SessionSlot", "QuizSession"]
