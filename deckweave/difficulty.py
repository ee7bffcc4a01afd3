from __future__ import annotations
from enum import IntEnum


class Difficulty(IntEnum):
    """
    Enum representing the difficulty label attached to a card's content.
    """

    Beginner = 1
    Intermediate = 2
    Advanced = 3
    Expert = 4

    @classmethod
    def from_string(cls, name: str) -> Difficulty:
        """
        Looks up a Difficulty by its case-insensitive name, e.g. "advanced".

        Raises:
            ValueError: If the name is not one of the four difficulty levels.
        """

        for difficulty in cls:
            if difficulty.name.lower() == name.strip().lower():
                return difficulty

        raise ValueError(f"Invalid difficulty level: {name}")

    @classmethod
    def coerce(cls, value: Difficulty | str | None) -> Difficulty | None:
        if value is None or isinstance(value, Difficulty):
            return value
        return cls.from_string(value)


__all__ = ["Difficulty"]
