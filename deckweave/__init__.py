"""
deckweave
---------

Deckweave schedules flashcard reviews with an SM-2 family spaced-repetition scheduler and builds review sessions that interleave cards from several decks.
"""

from deckweave.rating import Rating
from deckweave.difficulty import Difficulty
from deckweave.scheduling_state import SchedulingState
from deckweave.card import Card
from deckweave.scheduler import Scheduler
from deckweave.selector import (
    RetentionStats,
    retention_stats,
    select_due,
    select_due_cards,
    select_new_cards,
)
from deckweave.session import QuizSession, SessionSlot, SessionStatus
from deckweave.quiz_result import QuizResult
from deckweave.builder import SessionBuilder
from deckweave.recorder import QuizResultRecorder, SessionStats, summarize_results
from deckweave.store import InMemoryStore, commit_review
from deckweave.errors import (
    DeckweaveError,
    EmptySessionError,
    OutOfSequenceError,
    SessionCompletedError,
    SessionExpiredError,
    InvalidRatingError,
    ConcurrencyConflictError,
)

__all__ = [
    "Rating",
    "Difficulty",
    "SchedulingState",
    "Card",
    "Scheduler",
    "select_due",
    "select_due_cards",
    "select_new_cards",
    "RetentionStats",
    "retention_stats",
    "QuizSession",
    "SessionSlot",
    "SessionStatus",
    "QuizResult",
    "SessionBuilder",
    "QuizResultRecorder",
    "SessionStats",
    "summarize_results",
    "InMemoryStore",
    "commit_review",
    "DeckweaveError",
    "EmptySessionError",
    "OutOfSequenceError",
    "SessionCompletedError",
    "SessionExpiredError",
    "InvalidRatingError",
    "ConcurrencyConflictError",
]
