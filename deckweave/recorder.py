"""
deckweave.recorder
------------------

This module records graded answers of quiz sessions and feeds them back into scheduling.

Classes:
    QuizResultRecorder: Records one answer: advances the session and the answered card's scheduling state.
    SessionStats: Summary statistics of a set of quiz results.

Functions:
    result_id_for: The deterministic id of the result of a session slot.
    summarize_results: Computes SessionStats for a set of quiz results.
"""

from __future__ import annotations
from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from statistics import mean
import logging
import uuid
from deckweave.errors import (
    OutOfSequenceError,
    SessionCompletedError,
    SessionExpiredError,
)
from deckweave.quiz_result import QuizResult
from deckweave.rating import Rating
from deckweave.scheduler import Scheduler
from deckweave.scheduling_state import SchedulingState, ensure_utc
from deckweave.session import QuizSession, SessionStatus
from deckweave.store import DEFAULT_MAX_ATTEMPTS, ReviewStore, commit_review

logger = logging.getLogger(__name__)


def result_id_for(session_id: str, slot_index: int) -> str:
    """
    Returns the id of the result answering a session slot.

    The id only depends on the session and slot, so recomputing an answer after a write conflict gives the same id.
    """

    return str(uuid.uuid5(uuid.NAMESPACE_URL, f"deckweave:{session_id}/{slot_index}"))


class QuizResultRecorder:
    """
    Records graded answers of quiz sessions.

    Attributes:
        scheduler: The scheduler used to update the answered cards' scheduling states.
    """

    def __init__(self, scheduler: Scheduler | None = None) -> None:
        self.scheduler = scheduler if scheduler is not None else Scheduler()

    def check_answerable(
        self, session: QuizSession, slot_index: int, now: datetime
    ) -> None:
        """
        Checks that an answer for the given slot may be recorded at the given time.

        Raises:
            OutOfSequenceError: If `slot_index` is not the session's current index.
            SessionCompletedError: If every slot of the session has already been answered.
            SessionExpiredError: If the session's expiry has passed.
            ValueError: If the session has not been activated yet.
        """

        if slot_index != session.current_index:
            raise OutOfSequenceError(session.session_id, session.current_index, slot_index)

        if session.status == SessionStatus.Building:
            raise ValueError(f"Session {session.session_id} has not been activated")

        if session.status == SessionStatus.Completed or session.current_slot is None:
            raise SessionCompletedError(session.session_id)

        if session.is_expired(now):
            expired = session if session.status == SessionStatus.Expired else session.expire()
            raise SessionExpiredError(expired)

    def record_answer(
        self,
        session: QuizSession,
        slot_index: int,
        rating: Rating,
        now: datetime,
        state: SchedulingState,
        review_duration: int | None = None,
    ) -> tuple[QuizSession, QuizResult, SchedulingState]:
        """
        Records the answer to the session's current slot.

        Nothing is modified in place: the session, result and scheduling state after the answer are returned.
        When any error is raised no result is produced and no scheduling state is computed.

        Args:
            session: The session being answered.
            slot_index: The slot the answer is for. Must be the session's current index.
            rating: The rating given to the slot's card.
            now: The date and time of the answer.
            state: The current scheduling state of the slot's card.
            review_duration: The number of milliseconds it took to answer or None if unspecified.

        Returns:
            tuple[QuizSession, QuizResult, SchedulingState]: The advanced session, the new result and the
            card's updated scheduling state.

        Raises:
            InvalidRatingError: If the rating is not a Rating.
            OutOfSequenceError: If `slot_index` is not the session's current index.
            SessionCompletedError: If every slot of the session has already been answered.
            SessionExpiredError: If the session's expiry has passed.
        """

        now = ensure_utc(now)
        is_correct = self.scheduler.is_passing(rating)
        self.check_answerable(session, slot_index, now)

        slot = session.slots[slot_index]
        new_state = self.scheduler.advance(state, rating, now)

        result = QuizResult(
            result_id=result_id_for(session.session_id, slot_index),
            session_id=session.session_id,
            card_id=slot.card_id,
            deck_id=slot.deck_id,
            rating=rating,
            is_correct=is_correct,
            answered_at=now,
            review_duration=review_duration,
        )

        new_session = session.advance(result.result_id, now)

        logger.debug(
            "Recorded %s for card %s in session %s (%d of %d)",
            rating.name,
            slot.card_id,
            session.session_id,
            new_session.current_index,
            new_session.total_slots,
        )

        return new_session, result, new_state

    def commit_answer(
        self,
        store: ReviewStore,
        session_id: str,
        slot_index: int,
        rating: Rating,
        now: datetime,
        review_duration: int | None = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ) -> tuple[QuizSession, QuizResult, SchedulingState]:
        """
        Records an answer against a store.

        The card's scheduling state is written first under optimistic concurrency, recomputing the answer
        on every conflict, then the result and the advanced session are persisted. Every attempt re-reads the
        session, so a slot answered by a concurrent writer raises OutOfSequenceError instead of advancing the
        card a second time. An expired session is persisted in its Expired state before the error is raised.

        Raises:
            ConcurrencyConflictError: If the card's state kept changing concurrently.
            OutOfSequenceError, SessionCompletedError, SessionExpiredError: As for record_answer.
        """

        now = ensure_utc(now)
        session = store.load_session(session_id)

        try:
            self.check_answerable(session, slot_index, now)
        except SessionExpiredError as error:
            store.persist_session(error.session)
            raise

        recorded: list[tuple[QuizSession, QuizResult, SchedulingState]] = []

        def compute(state: SchedulingState) -> SchedulingState:
            # the slot may have been answered by a concurrent writer since the last read
            current = store.load_session(session_id)
            answer = self.record_answer(
                current, slot_index, rating, now, state, review_duration=review_duration
            )
            recorded.append(answer)
            return answer[2]

        commit_review(
            store,
            session.slots[slot_index].card_id,
            compute,
            max_attempts=max_attempts,
        )

        new_session, result, new_state = recorded[-1]
        store.persist_result(result)
        store.persist_session(new_session)

        return new_session, result, new_state


@dataclass(frozen=True)
class SessionStats:
    """
    Summary statistics of a set of quiz results.

    Attributes:
        total: The number of results.
        correct: The number of results counted as a successful recall.
        incorrect: The number of other results.
        accuracy_rate: The percentage of correct results, 0 when there are none.
        average_review_duration: The mean answer time in milliseconds over the results that have one, or None.
        rating_distribution: The number of results per rating name.
    """

    total: int = 0
    correct: int = 0
    incorrect: int = 0
    accuracy_rate: float = 0.0
    average_review_duration: float | None = None
    rating_distribution: dict[str, int] = field(default_factory=dict)


def summarize_results(results: Iterable[QuizResult]) -> SessionStats:
    results = list(results)

    if len(results) == 0:
        return SessionStats()

    correct = sum(1 for result in results if result.is_correct)
    durations = [
        result.review_duration
        for result in results
        if result.review_duration is not None
    ]

    return SessionStats(
        total=len(results),
        correct=correct,
        incorrect=len(results) - correct,
        accuracy_rate=correct / len(results) * 100.0,
        average_review_duration=mean(durations) if durations else None,
        rating_distribution=dict(Counter(result.rating.name for result in results)),
    )


__all__ = ["QuizResultRecorder", "SessionStats", "result_id_for", "summarize_results"]
