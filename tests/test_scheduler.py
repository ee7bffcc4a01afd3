from deckweave import (
    Card,
    InvalidRatingError,
    QuizResult,
    Rating,
    Scheduler,
    SchedulingState,
)
from deckweave.scheduler import DEFAULT_QUALITY_MAP

from datetime import datetime, timedelta, timezone
import json
import pytest
from copy import deepcopy
import re

DAY_0 = datetime(2024, 3, 1, 9, 0, 0, 0, timezone.utc)


def reviewed_state(
    repetitions: int, interval_days: int, ease_factor: float = 2.5
) -> SchedulingState:
    last_review = DAY_0 - timedelta(days=interval_days)
    return SchedulingState(
        ease_factor=ease_factor,
        interval_days=interval_days,
        repetitions=repetitions,
        next_review_date=DAY_0,
        last_review_date=last_review,
    )


class TestScheduler:
    def test_new_card_review_sequence(self):
        scheduler = Scheduler()
        state = scheduler.new_state(enrolled_at=DAY_0)

        assert state.ease_factor == 2.5
        assert state.interval_days == 0
        assert state.repetitions == 0
        assert state.last_review_date is None

        state = scheduler.advance(state, Rating.Good, DAY_0)
        assert state.interval_days == 1
        assert state.repetitions == 1
        assert state.last_review_date == DAY_0
        assert state.next_review_date == DAY_0 + timedelta(days=1)

        day_1 = DAY_0 + timedelta(days=1)
        state = scheduler.advance(state, Rating.Good, day_1)
        assert state.interval_days == 6
        assert state.repetitions == 2
        assert state.next_review_date == day_1 + timedelta(days=6)

        day_7 = DAY_0 + timedelta(days=7)
        state = scheduler.advance(state, Rating.Again, day_7)
        assert state.interval_days == 1
        assert state.repetitions == 0
        assert state.ease_factor == pytest.approx(1.7)
        assert 1.3 <= state.ease_factor < 2.5
        assert state.next_review_date == day_7 + timedelta(days=1)

    def test_repeated_good_reviews_increase_spacing(self):
        scheduler = Scheduler()
        state = scheduler.new_state(enrolled_at=DAY_0)
        review_datetime = DAY_0

        ivl_history = []
        for _ in range(6):
            state = scheduler.advance(state, Rating.Good, review_datetime)
            ivl_history.append(state.interval_days)
            review_datetime = state.next_review_date

        assert ivl_history[:3] == [1, 6, 15]
        assert all(
            later > earlier for earlier, later in zip(ivl_history, ivl_history[1:])
        )

    def test_ease_factor_lower_bound(self):
        scheduler = Scheduler()
        state = scheduler.new_state(enrolled_at=DAY_0)

        for rating in (Rating.Again, Rating.Hard, Rating.Again, Rating.Hard) * 25:
            state = scheduler.advance(state, rating, state.next_review_date)
            assert state.ease_factor >= 1.3

        assert state.ease_factor == pytest.approx(1.3)

    def test_lapse_resets_streak(self):
        scheduler = Scheduler()

        for repetitions, interval_days in ((1, 1), (2, 6), (5, 40)):
            state = reviewed_state(repetitions=repetitions, interval_days=interval_days)
            lapsed = scheduler.advance(state, Rating.Again, DAY_0)

            assert lapsed.repetitions == 0
            assert lapsed.interval_days == 1

    def test_ease_adjustments(self):
        scheduler = Scheduler()
        state = reviewed_state(repetitions=3, interval_days=10)

        assert scheduler.advance(state, Rating.Again, DAY_0).ease_factor == pytest.approx(1.7)
        assert scheduler.advance(state, Rating.Hard, DAY_0).ease_factor == pytest.approx(2.36)
        assert scheduler.advance(state, Rating.Good, DAY_0).ease_factor == pytest.approx(2.5)
        assert scheduler.advance(state, Rating.Easy, DAY_0).ease_factor == pytest.approx(2.6)

    def test_hard_is_a_pass_by_default(self):
        scheduler = Scheduler()
        state = reviewed_state(repetitions=1, interval_days=1)

        state = scheduler.advance(state, Rating.Hard, DAY_0)

        assert state.repetitions == 2
        assert state.interval_days == 6
        assert scheduler.is_passing(Rating.Hard)
        assert not scheduler.is_passing(Rating.Again)

    def test_hard_as_lapse(self):
        quality_map = dict(DEFAULT_QUALITY_MAP)
        quality_map[Rating.Hard] = 2
        scheduler = Scheduler(quality_map=quality_map)

        state = reviewed_state(repetitions=4, interval_days=20)
        state = scheduler.advance(state, Rating.Hard, DAY_0)

        assert state.repetitions == 0
        assert state.interval_days == 1
        assert state.ease_factor == pytest.approx(2.18)
        assert not scheduler.is_passing(Rating.Hard)

    def test_interval_grows_by_at_least_one_day(self):
        scheduler = Scheduler()

        # round(1 * 1.3) would keep the interval at 1 day
        state = reviewed_state(repetitions=2, interval_days=1, ease_factor=1.3)
        state = scheduler.advance(state, Rating.Good, DAY_0)

        assert state.interval_days == 2
        assert state.repetitions == 3

    def test_maximum_interval(self):
        scheduler = Scheduler(maximum_interval=10)

        state = reviewed_state(repetitions=2, interval_days=6)
        state = scheduler.advance(state, Rating.Easy, DAY_0)

        assert state.interval_days == 10
        assert state.next_review_date == DAY_0 + timedelta(days=10)

    def test_maximum_ease_factor(self):
        scheduler = Scheduler(maximum_ease_factor=2.5)

        state = reviewed_state(repetitions=3, interval_days=10)
        state = scheduler.advance(state, Rating.Easy, DAY_0)

        assert state.ease_factor == 2.5

    def test_ease_factor_is_capped_by_default(self):
        state = reviewed_state(repetitions=3, interval_days=10, ease_factor=2.95)

        assert Scheduler().maximum_ease_factor == 3.0
        assert Scheduler().advance(state, Rating.Easy, DAY_0).ease_factor == 3.0

        uncapped = Scheduler(maximum_ease_factor=None)
        assert uncapped.advance(state, Rating.Easy, DAY_0).ease_factor == pytest.approx(3.05)

    def test_advance_is_idempotent(self):
        scheduler = Scheduler()
        state = reviewed_state(repetitions=3, interval_days=15, ease_factor=2.1)
        state_copy = deepcopy(state)

        for rating in Rating:
            first = scheduler.advance(state, rating, DAY_0)
            second = scheduler.advance(state, rating, DAY_0)

            assert first == second
            assert state == state_copy

    def test_invalid_rating(self):
        scheduler = Scheduler()
        state = scheduler.new_state(enrolled_at=DAY_0)

        with pytest.raises(InvalidRatingError):
            scheduler.advance(state, 3, DAY_0)

        with pytest.raises(ValueError):
            scheduler.advance(state, "Good", DAY_0)

    def test_datetime(self):
        scheduler = Scheduler()
        state = scheduler.new_state(enrolled_at=DAY_0)

        # naive datetimes are rejected
        with pytest.raises(ValueError):
            scheduler.advance(state, Rating.Good, datetime(2024, 3, 1, 9, 0, 0))

        # aware datetimes are converted to UTC
        cest = timezone(timedelta(hours=2))
        review_datetime = datetime(2024, 3, 1, 11, 0, 0, 0, cest)
        state = scheduler.advance(state, Rating.Good, review_datetime)

        assert state.last_review_date.tzinfo == timezone.utc
        assert state.last_review_date == DAY_0
        assert state.next_review_date.tzinfo == timezone.utc

    def test_scheduler_setting_validation(self):
        assert type(Scheduler()) is Scheduler

        with pytest.raises(ValueError):
            Scheduler(quality_map={Rating.Again: 0, Rating.Good: 4, Rating.Easy: 5})

        with pytest.raises(ValueError):
            Scheduler(
                quality_map={Rating.Again: 3, Rating.Hard: 3, Rating.Good: 4, Rating.Easy: 5}
            )

        with pytest.raises(ValueError):
            Scheduler(
                quality_map={Rating.Again: 0, Rating.Hard: 5, Rating.Good: 4, Rating.Easy: 5}
            )

        with pytest.raises(ValueError):
            Scheduler(
                quality_map={Rating.Again: 0, Rating.Hard: 3, Rating.Good: 4, Rating.Easy: 6}
            )

        with pytest.raises(ValueError):
            Scheduler(minimum_ease_factor=1.0)

        with pytest.raises(ValueError):
            Scheduler(initial_ease_factor=1.2)

        with pytest.raises(ValueError):
            Scheduler(first_interval=0)

        with pytest.raises(ValueError):
            Scheduler(second_interval=6, maximum_interval=5)

    def test_scheduling_state_validation(self):
        with pytest.raises(ValueError):
            reviewed_state(repetitions=1, interval_days=1, ease_factor=1.2)

        with pytest.raises(ValueError):
            reviewed_state(repetitions=-1, interval_days=1)

    def test_is_due(self):
        state = SchedulingState.new(enrolled_at=DAY_0 + timedelta(days=5))

        # never reviewed cards are due regardless of their enrollment date
        assert state.is_due(DAY_0)

        state = Scheduler().advance(state, Rating.Good, DAY_0)

        assert not state.is_due(DAY_0)
        assert state.is_due(DAY_0 + timedelta(days=1))
        assert state.is_due(DAY_0 + timedelta(days=2))

    def test_reschedule(self):
        scheduler = Scheduler()
        card = Card(
            card_id="card-1",
            deck_id="deck-1",
            scheduling=scheduler.new_state(enrolled_at=DAY_0),
        )

        ratings = (Rating.Good, Rating.Hard, Rating.Good, Rating.Again, Rating.Good)
        results = []
        reviewed_card = card
        for index, rating in enumerate(ratings):
            answered_at = DAY_0 + timedelta(days=index * 3)
            reviewed_card = reviewed_card.with_scheduling(
                scheduler.advance(reviewed_card.scheduling, rating, answered_at)
            )
            results.append(
                QuizResult(
                    result_id=f"result-{index}",
                    session_id="session-1",
                    card_id=card.card_id,
                    deck_id=card.deck_id,
                    rating=rating,
                    is_correct=scheduler.is_passing(rating),
                    answered_at=answered_at,
                )
            )

        # replay order does not depend on the order of the results
        rescheduled_card = scheduler.reschedule(card, reversed(results))
        assert rescheduled_card == reviewed_card

        quality_map = dict(DEFAULT_QUALITY_MAP)
        quality_map[Rating.Hard] = 2
        hard_lapse_scheduler = Scheduler(quality_map=quality_map)

        rescheduled_card = hard_lapse_scheduler.reschedule(card, results)
        assert rescheduled_card.card_id == card.card_id
        assert rescheduled_card.scheduling != reviewed_card.scheduling

    def test_reschedule_wrong_results(self):
        scheduler = Scheduler()
        card = Card(
            card_id="card-1",
            deck_id="deck-1",
            scheduling=scheduler.new_state(enrolled_at=DAY_0),
        )
        result = QuizResult(
            result_id="result-1",
            session_id="session-1",
            card_id="card-2",
            deck_id="deck-1",
            rating=Rating.Good,
            is_correct=True,
            answered_at=DAY_0,
        )

        EXPECTED_ERROR_MESSAGE = (
            "QuizResult card_id card-2 does not match Card card_id card-1"
        )
        with pytest.raises(ValueError, match=re.escape(EXPECTED_ERROR_MESSAGE)):
            scheduler.reschedule(card, [result])

    def test_reschedule_enrollment_date(self):
        scheduler = Scheduler()
        enrolled_at = datetime(2024, 2, 9, 9, 0, 0, 0, timezone.utc)
        reviewed_at = datetime(2024, 2, 19, 9, 0, 0, 0, timezone.utc)
        card = Card(
            card_id="card-1",
            deck_id="deck-1",
            scheduling=scheduler.new_state(enrolled_at=enrolled_at),
        )

        # a never reviewed card keeps its enrollment date
        assert scheduler.reschedule(card, []) == card

        card = card.with_scheduling(
            scheduler.advance(card.scheduling, Rating.Good, reviewed_at)
        )

        rescheduled_card = scheduler.reschedule(card, [], enrolled_at=enrolled_at)
        assert rescheduled_card.scheduling == scheduler.new_state(enrolled_at=enrolled_at)
        assert rescheduled_card.scheduling.next_review_date == enrolled_at

        # without an enrollment date a reviewed card is due again from its last review
        rescheduled_card = scheduler.reschedule(card, [])
        assert rescheduled_card.scheduling.repetitions == 0
        assert rescheduled_card.scheduling.last_review_date is None
        assert rescheduled_card.scheduling.next_review_date == reviewed_at


    def test_Scheduler_serialize(self):
        scheduler = Scheduler(
            passing_quality=4, maximum_ease_factor=3.0, maximum_interval=365
        )

        scheduler_dict = scheduler.to_dict()
        assert type(json.dumps(scheduler_dict)) is str
        assert Scheduler.from_dict(scheduler_dict) == scheduler

        copied_scheduler = Scheduler.from_json(scheduler.to_json())
        assert copied_scheduler == scheduler
        assert copied_scheduler != Scheduler()

    def test_SchedulingState_serialize(self):
        scheduler = Scheduler()
        state = scheduler.new_state(enrolled_at=DAY_0)

        # state objects are not naturally JSON serializable
        with pytest.raises(TypeError):
            json.dumps(state.__dict__)

        assert SchedulingState.from_json(state.to_json()) == state

        reviewed = scheduler.advance(state, Rating.Good, DAY_0)
        assert SchedulingState.from_dict(reviewed.to_dict()) == reviewed
        assert reviewed.to_dict() != state.to_dict()

    def test_class_repr(self):
        scheduler = Scheduler()

        assert str(scheduler) == repr(scheduler)

        state = scheduler.new_state(enrolled_at=DAY_0)

        assert str(state) == repr(state)
