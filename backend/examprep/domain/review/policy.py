# backend/examprep/domain/review/policy.py

from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal

from examprep.core.enums import ReviewRating

from .dto import SchedulingParams
from .entities import CardState, ReviewOutcome


def round_half_away(value: float, places: int = 0) -> Decimal:
    # repr() keeps 12.5 as 12.5 instead of its binary expansion
    exponent = Decimal(1).scaleb(-places)
    return Decimal(repr(value)).quantize(exponent, rounding=ROUND_HALF_UP)


class ReviewPolicy:
    """
    SM-2 family scheduler: card state + rating -> next state.
    Pure domain logic, the caller supplies `now`.
    """

    def __init__(self, params: SchedulingParams | None = None):
        self.params = params or SchedulingParams()
        self.ease_deltas = {
            ReviewRating.again: -self.params.again_penalty,
            ReviewRating.hard: -self.params.hard_penalty,
            ReviewRating.good: 0.0,
            ReviewRating.easy: self.params.easy_bonus,
        }

    def schedule_review(
            self,
            current_state: CardState | None,
            rating: ReviewRating | str,
            now: datetime,
    ) -> ReviewOutcome:
        rating = ReviewRating(rating)
        if now.tzinfo is None or now.utcoffset() is None:
            raise ValueError("now must be timezone-aware")

        p = self.params
        state = (current_state or CardState.initial(p)).normalized(p)

        if rating.is_success:
            repetitions = state.repetitions + 1
            interval = self._next_interval(state, repetitions)
        else:
            repetitions = 0
            interval = p.again_interval_days

        # an unchanged ease (good) is passed through as given, only
        # adjusted eases are rounded to 2 decimals
        delta = self.ease_deltas[rating]
        ease = max(p.minimum_ease, state.ease_factor + delta)
        if delta:
            ease = float(round_half_away(ease, 2))

        return ReviewOutcome(
            ease_factor=ease,
            interval=interval,
            repetitions=repetitions,
            last_reviewed_at=now,
            next_review_date=now + timedelta(days=interval),
        )

    def preview_reviews(
            self,
            current_state: CardState | None,
            now: datetime,
    ) -> dict[ReviewRating, ReviewOutcome]:
        return {
            rating: self.schedule_review(current_state, rating, now)
            for rating in ReviewRating
        }

    def _next_interval(self, state: CardState, repetitions: int) -> int:
        if repetitions == 1:
            return self.params.first_interval_days
        if repetitions == 2:
            return self.params.second_interval_days
        # growth uses the ease factor from before this review
        grown = int(round_half_away(state.interval * state.ease_factor))
        return min(self.params.maximum_interval_days, max(1, grown))


_default_policy = ReviewPolicy()


def schedule_review(
        current_state: CardState | None,
        rating: ReviewRating | str,
        now: datetime,
) -> ReviewOutcome:
    return _default_policy.schedule_review(current_state, rating, now)


def format_interval(days: int) -> str:
    """Short label shown next to a grade button, e.g. "6d" or "2mo"."""
    if days <= 0:
        return "now"
    if days < 30:
        return f"{days}d"
    if days < 365:
        return f"{int(round_half_away(days / 30))}mo"
    return f"{int(round_half_away(days / 365))}y"
