# backend/examprep/domain/review/entities.py

from dataclasses import dataclass
from datetime import datetime

from .dto import SchedulingParams


@dataclass(frozen=True)
class CardState:
    """
    Memory-strength state of a card.
    Knows nothing about the database or the ORM.
    """

    ease_factor: float
    interval: int
    repetitions: int

    @classmethod
    def initial(cls, params: SchedulingParams | None = None) -> "CardState":
        params = params or SchedulingParams()
        return cls(ease_factor=params.initial_ease, interval=0, repetitions=0)

    def normalized(self, params: SchedulingParams | None = None) -> "CardState":
        params = params or SchedulingParams()
        ease = self.ease_factor if self.ease_factor is not None else params.initial_ease
        return CardState(
            ease_factor=max(params.minimum_ease, ease),
            interval=max(0, self.interval or 0),
            repetitions=max(0, self.repetitions or 0),
        )


@dataclass(frozen=True)
class ReviewOutcome:
    ease_factor: float
    interval: int
    repetitions: int
    last_reviewed_at: datetime
    next_review_date: datetime

    @property
    def state(self) -> CardState:
        return CardState(
            ease_factor=self.ease_factor,
            interval=self.interval,
            repetitions=self.repetitions,
        )
