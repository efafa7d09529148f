# backend/examprep/domain/review/ports.py

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Iterable, Protocol
from uuid import UUID

from .dto import SchedulingParams
from .entities import CardState, ReviewOutcome


@dataclass
class SpacedRepetitionCard:
    """
    One user's schedule for one exam question.
    (user_id, exam_id, question_index) is unique.
    """

    user_id: UUID
    exam_id: UUID
    question_index: int
    ease_factor: float
    interval: int
    repetitions: int
    next_review_date: datetime
    last_reviewed_at: datetime | None = None
    id: UUID = field(default_factory=uuid.uuid4)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def new(
            cls,
            *,
            user_id: UUID,
            exam_id: UUID,
            question_index: int,
            now: datetime,
            params: SchedulingParams | None = None,
    ) -> "SpacedRepetitionCard":
        initial = CardState.initial(params)
        return cls(
            user_id=user_id,
            exam_id=exam_id,
            question_index=question_index,
            ease_factor=initial.ease_factor,
            interval=initial.interval,
            repetitions=initial.repetitions,
            next_review_date=now,
            created_at=now,
            updated_at=now,
        )

    @property
    def key(self) -> tuple[UUID, UUID, int]:
        return (self.user_id, self.exam_id, self.question_index)

    @property
    def state(self) -> CardState:
        return CardState(
            ease_factor=self.ease_factor,
            interval=self.interval,
            repetitions=self.repetitions,
        )

    def with_outcome(self, outcome: ReviewOutcome) -> "SpacedRepetitionCard":
        return replace(
            self,
            ease_factor=outcome.ease_factor,
            interval=outcome.interval,
            repetitions=outcome.repetitions,
            last_reviewed_at=outcome.last_reviewed_at,
            next_review_date=outcome.next_review_date,
            updated_at=outcome.last_reviewed_at,
        )


class CardStore(Protocol):
    """Persistence port consumed by the review session."""

    def get(self, user_id: UUID, exam_id: UUID, question_index: int) -> SpacedRepetitionCard | None:
        ...

    def get_by_id(self, user_id: UUID, card_id: UUID) -> SpacedRepetitionCard | None:
        ...

    def list_cards(self, user_id: UUID) -> list[SpacedRepetitionCard]:
        ...

    def list_due(self, user_id: UUID, now: datetime) -> list[SpacedRepetitionCard]:
        ...

    def save(self, card: SpacedRepetitionCard) -> SpacedRepetitionCard:
        """Upsert keyed by (user_id, exam_id, question_index), last write wins."""
        ...

    def add_missing(
            self,
            user_id: UUID,
            exam_id: UUID,
            question_indexes: Iterable[int],
            now: datetime,
    ) -> int:
        ...

    def delete(self, user_id: UUID, card_id: UUID) -> bool:
        ...
