import logging
from dataclasses import dataclass
from datetime import datetime, time, timezone
from typing import Iterable
from uuid import UUID

from examprep.core.enums import ReviewRating
from examprep.core.errors import CardNotFoundError
from examprep.domain.review.dto import SchedulingParams
from examprep.domain.review.due_set import DueItem, select_due
from examprep.domain.review.entities import ReviewOutcome
from examprep.domain.review.policy import ReviewPolicy
from examprep.domain.review.ports import CardStore, SpacedRepetitionCard

logger = logging.getLogger(__name__)

LEARNED_REPETITIONS = 3


@dataclass(frozen=True)
class CardStats:
    due_today: int
    learned: int
    total_cards: int


class ReviewSession:
    """
    Feeds user ratings into the scheduler and persists the result.
    The store is injected, the clock is passed into every call.
    """

    def __init__(self, store: CardStore, params: SchedulingParams | None = None):
        self.store = store
        self.params = params or SchedulingParams()
        self.policy = ReviewPolicy(self.params)

    def review(
            self,
            *,
            user_id: UUID,
            exam_id: UUID,
            question_index: int,
            rating: ReviewRating | str,
            now: datetime,
    ) -> SpacedRepetitionCard:
        if question_index < 0:
            raise ValueError("question_index cannot be negative")

        card = self.store.get(user_id, exam_id, question_index)
        if card is None:
            # first encounter creates the card
            card = SpacedRepetitionCard.new(
                user_id=user_id,
                exam_id=exam_id,
                question_index=question_index,
                now=now,
                params=self.params,
            )
        return self._apply(card, rating, now)

    def review_card(
            self,
            *,
            user_id: UUID,
            card_id: UUID,
            rating: ReviewRating | str,
            now: datetime,
    ) -> SpacedRepetitionCard:
        card = self.store.get_by_id(user_id, card_id)
        if card is None:
            raise CardNotFoundError(card_id)
        return self._apply(card, rating, now)

    def _apply(self, card: SpacedRepetitionCard, rating, now: datetime) -> SpacedRepetitionCard:
        outcome = self.policy.schedule_review(card.state, rating, now)
        saved = self.store.save(card.with_outcome(outcome))
        logger.info(
            "Reviewed exam %s question %s for user %s: %s -> interval %sd, ease %.2f",
            saved.exam_id, saved.question_index, saved.user_id,
            ReviewRating(rating).value, saved.interval, saved.ease_factor,
        )
        return saved

    def due_cards(
            self,
            *,
            user_id: UUID,
            now: datetime,
            candidates: Iterable[tuple[UUID, int]] = (),
    ) -> list[DueItem]:
        candidates = list(candidates)
        if not candidates:
            return select_due(self.store.list_due(user_id, now), now)
        # unseen candidates are only known against the full card set
        return select_due(self.store.list_cards(user_id), now, candidates)

    def all_cards(self, *, user_id: UUID) -> list[SpacedRepetitionCard]:
        return self.store.list_cards(user_id)

    def stats(self, *, user_id: UUID, now: datetime) -> CardStats:
        cards = self.store.list_cards(user_id)
        today = now.astimezone(timezone.utc).date()
        end_of_day = datetime.combine(today, time.max, tzinfo=timezone.utc)

        return CardStats(
            due_today=sum(1 for c in cards if c.next_review_date <= end_of_day),
            learned=sum(1 for c in cards if c.repetitions >= LEARNED_REPETITIONS),
            total_cards=len(cards),
        )

    def add_cards_from_exam(
            self,
            *,
            user_id: UUID,
            exam_id: UUID,
            question_count: int,
            now: datetime,
    ) -> int:
        if question_count < 0:
            raise ValueError("question_count cannot be negative")

        created = self.store.add_missing(user_id, exam_id, range(question_count), now)
        logger.info("Seeded %s of %s cards from exam %s for user %s",
                    created, question_count, exam_id, user_id)
        return created

    def previews(
            self,
            *,
            user_id: UUID,
            exam_id: UUID,
            question_index: int,
            now: datetime,
    ) -> dict[ReviewRating, ReviewOutcome]:
        card = self.store.get(user_id, exam_id, question_index)
        return self.policy.preview_reviews(card.state if card else None, now)

    def delete_card(self, *, user_id: UUID, card_id: UUID) -> None:
        if not self.store.delete(user_id, card_id):
            raise CardNotFoundError(card_id)
        logger.info("Deleted card %s for user %s", card_id, user_id)
