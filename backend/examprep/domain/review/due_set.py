# backend/examprep/domain/review/due_set.py

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable
from uuid import UUID

from .ports import SpacedRepetitionCard


@dataclass(frozen=True)
class DueItem:
    exam_id: UUID
    question_index: int
    card: SpacedRepetitionCard | None = None

    @property
    def is_new(self) -> bool:
        return self.card is None


def is_due(card: SpacedRepetitionCard, now: datetime) -> bool:
    return card.next_review_date <= now


def _card_order(card: SpacedRepetitionCard):
    return (card.next_review_date, str(card.exam_id), card.question_index)


def select_due(
        cards: Iterable[SpacedRepetitionCard],
        now: datetime,
        candidates: Iterable[tuple[UUID, int]] = (),
) -> list[DueItem]:
    """
    Due set of one user at `now`.

    Existing cards come first, oldest due date first. Candidate
    (exam_id, question_index) pairs without a card follow as new items.
    Ties are broken on (exam_id, question_index) so the result only
    depends on the snapshot.
    """
    cards = list(cards)
    known = {(card.exam_id, card.question_index) for card in cards}

    due = sorted((c for c in cards if is_due(c, now)), key=_card_order)
    items = [DueItem(c.exam_id, c.question_index, c) for c in due]

    unseen = {pair for pair in candidates if pair not in known}
    for exam_id, question_index in sorted(unseen, key=lambda p: (str(p[0]), p[1])):
        items.append(DueItem(exam_id, question_index))

    return items
