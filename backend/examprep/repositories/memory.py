import threading
from dataclasses import replace
from datetime import datetime
from typing import Iterable
from uuid import UUID

from examprep.domain.review.ports import SpacedRepetitionCard


class InMemoryCardStore:
    """CardStore kept in a dict, for tests and single-process use."""

    def __init__(self):
        self._cards: dict[tuple[UUID, UUID, int], SpacedRepetitionCard] = {}
        self._lock = threading.Lock()

    def get(self, user_id: UUID, exam_id: UUID, question_index: int) -> SpacedRepetitionCard | None:
        with self._lock:
            card = self._cards.get((user_id, exam_id, question_index))
            return replace(card) if card else None

    def get_by_id(self, user_id: UUID, card_id: UUID) -> SpacedRepetitionCard | None:
        with self._lock:
            for card in self._cards.values():
                if card.id == card_id and card.user_id == user_id:
                    return replace(card)
        return None

    def list_cards(self, user_id: UUID) -> list[SpacedRepetitionCard]:
        with self._lock:
            cards = [replace(c) for c in self._cards.values() if c.user_id == user_id]
        return sorted(cards, key=lambda c: (c.next_review_date, str(c.exam_id), c.question_index))

    def list_due(self, user_id: UUID, now: datetime) -> list[SpacedRepetitionCard]:
        return [c for c in self.list_cards(user_id) if c.next_review_date <= now]

    def save(self, card: SpacedRepetitionCard) -> SpacedRepetitionCard:
        with self._lock:
            existing = self._cards.get(card.key)
            if existing is not None:
                card = replace(card, id=existing.id, created_at=existing.created_at)
            self._cards[card.key] = replace(card)
            return replace(card)

    def add_missing(
            self,
            user_id: UUID,
            exam_id: UUID,
            question_indexes: Iterable[int],
            now: datetime,
    ) -> int:
        created = 0
        with self._lock:
            for index in question_indexes:
                key = (user_id, exam_id, index)
                if key in self._cards:
                    continue
                self._cards[key] = SpacedRepetitionCard.new(
                    user_id=user_id, exam_id=exam_id, question_index=index, now=now,
                )
                created += 1
        return created

    def delete(self, user_id: UUID, card_id: UUID) -> bool:
        with self._lock:
            for key, card in self._cards.items():
                if card.id == card_id and card.user_id == user_id:
                    del self._cards[key]
                    return True
        return False
