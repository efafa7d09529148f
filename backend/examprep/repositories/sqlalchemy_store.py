import logging
from datetime import datetime, timezone
from typing import Iterable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from examprep.domain.review.ports import SpacedRepetitionCard
from examprep.models.spaced_repetition_card import SpacedRepetitionCardModel

logger = logging.getLogger(__name__)


def _as_utc(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes; everything is stored in UTC
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _to_domain(row: SpacedRepetitionCardModel) -> SpacedRepetitionCard:
    return SpacedRepetitionCard(
        id=row.id,
        user_id=row.user_id,
        exam_id=row.exam_id,
        question_index=row.question_index,
        ease_factor=row.ease_factor,
        interval=row.interval,
        repetitions=row.repetitions,
        next_review_date=_as_utc(row.next_review_date),
        last_reviewed_at=_as_utc(row.last_reviewed_at),
        created_at=_as_utc(row.created_at),
        updated_at=_as_utc(row.updated_at),
    )


class SqlAlchemyCardStore:
    """CardStore over the `spaced_repetition` table."""

    def __init__(self, db: Session):
        self.db = db

    def _query_key(self, user_id: UUID, exam_id: UUID, question_index: int):
        return select(SpacedRepetitionCardModel).filter_by(
            user_id=user_id, exam_id=exam_id, question_index=question_index,
        )

    def get(self, user_id: UUID, exam_id: UUID, question_index: int) -> SpacedRepetitionCard | None:
        row = self.db.scalars(self._query_key(user_id, exam_id, question_index)).first()
        return _to_domain(row) if row else None

    def get_by_id(self, user_id: UUID, card_id: UUID) -> SpacedRepetitionCard | None:
        row = self.db.get(SpacedRepetitionCardModel, card_id)
        if row is None or row.user_id != user_id:
            return None
        return _to_domain(row)

    def list_cards(self, user_id: UUID) -> list[SpacedRepetitionCard]:
        rows = self.db.scalars(
            select(SpacedRepetitionCardModel)
            .filter(SpacedRepetitionCardModel.user_id == user_id)
            .order_by(
                SpacedRepetitionCardModel.next_review_date.asc(),
                SpacedRepetitionCardModel.exam_id.asc(),
                SpacedRepetitionCardModel.question_index.asc(),
            )
        ).all()
        return [_to_domain(r) for r in rows]

    def list_due(self, user_id: UUID, now: datetime) -> list[SpacedRepetitionCard]:
        rows = self.db.scalars(
            select(SpacedRepetitionCardModel)
            .filter(SpacedRepetitionCardModel.user_id == user_id)
            .filter(SpacedRepetitionCardModel.next_review_date <= _as_utc(now))
            .order_by(
                SpacedRepetitionCardModel.next_review_date.asc(),
                SpacedRepetitionCardModel.exam_id.asc(),
                SpacedRepetitionCardModel.question_index.asc(),
            )
        ).all()
        return [_to_domain(r) for r in rows]

    def save(self, card: SpacedRepetitionCard) -> SpacedRepetitionCard:
        try:
            row = self._write(card)
            self.db.commit()
        except IntegrityError:
            # another writer inserted the same key first; overwrite it
            self.db.rollback()
            logger.info("Concurrent insert for card key %s, overwriting", card.key)
            row = self._write(card)
            self.db.commit()
        self.db.refresh(row)
        return _to_domain(row)

    def _write(self, card: SpacedRepetitionCard) -> SpacedRepetitionCardModel:
        row = self.db.scalars(self._query_key(*card.key)).first()
        if row is None:
            row = SpacedRepetitionCardModel(
                id=card.id,
                user_id=card.user_id,
                exam_id=card.exam_id,
                question_index=card.question_index,
            )
            if card.created_at is not None:
                row.created_at = _as_utc(card.created_at)
            self.db.add(row)

        row.ease_factor = card.ease_factor
        row.interval = card.interval
        row.repetitions = card.repetitions
        row.next_review_date = _as_utc(card.next_review_date)
        row.last_reviewed_at = _as_utc(card.last_reviewed_at)
        if card.updated_at is not None:
            row.updated_at = _as_utc(card.updated_at)
        self.db.flush()
        return row

    def add_missing(
            self,
            user_id: UUID,
            exam_id: UUID,
            question_indexes: Iterable[int],
            now: datetime,
    ) -> int:
        wanted = set(question_indexes)
        if not wanted:
            return 0

        try:
            created = self._insert_missing(user_id, exam_id, wanted, _as_utc(now))
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            created = self._insert_missing(user_id, exam_id, wanted, _as_utc(now))
            self.db.commit()
        return created

    def _insert_missing(self, user_id: UUID, exam_id: UUID, wanted: set[int], now: datetime) -> int:
        existing = set(self.db.scalars(
            select(SpacedRepetitionCardModel.question_index)
            .filter_by(user_id=user_id, exam_id=exam_id)
            .filter(SpacedRepetitionCardModel.question_index.in_(wanted))
        ).all())

        missing = sorted(wanted - existing)
        for index in missing:
            card = SpacedRepetitionCard.new(
                user_id=user_id, exam_id=exam_id, question_index=index, now=now,
            )
            self.db.add(SpacedRepetitionCardModel(
                id=card.id,
                user_id=card.user_id,
                exam_id=card.exam_id,
                question_index=card.question_index,
                ease_factor=card.ease_factor,
                interval=card.interval,
                repetitions=card.repetitions,
                next_review_date=card.next_review_date,
                created_at=card.created_at,
                updated_at=card.updated_at,
            ))
        self.db.flush()
        return len(missing)

    def delete(self, user_id: UUID, card_id: UUID) -> bool:
        row = self.db.get(SpacedRepetitionCardModel, card_id)
        if row is None or row.user_id != user_id:
            return False
        self.db.delete(row)
        self.db.commit()
        return True
