from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
import uuid

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from examprep.core.enums import ReviewRating
from examprep.core.errors import CardNotFoundError
from examprep.db.session import init_db
from examprep.domain.review.ports import SpacedRepetitionCard
from examprep.models.spaced_repetition_card import SpacedRepetitionCardModel
from examprep.repositories import SqlAlchemyCardStore
from examprep.services.review_service import ReviewSession

NOW = datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def session(store):
    return ReviewSession(store)


class TestReview:

    def test_first_review_creates_card(self, session, store, user_id, exam_id):
        assert store.get(user_id, exam_id, 0) is None

        card = session.review(user_id=user_id, exam_id=exam_id, question_index=0,
                              rating=ReviewRating.good, now=NOW)

        assert card.repetitions == 1
        assert card.interval == 1
        assert card.last_reviewed_at == NOW
        assert card.next_review_date == NOW + timedelta(days=1)
        assert store.get(user_id, exam_id, 0) == card

    def test_repeated_reviews_update_same_card(self, session, store, user_id, exam_id):
        first = session.review(user_id=user_id, exam_id=exam_id, question_index=4,
                               rating="good", now=NOW)
        second = session.review(user_id=user_id, exam_id=exam_id, question_index=4,
                                rating="good", now=NOW + timedelta(days=1))
        third = session.review(user_id=user_id, exam_id=exam_id, question_index=4,
                               rating="good", now=NOW + timedelta(days=7))

        assert first.id == second.id == third.id
        assert [first.interval, second.interval, third.interval] == [1, 6, 15]
        assert third.next_review_date == NOW + timedelta(days=22)
        assert len(session.all_cards(user_id=user_id)) == 1

    def test_again_resets_streak(self, session, user_id, exam_id):
        for day in range(3):
            session.review(user_id=user_id, exam_id=exam_id, question_index=0,
                           rating="good", now=NOW + timedelta(days=day))

        card = session.review(user_id=user_id, exam_id=exam_id, question_index=0,
                              rating="again", now=NOW + timedelta(days=30))

        assert card.repetitions == 0
        assert card.interval == 1
        assert card.ease_factor == pytest.approx(2.3)

    def test_review_by_card_id(self, session, user_id, exam_id):
        created = session.review(user_id=user_id, exam_id=exam_id, question_index=0,
                                 rating="easy", now=NOW)

        card = session.review_card(user_id=user_id, card_id=created.id,
                                   rating=ReviewRating.hard, now=NOW + timedelta(days=1))

        assert card.id == created.id
        assert card.repetitions == 2
        assert card.ease_factor == pytest.approx(2.5)

    def test_review_unknown_card_raises(self, session, user_id):
        with pytest.raises(CardNotFoundError):
            session.review_card(user_id=user_id, card_id=uuid.uuid4(), rating="good", now=NOW)

    def test_other_users_card_is_not_visible(self, session, user_id, exam_id):
        created = session.review(user_id=user_id, exam_id=exam_id, question_index=0,
                                 rating="good", now=NOW)

        with pytest.raises(CardNotFoundError):
            session.review_card(user_id=uuid.uuid4(), card_id=created.id, rating="good", now=NOW)

    def test_invalid_rating_is_not_persisted(self, session, store, user_id, exam_id):
        with pytest.raises(ValueError):
            session.review(user_id=user_id, exam_id=exam_id, question_index=0,
                           rating="meh", now=NOW)

        assert store.get(user_id, exam_id, 0) is None

    def test_negative_question_index_rejected(self, session, user_id, exam_id):
        with pytest.raises(ValueError):
            session.review(user_id=user_id, exam_id=exam_id, question_index=-1,
                           rating="good", now=NOW)


class TestStoreSemantics:

    def test_save_is_last_write_wins_per_key(self, store, user_id, exam_id):
        a = SpacedRepetitionCard.new(user_id=user_id, exam_id=exam_id, question_index=0, now=NOW)
        b = SpacedRepetitionCard.new(user_id=user_id, exam_id=exam_id, question_index=0, now=NOW)
        b.interval = 6
        b.repetitions = 2

        saved_a = store.save(a)
        saved_b = store.save(b)

        assert saved_b.id == saved_a.id
        assert store.get(user_id, exam_id, 0).interval == 6
        assert len(store.list_cards(user_id)) == 1

    def test_delete_only_own_cards(self, store, user_id, exam_id):
        card = store.save(SpacedRepetitionCard.new(
            user_id=user_id, exam_id=exam_id, question_index=0, now=NOW,
        ))

        assert store.delete(uuid.uuid4(), card.id) is False
        assert store.delete(user_id, card.id) is True
        assert store.get(user_id, exam_id, 0) is None


class TestDueCards:

    def test_due_cards_only_returns_due(self, session, user_id, exam_id):
        session.review(user_id=user_id, exam_id=exam_id, question_index=0, rating="good", now=NOW)
        session.review(user_id=user_id, exam_id=exam_id, question_index=1, rating="again", now=NOW)
        session.add_cards_from_exam(user_id=user_id, exam_id=exam_id, question_count=3, now=NOW)

        items = session.due_cards(user_id=user_id, now=NOW + timedelta(hours=1))

        assert [i.question_index for i in items] == [2]

        items = session.due_cards(user_id=user_id, now=NOW + timedelta(days=1))
        assert [i.question_index for i in items] == [2, 0, 1]

    def test_due_cards_include_unseen_candidates(self, session, user_id, exam_id):
        session.review(user_id=user_id, exam_id=exam_id, question_index=1, rating="good", now=NOW)

        items = session.due_cards(
            user_id=user_id,
            now=NOW,
            candidates=[(exam_id, i) for i in range(3)],
        )

        assert [(i.question_index, i.is_new) for i in items] == [(0, True), (2, True)]

    def test_due_cards_scoped_to_user(self, session, user_id, exam_id):
        session.add_cards_from_exam(user_id=uuid.uuid4(), exam_id=exam_id, question_count=2, now=NOW)

        assert session.due_cards(user_id=user_id, now=NOW) == []


class TestStatsAndSeeding:

    def test_stats(self, session, user_id, exam_id):
        session.add_cards_from_exam(user_id=user_id, exam_id=exam_id, question_count=4, now=NOW)
        for day in (0, 1, 7):
            session.review(user_id=user_id, exam_id=exam_id, question_index=0,
                           rating="good", now=NOW + timedelta(days=day))
        session.review(user_id=user_id, exam_id=exam_id, question_index=1, rating="good", now=NOW)

        stats = session.stats(user_id=user_id, now=NOW)

        assert stats.total_cards == 4
        assert stats.learned == 1
        # questions 2 and 3 are due now; 1 is due tomorrow, 0 in three weeks
        assert stats.due_today == 2

    def test_due_today_counts_until_end_of_day(self, session, user_id, exam_id):
        session.review(user_id=user_id, exam_id=exam_id, question_index=0, rating="good", now=NOW)

        tomorrow_morning = NOW + timedelta(hours=15)
        assert session.stats(user_id=user_id, now=tomorrow_morning).due_today == 1
        assert session.stats(user_id=user_id, now=NOW).due_today == 0

    def test_seeding_is_idempotent_and_keeps_progress(self, session, store, user_id, exam_id):
        session.review(user_id=user_id, exam_id=exam_id, question_index=1, rating="easy", now=NOW)

        created = session.add_cards_from_exam(user_id=user_id, exam_id=exam_id,
                                              question_count=3, now=NOW)
        again = session.add_cards_from_exam(user_id=user_id, exam_id=exam_id,
                                            question_count=3, now=NOW)

        assert (created, again) == (2, 0)
        assert store.get(user_id, exam_id, 1).repetitions == 1
        assert store.get(user_id, exam_id, 0).repetitions == 0

    def test_negative_question_count_rejected(self, session, user_id, exam_id):
        with pytest.raises(ValueError):
            session.add_cards_from_exam(user_id=user_id, exam_id=exam_id,
                                        question_count=-1, now=NOW)


class TestPreviewsAndDelete:

    def test_previews_for_unseen_question(self, session, user_id, exam_id):
        previews = session.previews(user_id=user_id, exam_id=exam_id, question_index=0, now=NOW)

        assert {r: o.interval for r, o in previews.items()} == {
            ReviewRating.again: 1,
            ReviewRating.hard: 1,
            ReviewRating.good: 1,
            ReviewRating.easy: 1,
        }

    def test_previews_do_not_persist(self, session, store, user_id, exam_id):
        session.previews(user_id=user_id, exam_id=exam_id, question_index=0, now=NOW)
        assert store.get(user_id, exam_id, 0) is None

    def test_delete_card(self, session, user_id, exam_id):
        card = session.review(user_id=user_id, exam_id=exam_id, question_index=0,
                              rating="good", now=NOW)

        session.delete_card(user_id=user_id, card_id=card.id)

        assert session.all_cards(user_id=user_id) == []
        with pytest.raises(CardNotFoundError):
            session.delete_card(user_id=user_id, card_id=card.id)


class TestConcurrentInsert:
    """A second writer inserts the same key between lookup and insert."""

    @pytest.fixture
    def make_session(self, tmp_path):
        # file database so the two sessions use separate connections
        engine = create_engine(f"sqlite:///{tmp_path / 'race.db'}")
        init_db(bind=engine)
        yield sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
        engine.dispose()

    def _race_after_first_lookup(self, monkeypatch, db, rival_db, rival_row):
        lookup = db.scalars
        raced = []

        def scalars(statement):
            rows = lookup(statement).all()
            if not raced:
                raced.append(True)
                rival_db.add(rival_row)
                rival_db.commit()
            return SimpleNamespace(first=lambda: rows[0] if rows else None, all=lambda: rows)

        monkeypatch.setattr(db, "scalars", scalars)

    def test_save_overwrites_row_inserted_concurrently(self, make_session, monkeypatch, user_id, exam_id):
        db, rival_db = make_session(), make_session()
        rival = SpacedRepetitionCardModel(
            user_id=user_id, exam_id=exam_id, question_index=0,
            ease_factor=2.5, interval=1, repetitions=1, next_review_date=NOW,
        )
        store = SqlAlchemyCardStore(db)
        self._race_after_first_lookup(monkeypatch, db, rival_db, rival)

        card = SpacedRepetitionCard.new(user_id=user_id, exam_id=exam_id, question_index=0, now=NOW)
        card.interval = 6
        card.repetitions = 2
        saved = store.save(card)

        assert saved.id == rival.id
        assert saved.interval == 6
        assert saved.repetitions == 2
        monkeypatch.undo()
        assert len(store.list_cards(user_id)) == 1
        db.close()
        rival_db.close()

    def test_add_missing_skips_row_inserted_concurrently(self, make_session, monkeypatch, user_id, exam_id):
        db, rival_db = make_session(), make_session()
        rival = SpacedRepetitionCardModel(
            user_id=user_id, exam_id=exam_id, question_index=1,
            ease_factor=2.5, interval=6, repetitions=4, next_review_date=NOW,
        )
        store = SqlAlchemyCardStore(db)
        self._race_after_first_lookup(monkeypatch, db, rival_db, rival)

        created = store.add_missing(user_id, exam_id, range(3), NOW)

        assert created == 2
        monkeypatch.undo()
        cards = {c.question_index: c for c in store.list_cards(user_id)}
        assert sorted(cards) == [0, 1, 2]
        assert cards[1].id == rival.id
        assert cards[1].repetitions == 4
        db.close()
        rival_db.close()
