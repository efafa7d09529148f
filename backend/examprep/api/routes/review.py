# backend/examprep/api/routes/review.py
from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Path, Query, Response
from starlette import status

from examprep.api.dependencies import get_current_user_id, get_now, get_review_session
from examprep.core.enums import ReviewRating
from examprep.core.errors import CardNotFoundError
from examprep.domain.review.policy import format_interval
from examprep.schemas.card_review import (
    AddCardsRequest,
    AddCardsResponse,
    CardOut,
    CardStatsOut,
    DueItemOut,
    ReviewPreview,
    ReviewRequest,
)
from examprep.services.review_service import ReviewSession

router = APIRouter()


@router.get("/cards", response_model=list[CardOut])
def list_cards(
    user_id: UUID = Depends(get_current_user_id),
    session: ReviewSession = Depends(get_review_session),
):
    return [CardOut.model_validate(c) for c in session.all_cards(user_id=user_id)]


@router.get("/cards/due", response_model=list[DueItemOut])
def list_due_cards(
    exam_id: Optional[UUID] = None,
    question_count: Optional[int] = Query(default=None, ge=0, le=10_000),
    user_id: UUID = Depends(get_current_user_id),
    now: datetime = Depends(get_now),
    session: ReviewSession = Depends(get_review_session),
):
    """
    Cards due now. With exam_id and question_count the exam's questions
    that were never reviewed are included as new items.
    """
    if (exam_id is None) != (question_count is None):
        raise HTTPException(
            status_code=422,
            detail="exam_id and question_count go together",
        )

    candidates = [(exam_id, i) for i in range(question_count)] if exam_id is not None else []
    items = session.due_cards(user_id=user_id, now=now, candidates=candidates)
    return [
        DueItemOut(
            exam_id=item.exam_id,
            question_index=item.question_index,
            is_new=item.is_new,
            card=CardOut.model_validate(item.card) if item.card else None,
        )
        for item in items
    ]


@router.get("/stats", response_model=CardStatsOut)
def card_stats(
    user_id: UUID = Depends(get_current_user_id),
    now: datetime = Depends(get_now),
    session: ReviewSession = Depends(get_review_session),
):
    stats = session.stats(user_id=user_id, now=now)
    return CardStatsOut(
        due_today=stats.due_today,
        learned=stats.learned,
        total_cards=stats.total_cards,
    )


@router.post("/exams/{exam_id}/cards", response_model=AddCardsResponse, status_code=status.HTTP_201_CREATED)
def add_cards_from_exam(
    exam_id: UUID,
    payload: AddCardsRequest,
    user_id: UUID = Depends(get_current_user_id),
    now: datetime = Depends(get_now),
    session: ReviewSession = Depends(get_review_session),
):
    created = session.add_cards_from_exam(
        user_id=user_id,
        exam_id=exam_id,
        question_count=payload.question_count,
        now=now,
    )
    return AddCardsResponse(created=created)


@router.post("/exams/{exam_id}/questions/{question_index}/review", response_model=CardOut)
def review_question(
    exam_id: UUID,
    request: ReviewRequest,
    question_index: int = Path(ge=0),
    user_id: UUID = Depends(get_current_user_id),
    now: datetime = Depends(get_now),
    session: ReviewSession = Depends(get_review_session),
):
    card = session.review(
        user_id=user_id,
        exam_id=exam_id,
        question_index=question_index,
        rating=request.rating,
        now=now,
    )
    return CardOut.model_validate(card)


@router.post("/cards/{card_id}/review", response_model=CardOut)
def review_card(
    card_id: UUID,
    request: ReviewRequest,
    user_id: UUID = Depends(get_current_user_id),
    now: datetime = Depends(get_now),
    session: ReviewSession = Depends(get_review_session),
):
    try:
        card = session.review_card(user_id=user_id, card_id=card_id, rating=request.rating, now=now)
    except CardNotFoundError:
        raise HTTPException(status_code=404, detail="Card not found")
    return CardOut.model_validate(card)


@router.get("/exams/{exam_id}/questions/{question_index}/previews", response_model=dict[ReviewRating, ReviewPreview])
def review_previews(
    exam_id: UUID,
    question_index: int = Path(ge=0),
    user_id: UUID = Depends(get_current_user_id),
    now: datetime = Depends(get_now),
    session: ReviewSession = Depends(get_review_session),
):
    outcomes = session.previews(
        user_id=user_id,
        exam_id=exam_id,
        question_index=question_index,
        now=now,
    )
    return {
        rating: ReviewPreview(
            interval=outcome.interval,
            ease_factor=outcome.ease_factor,
            next_review_date=outcome.next_review_date,
            label=format_interval(outcome.interval),
        )
        for rating, outcome in outcomes.items()
    }


@router.delete("/cards/{card_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_card(
    card_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    session: ReviewSession = Depends(get_review_session),
):
    try:
        session.delete_card(user_id=user_id, card_id=card_id)
    except CardNotFoundError:
        raise HTTPException(status_code=404, detail="Card not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
