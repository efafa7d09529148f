from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from examprep.core.enums import ReviewRating


class CardOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    exam_id: UUID
    question_index: int

    ease_factor: float
    interval: int
    repetitions: int

    next_review_date: datetime
    last_reviewed_at: Optional[datetime]


class DueItemOut(BaseModel):
    exam_id: UUID
    question_index: int
    is_new: bool
    card: Optional[CardOut]


class ReviewRequest(BaseModel):
    rating: ReviewRating


class ReviewPreview(BaseModel):
    interval: int
    ease_factor: float
    next_review_date: datetime
    label: str


class AddCardsRequest(BaseModel):
    question_count: int = Field(ge=0, le=10_000)


class AddCardsResponse(BaseModel):
    created: int


class CardStatsOut(BaseModel):
    due_today: int
    learned: int
    total_cards: int
