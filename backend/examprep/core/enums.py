from enum import Enum


class ReviewRating(str, Enum):
    """Self-assessed recall quality, ordered from worst to best."""

    again = "again"
    hard = "hard"
    good = "good"
    easy = "easy"

    @property
    def is_success(self) -> bool:
        return self is not ReviewRating.again
