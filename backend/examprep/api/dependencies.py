from datetime import datetime, timezone
from uuid import UUID

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from examprep.db.session import get_db
from examprep.repositories.sqlalchemy_store import SqlAlchemyCardStore
from examprep.services.review_service import ReviewSession


def get_current_user_id(x_user_id: UUID = Header(...)) -> UUID:
    """
    Caller identity from the X-User-Id header.
    Authentication happens upstream of this service.
    """
    return x_user_id


def get_now() -> datetime:
    return datetime.now(timezone.utc)


def get_review_session(db: Session = Depends(get_db)) -> ReviewSession:
    return ReviewSession(SqlAlchemyCardStore(db))
