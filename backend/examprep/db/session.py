from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from examprep.core.config import settings
from examprep.db.base import Base

connect_args = {"check_same_thread": False} if settings.DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(settings.DATABASE_URL, connect_args=connect_args)
SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind=None) -> None:
    import examprep.models  # noqa: F401  registers tables on Base.metadata

    Base.metadata.create_all(bind=bind or engine)
