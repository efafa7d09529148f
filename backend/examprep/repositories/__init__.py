from examprep.repositories.memory import InMemoryCardStore
from examprep.repositories.sqlalchemy_store import SqlAlchemyCardStore

__all__ = ["InMemoryCardStore", "SqlAlchemyCardStore"]
