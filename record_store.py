"""
Persistence for imported rows.

The import pipeline only depends on the RecordStore protocol; the SQLAlchemy
store is the production implementation and is injected by the API layer.
"""
import logging
from datetime import datetime
from typing import Any, Callable, Literal, Mapping, Protocol, Sequence

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from sqlalchemy import Column, DateTime, Float, Integer, String, create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool
from sqlalchemy.sql import func

logger = logging.getLogger(__name__)

Base = declarative_base()


class PersistenceError(Exception):
    """Raised when a batch of rows could not be stored. Nothing from the batch is kept."""


class Record(Base):
    __tablename__ = "records"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    amount = Column(Float, nullable=False)
    date = Column(DateTime, nullable=False)
    verified = Column(String(3), nullable=False, default="No")
    created_at = Column(DateTime, server_default=func.now())


class RecordIn(BaseModel):
    """Shape a mapped row must have before it is stored."""
    model_config = ConfigDict(extra="ignore")

    name: str = Field(min_length=1)
    amount: float
    date: datetime
    verified: Literal["Yes", "No"] = "No"

    @field_validator("verified", mode="before")
    @classmethod
    def _default_verified(cls, value: Any) -> Any:
        return "No" if value in (None, "") else value


class RecordStore(Protocol):
    def insert_many(self, rows: Sequence[Mapping[str, Any]]) -> int:
        """Store all rows or none of them, returning how many were stored."""
        ...


class SqlAlchemyRecordStore:
    """RecordStore writing one transaction per batch."""

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def insert_many(self, rows: Sequence[Mapping[str, Any]]) -> int:
        if not rows:
            return 0

        try:
            records = [Record(**RecordIn.model_validate(dict(row)).model_dump()) for row in rows]
        except ValidationError as e:
            raise PersistenceError(f"Invalid record in batch: {e}") from e

        session = self._session_factory()
        try:
            with session.begin():
                session.add_all(records)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Batch insert failed: {e}") from e
        finally:
            session.close()

        logger.info("Inserted records", extra={"inserted": len(records)})
        return len(records)


def create_db_engine(database_url: str) -> Engine:
    if database_url.startswith("sqlite"):
        kwargs: dict = {"connect_args": {"check_same_thread": False}}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(database_url, **kwargs)
    return create_engine(database_url, pool_pre_ping=True)


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(engine: Engine) -> None:
    Base.metadata.create_all(bind=engine)
