from __future__ import annotations

from collections.abc import Generator
from typing import Annotated

from fastapi import Depends
from sqlmodel import Session, SQLModel, create_engine

from roombook.core.config import settings


def _build_engine(url: str = settings.DATABASE_URL):
    connect_args = {}
    if url.startswith("sqlite"):
        connect_args = {"check_same_thread": False}
    return create_engine(url, connect_args=connect_args)


engine = _build_engine()


def init_db(bind=None) -> None:
    """Create database tables in environments without migrations."""
    # Register every table on the metadata before creating it
    import roombook.models  # noqa: F401

    SQLModel.metadata.create_all(bind=bind or engine)


def get_session() -> Generator[Session, None, None]:
    with Session(engine) as session:
        yield session


SessionDep = Annotated[Session, Depends(get_session)]
