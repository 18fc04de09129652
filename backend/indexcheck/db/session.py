from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from indexcheck.core.config import settings
from typing import Generator
from sqlalchemy.orm import Session


def make_engine(url: str):
    connect_args = {}
    if url.startswith("sqlite"):
        # worker threads share the engine
        connect_args["check_same_thread"] = False
    return create_engine(url, pool_pre_ping=True, connect_args=connect_args)


engine = make_engine(settings.database_url)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)


def init_db(bind=None) -> None:
    from indexcheck.db.base import Base
    import indexcheck.models.campaign  # noqa: F401  registers the tables

    Base.metadata.create_all(bind=bind or engine)


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
