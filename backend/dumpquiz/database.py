"""SQLAlchemy engine and per-request sessions backing the document store."""
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, declarative_base

from .config import DATABASE_URL


def make_engine(url: str) -> Engine:
    """Create an engine; SQLite needs check_same_thread=False under FastAPI."""
    connect_args = {}
    if url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    return create_engine(url, connect_args=connect_args, echo=False)


engine = make_engine(DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """Dependency for getting database sessions."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind: Engine = None):
    """Create users and store tables."""
    from . import models  # noqa: F401
    Base.metadata.create_all(bind=bind or engine)


def drop_db(bind: Engine = None):
    """Drop every table. Used to reset state between test runs."""
    from . import models  # noqa: F401
    Base.metadata.drop_all(bind=bind or engine)
