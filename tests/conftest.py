import os

import pytest

os.environ.setdefault("DB_BACKEND", "sqlite")
os.environ.setdefault("GRAPHSTORE_LOG_LEVEL", "WARNING")

from sqlalchemy.orm import sessionmaker

from graphstore.db import DB, create_db_engine
from graphstore.models import Base
from graphstore.store import build_store


@pytest.fixture
def engine(tmp_path):
    db_path = tmp_path / "graphstore.sqlite"
    engine = create_db_engine(f"sqlite:///{db_path}")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    SessionLocal = sessionmaker(bind=engine, expire_on_commit=False)
    previous_engine = DB.engine
    previous_session = DB.SessionLocal
    DB.engine = engine
    DB.SessionLocal = SessionLocal
    try:
        yield SessionLocal
    finally:
        DB.engine = previous_engine
        DB.SessionLocal = previous_session


@pytest.fixture
def store(session_factory):
    return build_store()


@pytest.fixture
def db_session(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()
