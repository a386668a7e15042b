# tests/conftest.py
import pytest
from sqlalchemy.orm import sessionmaker

from store_ops.db import Base, build_engine
from helpers import InMemoryRepository, ListLogSink


@pytest.fixture()
def repo():
    return InMemoryRepository()


@pytest.fixture()
def sink():
    return ListLogSink()


@pytest.fixture()
def db_session():
    """Fresh in-memory database per test"""
    engine = build_engine("sqlite://")
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(bind=engine, autoflush=False)()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()
