#db.py
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool
from .config import settings


def build_engine(db_url: str, echo: bool = False):
    """ SQLite needs a shared connection for in-memory databases """
    connect_args = {}
    kwargs = {}
    if db_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
        if db_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
    return create_engine(db_url, echo=echo, connect_args=connect_args, **kwargs)


db_url = settings.get_db_url()
engine = build_engine(db_url, echo=settings.sql_echo)

SessionLocal = sessionmaker(bind=engine, autoflush=False)
Base = declarative_base()

def get_db():
    """ FastAPI DB Session """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
