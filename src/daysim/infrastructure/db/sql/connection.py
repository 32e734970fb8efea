import os

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker


DEFAULT_DATABASE_URL = "sqlite:///daysim.db"
DATABASE_URL = os.getenv("DAYSIM_DATABASE_URL") or DEFAULT_DATABASE_URL

engine = create_engine(DATABASE_URL, future=True, pool_pre_ping=True)
SessionLocal = sessionmaker(bind=engine, future=True, expire_on_commit=False)


def configure(database_url: str):
    """Point the shared session factory at another database."""
    global DATABASE_URL, engine
    DATABASE_URL = database_url
    engine = create_engine(database_url, future=True, pool_pre_ping=True)
    SessionLocal.configure(bind=engine)
    return engine
