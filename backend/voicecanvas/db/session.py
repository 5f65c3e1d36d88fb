from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from voicecanvas.config import DATABASE_URL


def make_engine(url: str = DATABASE_URL):
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, connect_args=connect_args)


engine = make_engine()
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
