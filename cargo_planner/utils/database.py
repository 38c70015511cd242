from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from ..core.settings import settings

SQLALCHEMY_DATABASE_URL = settings.DATABASE_URL

engine_options = {}
if SQLALCHEMY_DATABASE_URL.startswith("sqlite"):
    # Share one connection across threads for SQLite
    engine_options = {
        "connect_args": {"check_same_thread": False},
        "poolclass": StaticPool,
    }

engine = create_engine(SQLALCHEMY_DATABASE_URL, **engine_options)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

def get_db() -> Session:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

def init_db():
    from ..models import Base
    Base.metadata.create_all(bind=engine)
