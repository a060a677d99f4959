"""
Engine and DB sessions backing the session store.

SQLite is the local default; any SQLAlchemy URL (Postgres in production) works
through DATABASE_URL. Each request gets its own DB session via get_db; the
sweeper thread opens its own from SessionLocal.
"""
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from config import DATABASE_URL

_is_sqlite = DATABASE_URL.startswith("sqlite")

# Requests and the sweeper run on different threads
engine = create_engine(
    DATABASE_URL,
    connect_args={"check_same_thread": False} if _is_sqlite else {},
    pool_pre_ping=not _is_sqlite,
)
SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

Base = declarative_base()


def get_db():
    """Yield a DB session for one request and close it afterwards."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
