"""
SQL backend for the lead store: engine, session factory and table setup.

Used when STORE_BACKEND=sql. DATABASE_URL defaults to a local SQLite file;
hosted Postgres URLs are accepted as-is.
"""
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase

from portal.config import DATABASE_URL


class Base(DeclarativeBase):
    pass


def normalise_url(url: str) -> str:
    """SQLAlchemy 2.x only accepts the postgresql:// scheme."""
    if url.startswith('postgres://'):
        return 'postgresql://' + url[len('postgres://'):]
    return url


def build_engine(url: str):
    url = normalise_url(url)
    if url.startswith('sqlite'):
        # Flask serves requests on worker threads
        return create_engine(url, connect_args={'check_same_thread': False})
    return create_engine(url, pool_pre_ping=True, pool_size=5, max_overflow=10)


engine = build_engine(DATABASE_URL)
SessionLocal = sessionmaker(bind=engine)


def get_session():
    """New session for one store call; the caller closes it."""
    return SessionLocal()


def init_db(bind=None):
    """Create the scored_leads table if missing."""
    import portal.models.scored_lead  # noqa: F401
    Base.metadata.create_all(bind or engine)
