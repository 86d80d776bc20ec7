"""
Single place to:
- Create a SQLAlchemy Engine from a DATABASE_URL
- Create a Session factory for the stats repository
- Hold the declarative Base for ORM models

Only used when STATS_BACKEND=db; the default JSON stats file needs none of this.
"""

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker


# 1) Base class for ORM models.
class Base(DeclarativeBase):
    pass


# 2) Create the SQLAlchemy Engine.
#    pool_pre_ping=True = auto-detect dead connections (helps with long-lived processes).
#    echo=False = set True to print SQL during local debugging.
def make_engine(database_url: str, **kwargs) -> Engine:
    if not database_url:
        raise RuntimeError(
            "DATABASE_URL is not set. Add it to your environment or a local .env (not committed)."
        )
    kwargs.setdefault("pool_pre_ping", True)
    kwargs.setdefault("echo", False)
    return create_engine(database_url, future=True, **kwargs)


# 3) Session factory.
#    Each stats operation gets its own short-lived session from this factory.
def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
