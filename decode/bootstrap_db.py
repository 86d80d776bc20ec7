"""
Dev convenience: create tables if they don't exist.
Call this at startup in local/dev only
"""

from sqlalchemy.engine import Engine

from .db import Base
from . import models  # noqa: F401  (registers the tables on Base.metadata)


def create_all(engine: Engine) -> None:
    Base.metadata.create_all(bind=engine)
