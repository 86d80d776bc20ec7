"""
- Fresh registry / stats / coordinator per test (no shared process state)
- A FastAPI app built from a test config, with the stats file under tmp_path
- An in-memory SQLite engine for the database-backed stats store
"""
import os
import pytest

from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool

# Keep the module-level app in decode.main away from real stats files and databases
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("STATS_BACKEND", "memory")

from decode.bootstrap_db import create_all
from decode.coordinator import Coordinator
from decode.db import Base, make_engine, make_session_factory
from decode.main import create_app
from decode.repository import DBStatsStore
from decode.stats import MemoryStatsStore
from decode.store import RoomRegistry

# Use SQLite in-memory for tests (fast, isolated)
TEST_DATABASE_URL = "sqlite+pysqlite:///:memory:"


class TestConfig:
    APP_ENV = "test"
    LOG_LEVEL = "WARNING"
    STATS_BACKEND = "memory"
    STATS_FILE = "unused.json"
    DATABASE_URL = None
    CLEANUP_INTERVAL_SEC = 0
    DEFAULT_NUMBER_LENGTH = 4
    LEADERBOARD_SIZE = 20
    OUTBOX_SIZE = 256


@pytest.fixture
def registry():
    return RoomRegistry()


@pytest.fixture
def stats():
    return MemoryStatsStore()


@pytest.fixture
def coordinator(registry, stats):
    return Coordinator(registry, stats, default_number_length=4)


@pytest.fixture
def engine():
    # StaticPool + check_same_thread=False: one shared in-memory database for every session
    engine = make_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    create_all(engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db_stats(engine):
    return DBStatsStore(make_session_factory(engine))


@pytest.fixture
def app(stats):
    return create_app(TestConfig, stats_store=stats)


@pytest.fixture
def client(app):
    # Entering the client runs the lifespan and keeps one event loop for every
    # request and websocket, which the shared ConnectionHub needs
    with TestClient(app) as client:
        yield client
