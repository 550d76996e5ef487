"""
Shared fixtures: an in-memory SQLite database with per-test rollback.

Postgres-only column types are swapped for portable ones before the tables are
created, and every test runs inside a savepoint so service code is free to
commit or roll back.
"""

from typing import Generator

import pytest
from sqlalchemy import JSON, create_engine, event
from sqlalchemy.dialects import postgresql
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from memobot.config import Settings
from memobot.db import Base
import memobot.models  # noqa: F401  (registers every table on Base.metadata)

pytest_plugins = [
    "fixtures.user_fixtures",
    "fixtures.memory_fixtures",
    "fixtures.reminder_fixtures",
    "fixtures.router_fixtures",
    "fixtures.api_fixtures",
]


@event.listens_for(Base.metadata, "before_create")
def _use_portable_json(target, connection, **kw):
    for table in target.tables.values():
        for column in table.columns:
            if isinstance(column.type, postgresql.JSONB):
                column.type = JSON()


@pytest.fixture(scope="session")
def engine():
    engine = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    # pysqlite's own transaction handling breaks SAVEPOINT; let SQLAlchemy emit BEGIN.
    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def db(engine) -> Generator[Session, None, None]:
    connection = engine.connect()
    transaction = connection.begin()
    session = Session(
        bind=connection,
        join_transaction_mode="create_savepoint",
        autoflush=False,
        expire_on_commit=False,
    )
    yield session
    session.close()
    transaction.rollback()
    connection.close()


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        app_url="https://memobot.test",
        telegram_enabled=False,
        whatsapp_enabled=False,
        dedup_backend="memory",
        rate_limit_per_user_per_minute=None,
        webhook_processing_timeout_seconds=5.0,
        provider_call_timeout_seconds=2.0,
        session_expiry_idle_minutes=60,
        conversation_history_limit=20,
        openai_api_key=None,
        litellm_api_key=None,
        attachment_service_url=None,
        resend_api_key=None,
    )
