# backend/tests/conftest.py
import os
from collections.abc import Iterator
from unittest.mock import MagicMock

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

# Minimal env so that Settings() builds when webproject.config is imported
os.environ.setdefault("DATABASE_DSN", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("AWS_REGION", "us-east-1")
os.environ.setdefault("AWS_ACCESS_KEY_ID", "testing")
os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "testing")
os.environ.setdefault("S3_BUCKET", "test-bucket")
os.environ.setdefault("SQS_QUEUE_URL", "https://sqs.us-east-1.amazonaws.com/000000000000/test-queue")
os.environ.setdefault("SNS_TOPIC_ARN", "arn:aws:sns:us-east-1:000000000000:test-topic")


def pytest_configure(config):
    config.addinivalue_line("markers", "integration: marks tests as integration tests")


@pytest.fixture
def engine():
    from webproject.db.base import Base
    import webproject.models  # noqa: F401  registers tables

    eng = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine) -> sessionmaker[Session]:
    return sessionmaker(engine, autoflush=False, autocommit=False, future=True)


@pytest.fixture
def db(session_factory) -> Iterator[Session]:
    with session_factory() as session:
        yield session


@pytest.fixture
def store():
    from webproject.aws.storage import ObjectStore

    mock = MagicMock(spec=ObjectStore)
    mock.bucket = "test-bucket"
    mock.list_entries.return_value = []
    mock.list_keys.return_value = []
    return mock


@pytest.fixture
def queue():
    from webproject.aws.queue import UploadQueue

    mock = MagicMock(spec=UploadQueue)
    mock.send.return_value = "sqs-msg-1"
    return mock


@pytest.fixture
def topic():
    from webproject.aws.topic import NotificationTopic

    return MagicMock(spec=NotificationTopic)


@pytest.fixture
def client(session_factory, store, queue, topic):
    from fastapi.testclient import TestClient

    from webproject import deps
    from webproject.main import app  # import after env is set

    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[deps.get_db] = _get_db
    app.dependency_overrides[deps.get_object_store] = lambda: store
    app.dependency_overrides[deps.get_upload_queue] = lambda: queue
    app.dependency_overrides[deps.get_notification_topic] = lambda: topic
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
