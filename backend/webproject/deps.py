from __future__ import annotations

import logging
import threading
from collections.abc import Generator
from typing import Any

import boto3
from botocore.config import Config
from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker

from webproject.aws.queue import UploadQueue
from webproject.aws.storage import ObjectStore
from webproject.aws.topic import NotificationTopic
from webproject.config import Settings, settings

log = logging.getLogger(__name__)

# Process-wide resources: created on first use, reused afterwards, released by close_clients().
_lock = threading.Lock()
_engine: Engine | None = None
_session_factory: sessionmaker[Session] | None = None
_clients: dict[str, Any] = {}

_boto_config = Config(
    retries={"max_attempts": 3, "mode": "standard"},
    connect_timeout=10,
    read_timeout=30,
)


def get_settings() -> Settings:
    return settings


def _database() -> tuple[Engine, sessionmaker[Session]]:
    global _engine, _session_factory
    engine, factory = _engine, _session_factory
    if engine is None or factory is None:
        with _lock:
            if _engine is None or _session_factory is None:
                kwargs: dict[str, Any] = {"future": True, "pool_pre_ping": True}
                if not settings.database_dsn.startswith("sqlite"):
                    kwargs["pool_size"] = int(settings.database_pool_size)
                _engine = create_engine(settings.database_dsn, **kwargs)
                _session_factory = sessionmaker(_engine, autoflush=False, autocommit=False, future=True)
                log.info("Database engine initialized")
            engine, factory = _engine, _session_factory
    return engine, factory


def get_engine() -> Engine:
    return _database()[0]


def get_db() -> Generator[Session, None, None]:
    _, factory = _database()
    db = factory()
    try:
        yield db
    finally:
        db.close()


def _client(service: str) -> Any:
    client = _clients.get(service)
    if client is None:
        with _lock:
            client = _clients.get(service)
            if client is None:
                client = boto3.client(
                    service,
                    region_name=settings.aws_region,
                    endpoint_url=settings.aws_endpoint_url,
                    config=_boto_config,
                )
                _clients[service] = client
                log.info("AWS %s client initialized (region=%s)", service, settings.aws_region)
    return client


def get_object_store() -> ObjectStore:
    return ObjectStore(_client("s3"), settings.s3_bucket)


def get_upload_queue() -> UploadQueue:
    return UploadQueue(_client("sqs"), settings.queue_url)


def get_notification_topic() -> NotificationTopic:
    return NotificationTopic(_client("sns"), settings.topic_arn)


def close_clients() -> None:
    """Releases the SDK clients and the database pool; the next call re-creates them."""
    global _engine, _session_factory
    with _lock:
        for service, client in list(_clients.items()):
            try:
                client.close()
            except Exception as e:
                log.warning("Failed to close %s client: %s", service, e)
        _clients.clear()
        if _engine is not None:
            _engine.dispose()
            _engine = None
            _session_factory = None
    log.info("Shared clients closed")
