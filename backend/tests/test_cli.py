from __future__ import annotations

import json
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from webproject import cli, deps
from webproject.aws.queue import QueueMessage, UploadQueue
from webproject.aws.topic import NotificationTopic
from webproject.repos.image_repo import upsert_upload
from webproject.services.reconciliation import StorageEntry


@pytest.fixture
def wired(monkeypatch, session_factory, store):
    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    monkeypatch.setattr(deps, "get_db", _get_db)
    monkeypatch.setattr(deps, "get_object_store", lambda: store)
    monkeypatch.setattr(deps, "close_clients", lambda: None)
    return store


def _read(path):
    with open(path, encoding="utf-8") as handle:
        return json.load(handle)


def test_check_consistency_consistent(wired, tmp_path):
    out = tmp_path / "result.json"

    code = cli.run_cli(["check-consistency", "--output-json", str(out), "--fail-on-inconsistent"])

    assert code == 0
    result = _read(out)
    assert result["statusCode"] == 200
    assert result["source"] == "scheduled"
    assert result["consistency"]["isConsistent"] is True


def test_check_consistency_inconsistent_exit_code(wired, session_factory, tmp_path):
    with session_factory() as db:
        upsert_upload(db, file_name="a.png", file_size=1, file_extension=".png")
    wired.list_entries.return_value = [StorageEntry(key="b.png", size=2)]
    out = tmp_path / "result.json"

    lenient = cli.run_cli(["check-consistency", "--output-json", str(out)])
    strict = cli.run_cli(["check-consistency", "--output-json", str(out), "--fail-on-inconsistent", "--source", "cron"])

    assert lenient == 0
    assert strict == cli.EXIT_INCONSISTENT
    consistency = _read(out)["consistency"]
    assert consistency["isConsistent"] is False
    assert consistency["missingInStorage"][0]["fileName"] == "a.png"
    assert consistency["orphanedInStorage"][0]["key"] == "b.png"
    assert _read(out)["source"] == "cron"


def test_check_consistency_storage_failure(wired, tmp_path):
    wired.list_entries.side_effect = ClientError({"Error": {"Code": "AccessDenied", "Message": "no"}}, "ListObjectsV2")
    out = tmp_path / "result.json"

    code = cli.run_cli(["check-consistency", "--output-json", str(out)])

    assert code == cli.EXIT_INFRA_ERROR
    result = _read(out)
    assert result["statusCode"] == 500
    assert result["consistency"] == {"isConsistent": False}


def test_init_db(monkeypatch, capsys):
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    monkeypatch.setattr(deps, "get_engine", lambda: engine)
    monkeypatch.setattr(deps, "close_clients", lambda: None)

    assert cli.run_cli(["init-db"]) == 0
    assert '"Table initialized successfully"' in capsys.readouterr().out
    engine.dispose()


def test_forward_notifications_once(monkeypatch):
    queue = MagicMock(spec=UploadQueue)
    queue.receive.return_value = [QueueMessage("m1", json.dumps({"fileName": "a.png"}), "rh-1")]
    queue.delete_batch.return_value = []
    topic = MagicMock(spec=NotificationTopic)
    topic.publish.return_value = "sns-1"
    monkeypatch.setattr(deps, "get_upload_queue", lambda: queue)
    monkeypatch.setattr(deps, "get_notification_topic", lambda: topic)
    monkeypatch.setattr(deps, "close_clients", lambda: None)

    assert cli.run_cli(["forward-notifications", "--once"]) == 0
    queue.delete_batch.assert_called_once()


def test_unknown_command_exits():
    with pytest.raises(SystemExit):
        cli.parse_args(["bogus"])
