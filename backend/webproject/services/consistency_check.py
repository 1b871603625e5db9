"""
Invocation wrapper around the reconciliation engine.

Fetches both snapshots, reconciles them, logs and records the outcome, and
shapes the response. A report with mismatches is still a successful run;
only a failure to fetch either snapshot raises ConsistencyCheckError.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any, Mapping

from botocore.exceptions import BotoCoreError, ClientError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from webproject.aws.storage import ObjectStore
from webproject.repos.image_repo import list_all_by_name
from webproject.services.reconciliation import (
    ConsistencyReport,
    MetadataRecord,
    StorageEntry,
    reconcile,
)
from webproject.telemetry.logging import get_logger
from webproject.telemetry.metrics import consistency_checks_total, consistency_inconsistencies

log = logging.getLogger(__name__)

DEFAULT_SOURCE = "direct-invoke"


class ConsistencyCheckError(RuntimeError):
    """The check could not run: one of the two snapshots was unavailable."""

    def __init__(self, stage: str, cause: Exception) -> None:
        super().__init__(f"{stage} snapshot unavailable: {cause}")
        self.stage = stage
        self.cause = cause


def resolve_source(event: Mapping[str, Any] | None) -> str:
    """Label of whatever triggered the check (scheduler, API, web app); observability only."""
    if not event:
        return DEFAULT_SOURCE
    for key in ("detail-type", "detailType", "source"):
        val = event.get(key)
        if isinstance(val, str) and val.strip():
            return val.strip()
    return DEFAULT_SOURCE


def fetch_records(db: Session) -> list[MetadataRecord]:
    try:
        rows = list_all_by_name(db)
    except SQLAlchemyError as e:
        raise ConsistencyCheckError("metadata", e) from e
    return [
        MetadataRecord(
            id=row.id,
            file_name=row.file_name,
            file_size=row.file_size,
            file_extension=row.file_extension,
            uploaded_at=row.uploaded_at,
        )
        for row in rows
    ]


def fetch_entries(store: ObjectStore) -> list[StorageEntry]:
    try:
        return store.list_entries()
    except (ClientError, BotoCoreError) as e:
        raise ConsistencyCheckError("storage", e) from e


def run_consistency_check(db: Session, store: ObjectStore, source: str = DEFAULT_SOURCE) -> dict[str, Any]:
    try:
        records = fetch_records(db)
        log.info("Found %d records in database", len(records))
        entries = fetch_entries(store)
        log.info("Found %d objects in bucket %s", len(entries), store.bucket)
    except ConsistencyCheckError as e:
        consistency_checks_total.labels(source=source, result="error").inc()
        log.error("Consistency check (%s) failed at %s stage: %s", source, e.stage, e.cause)
        raise

    report = reconcile(records, entries)
    log_consistency_result(source, report)

    consistency_checks_total.labels(
        source=source, result="consistent" if report.is_consistent else "inconsistent"
    ).inc()
    consistency_inconsistencies.labels(kind="missing_in_storage").set(len(report.missing_in_storage))
    consistency_inconsistencies.labels(kind="orphaned_in_storage").set(len(report.orphaned_in_storage))

    body = report.to_dict()
    return {
        "statusCode": 200,
        "timestamp": datetime.now(UTC).isoformat(),
        "source": source,
        "consistency": {
            "isConsistent": body["isConsistent"],
            "totalDBImages": len(records),
            "totalS3Images": len(entries),
            "missingInStorage": body["missingInStorage"],
            "orphanedInStorage": body["orphanedInStorage"],
            "details": body["details"],
        },
    }


def failure_response(source: str, error: Exception) -> dict[str, Any]:
    return {
        "statusCode": 500,
        "timestamp": datetime.now(UTC).isoformat(),
        "source": source,
        "error": str(error),
        "consistency": {"isConsistent": False},
    }


def log_consistency_result(source: str, report: ConsistencyReport) -> None:
    logger = get_logger().bind(source=source.upper())
    logger.info(
        "consistency_check_result",
        is_consistent=report.is_consistent,
        total_matched=report.total_matched,
        total_inconsistencies=report.total_inconsistencies,
    )
    for item in report.missing_in_storage:
        logger.warning("missing_in_storage", file_name=item.file_name, record_id=item.id)
    for item in report.orphaned_in_storage:
        logger.warning("orphaned_in_storage", key=item.key, size=item.size)
