"""
Reconciliation of metadata records against stored objects.

Both sides are matched purely by name: a record's ``file_name`` against an
object's ``key``. Sizes and timestamps are carried along for reporting only,
so a record that disagrees with its object on size is still a match.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Sequence

MISSING_IN_STORAGE_REASON = "metadata record exists but object missing from storage"
ORPHANED_IN_STORAGE_REASON = "object exists but no metadata record"
EMPTY_FILE_NAME_REASON = "metadata record has an empty file name"
EMPTY_KEY_REASON = "object has an empty key"


@dataclass(frozen=True)
class MetadataRecord:
    id: Any
    file_name: str
    file_size: int | None = None
    file_extension: str | None = None
    uploaded_at: datetime | None = None


@dataclass(frozen=True)
class StorageEntry:
    key: str
    size: int | None = None
    modified: datetime | None = None


@dataclass(frozen=True)
class MissingInStorage:
    file_name: str
    id: Any
    reason: str = MISSING_IN_STORAGE_REASON

    def to_dict(self) -> dict[str, Any]:
        return {"fileName": self.file_name, "id": self.id, "reason": self.reason}


@dataclass(frozen=True)
class OrphanedInStorage:
    key: str
    size: int | None
    reason: str = ORPHANED_IN_STORAGE_REASON

    def to_dict(self) -> dict[str, Any]:
        return {"key": self.key, "size": self.size, "reason": self.reason}


@dataclass(frozen=True)
class ConsistencyReport:
    missing_in_storage: list[MissingInStorage] = field(default_factory=list)
    orphaned_in_storage: list[OrphanedInStorage] = field(default_factory=list)
    total_matched: int = 0

    @property
    def is_consistent(self) -> bool:
        return not self.missing_in_storage and not self.orphaned_in_storage

    @property
    def total_inconsistencies(self) -> int:
        return len(self.missing_in_storage) + len(self.orphaned_in_storage)

    def to_dict(self) -> dict[str, Any]:
        return {
            "isConsistent": self.is_consistent,
            "missingInStorage": [item.to_dict() for item in self.missing_in_storage],
            "orphanedInStorage": [item.to_dict() for item in self.orphaned_in_storage],
            "details": {
                "totalMatched": self.total_matched,
                "totalInconsistencies": self.total_inconsistencies,
            },
        }


def reconcile(
    records: Sequence[MetadataRecord],
    entries: Sequence[StorageEntry],
) -> ConsistencyReport:
    """
    Compare full snapshots of both sides and report what each one lacks.

    Discrepancies keep the order of their source sequence. Empty names are
    left out of both lookup sets, so they are always reported and never
    matched to each other.
    """
    storage_keys = {entry.key for entry in entries if entry.key}
    record_names = {record.file_name for record in records if record.file_name}

    missing: list[MissingInStorage] = []
    for record in records:
        if record.file_name in storage_keys:
            continue
        reason = MISSING_IN_STORAGE_REASON if record.file_name else EMPTY_FILE_NAME_REASON
        missing.append(MissingInStorage(file_name=record.file_name, id=record.id, reason=reason))

    orphaned: list[OrphanedInStorage] = []
    for entry in entries:
        if entry.key in record_names:
            continue
        reason = ORPHANED_IN_STORAGE_REASON if entry.key else EMPTY_KEY_REASON
        orphaned.append(OrphanedInStorage(key=entry.key, size=entry.size, reason=reason))

    return ConsistencyReport(
        missing_in_storage=missing,
        orphaned_in_storage=orphaned,
        total_matched=len(records) - len(missing),
    )
