from __future__ import annotations

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from webproject.models import ImageUpload


def list_all_by_name(db: Session) -> list[ImageUpload]:
    """Full scan of upload records ordered by file name."""
    return list(db.scalars(select(ImageUpload).order_by(ImageUpload.file_name)))


def get_by_file_name(db: Session, file_name: str) -> ImageUpload | None:
    return db.scalar(select(ImageUpload).where(ImageUpload.file_name == file_name))


def upsert_upload(
    db: Session,
    *,
    file_name: str,
    file_size: int | None,
    file_extension: str | None,
    description: str | None = None,
    uploaded_by: str | None = None,
) -> ImageUpload:
    """
    Creates the record for an uploaded file, or refreshes it when the same
    name is uploaded again (the object key is overwritten in that case too).
    """
    row = get_by_file_name(db, file_name)
    if row is None:
        row = ImageUpload(file_name=file_name)
        db.add(row)
    row.file_size = file_size
    row.file_extension = file_extension[:10] if file_extension else None
    row.description = description
    row.uploaded_by = uploaded_by
    db.commit()
    db.refresh(row)
    return row


def delete_by_file_name(db: Session, file_name: str) -> bool:
    res = db.execute(delete(ImageUpload).where(ImageUpload.file_name == file_name))
    db.commit()
    return bool(res.rowcount)
