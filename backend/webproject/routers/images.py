from __future__ import annotations

import logging
import random
import urllib.parse
from pathlib import PurePosixPath
from typing import Any

from botocore.exceptions import BotoCoreError, ClientError
from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from fastapi.responses import Response
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from webproject.aws.errors import is_not_found
from webproject.aws.queue import UploadQueue
from webproject.aws.storage import ObjectStore
from webproject.config import Settings
from webproject.deps import get_db, get_object_store, get_settings, get_upload_queue
from webproject.models.image_uploads import FILE_NAME_MAX_LENGTH
from webproject.repos import image_repo
from webproject.services.upload_events import UploadEvent
from webproject.telemetry.metrics import uploads_total

router = APIRouter(prefix="/api", tags=["images"])
log = logging.getLogger(__name__)


class UploadOut(BaseModel):
    message: str
    name: str
    eventId: str


class ImagesOut(BaseModel):
    images: list[str]


class ImageMetaOut(BaseModel):
    name: str
    size: int | None = None
    type: str | None = None
    lastModified: Any = None
    etag: str | None = None
    storageClass: str | None = None


class DeleteOut(BaseModel):
    message: str
    name: str


def _safe_name(raw: str | None) -> str:
    # keep the client's file name as the object key, minus any path it sent
    name = PurePosixPath((raw or "").replace("\\", "/")).name.strip()
    if not name:
        raise HTTPException(400, "No file provided")
    # object key and metadata row share the name, so it must fit the column
    if len(name) > FILE_NAME_MAX_LENGTH:
        raise HTTPException(400, f"File name longer than {FILE_NAME_MAX_LENGTH} characters")
    return name


def _build_content_disposition(filename: str) -> str:
    ascii_name = filename.encode("ascii", "ignore").decode().replace('"', "").replace("\\", "") or "download"
    quoted = urllib.parse.quote(filename, safe="")
    return f"attachment; filename=\"{ascii_name}\"; filename*=UTF-8''{quoted}"


@router.post("/upload", response_model=UploadOut)
async def upload_image(
    file: UploadFile | None = File(None),
    description: str | None = Form(None),
    cfg: Settings = Depends(get_settings),
    store: ObjectStore = Depends(get_object_store),
    queue: UploadQueue = Depends(get_upload_queue),
    db: Session = Depends(get_db),
) -> UploadOut:
    if file is None:
        raise HTTPException(400, "No file provided")
    if (file.content_type or "") not in cfg.upload_allowed_mimes:
        raise HTTPException(400, "Only image files are allowed")
    data = await file.read()
    if not data:
        raise HTTPException(400, "Empty file")
    if len(data) > cfg.upload_max_bytes:
        raise HTTPException(413, "File too large")

    file_name = _safe_name(file.filename)
    event = UploadEvent.for_upload(file_name, len(data), description=description)

    try:
        store.put_image(
            file_name,
            data,
            content_type=file.content_type,
            metadata={
                "uploaded-at": event.timestamp,
                "uploaded-from": "web-application",
                "file-size": str(len(data)),
            },
        )
    except (ClientError, BotoCoreError) as e:
        uploads_total.labels(result="storage_error").inc()
        log.error("Upload to bucket failed for %s: %s", file_name, e, exc_info=True)
        raise HTTPException(500, f"Error uploading image: {e}") from e

    try:
        image_repo.upsert_upload(
            db,
            file_name=file_name,
            file_size=len(data),
            file_extension=PurePosixPath(file_name).suffix or None,
            description=event.description,
            uploaded_by=event.uploaded_by,
        )
    except SQLAlchemyError as e:
        db.rollback()
        uploads_total.labels(result="db_error").inc()
        # object is already stored; the consistency check will report it as orphaned
        log.error("DATABASE FAILED after successful upload of %s: %s", file_name, e, exc_info=True)
        raise HTTPException(500, "Error recording image metadata") from e

    try:
        queue.send(event.to_message())
    except (ClientError, BotoCoreError) as e:
        uploads_total.labels(result="queue_error").inc()
        log.error("Failed to queue upload event %s: %s", event.event_id, e, exc_info=True)
        raise HTTPException(500, f"Image stored but notification could not be queued: {e}") from e

    uploads_total.labels(result="ok").inc()
    return UploadOut(
        message="Image uploaded successfully and sent to notification queue",
        name=file_name,
        eventId=event.event_id,
    )


@router.get("/images", response_model=ImagesOut)
def list_images(store: ObjectStore = Depends(get_object_store)) -> ImagesOut:
    try:
        return ImagesOut(images=store.list_keys())
    except (ClientError, BotoCoreError) as e:
        log.error("List error: %s", e)
        raise HTTPException(500, f"Error listing images: {e}") from e


def _fetch(store: ObjectStore, name: str) -> tuple[bytes, str | None]:
    try:
        return store.get_object(name)
    except ClientError as e:
        if is_not_found(e):
            raise HTTPException(404, "Image not found") from e
        log.error("Get image error for %s: %s", name, e)
        raise HTTPException(500, f"Error reading image: {e}") from e
    except BotoCoreError as e:
        raise HTTPException(500, f"Error reading image: {e}") from e


@router.get("/images/{image_name}")
def get_image(image_name: str, store: ObjectStore = Depends(get_object_store)) -> Response:
    body, content_type = _fetch(store, image_name)
    return Response(content=body, media_type=content_type or "application/octet-stream")


@router.get("/download/{image_name}")
def download_image(image_name: str, store: ObjectStore = Depends(get_object_store)) -> Response:
    body, content_type = _fetch(store, image_name)
    return Response(
        content=body,
        media_type=content_type or "application/octet-stream",
        headers={"Content-Disposition": _build_content_disposition(image_name)},
    )


def _head(store: ObjectStore, name: str) -> ImageMetaOut:
    try:
        return ImageMetaOut(**store.head(name))
    except ClientError as e:
        if is_not_found(e):
            raise HTTPException(404, "Image not found") from e
        raise HTTPException(500, f"Error fetching metadata: {e}") from e
    except BotoCoreError as e:
        raise HTTPException(500, f"Error fetching metadata: {e}") from e


@router.get("/metadata/{image_name}", response_model=ImageMetaOut)
def image_metadata(image_name: str, store: ObjectStore = Depends(get_object_store)) -> ImageMetaOut:
    return _head(store, image_name)


@router.get("/random-metadata", response_model=ImageMetaOut)
def random_image_metadata(store: ObjectStore = Depends(get_object_store)) -> ImageMetaOut:
    try:
        keys = store.list_keys()
    except (ClientError, BotoCoreError) as e:
        raise HTTPException(500, f"Error fetching random image: {e}") from e
    if not keys:
        raise HTTPException(404, "No images found")
    return _head(store, random.choice(keys))


@router.delete("/delete/{image_name}", response_model=DeleteOut)
def delete_image(
    image_name: str,
    store: ObjectStore = Depends(get_object_store),
    db: Session = Depends(get_db),
) -> DeleteOut:
    try:
        store.delete(image_name)
    except (ClientError, BotoCoreError) as e:
        log.error("Delete error for %s: %s", image_name, e)
        raise HTTPException(500, f"Error deleting image: {e}") from e
    try:
        removed = image_repo.delete_by_file_name(db, image_name)
    except SQLAlchemyError as e:
        db.rollback()
        log.error("DATABASE FAILED after deleting object %s: %s", image_name, e, exc_info=True)
        raise HTTPException(500, "Error deleting image metadata") from e
    if not removed:
        log.info("No metadata record for deleted object %s", image_name)
    return DeleteOut(message="Image deleted successfully", name=image_name)
