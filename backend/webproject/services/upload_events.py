"""Upload event envelope and its e-mail rendering."""

from __future__ import annotations

import json
import uuid
from datetime import UTC, datetime
from pathlib import PurePosixPath
from typing import Any

from pydantic import BaseModel, Field, field_validator

EVENT_TYPE = "ImageUpload"
SUBJECT_PREFIX = "Image Upload Notification: "
SNS_SUBJECT_MAX = 100


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


class UploadEvent(BaseModel):
    """Message put on the upload queue by the web tier."""

    file_name: str = Field(alias="fileName")
    file_size: int = Field(default=0, alias="fileSize")
    file_extension: str = Field(default=".unknown", alias="fileExtension")
    description: str = "No description provided"
    uploaded_by: str = Field(default="System", alias="uploadedBy")
    timestamp: str = Field(default_factory=_now_iso)
    event_id: str = Field(default="N/A", alias="eventId")

    model_config = {"populate_by_name": True, "extra": "ignore"}

    @field_validator("file_name")
    @classmethod
    def _v_file_name(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("missing fileName")
        return v

    @field_validator("file_size", mode="before")
    @classmethod
    def _v_file_size(cls, v: Any) -> int:
        return int(v or 0)

    @field_validator("file_extension", "description", "uploaded_by", "event_id", "timestamp", mode="before")
    @classmethod
    def _v_blank_to_default(cls, v: Any, info: Any) -> Any:
        # null / "" fall back to the field default, as producers omit them freely
        if v is None or v == "":
            return cls.model_fields[info.field_name].get_default(call_default_factory=True)
        return v

    @classmethod
    def for_upload(
        cls,
        file_name: str,
        file_size: int,
        *,
        description: str | None = None,
        uploaded_by: str = "WebApplication",
    ) -> UploadEvent:
        return cls(
            file_name=file_name,
            file_size=file_size,
            file_extension=PurePosixPath(file_name).suffix,
            description=description or "Image uploaded via web application",
            uploaded_by=uploaded_by,
            event_id=f"upload-{uuid.uuid4().hex}",
        )

    @classmethod
    def parse_body(cls, body: str) -> UploadEvent:
        """Raises ValueError for malformed JSON and pydantic.ValidationError for a bad envelope."""
        try:
            raw = json.loads(body)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON format: {e.msg}") from e
        if not isinstance(raw, dict):
            raise ValueError("Invalid upload event: body is not an object")
        return cls.model_validate(raw)

    def to_message(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)

    @property
    def file_size_mb(self) -> str:
        return f"{self.file_size / (1024 * 1024):.2f}"


def notification_subject(event: UploadEvent) -> str:
    subject = SUBJECT_PREFIX + event.file_name
    if len(subject) > SNS_SUBJECT_MAX:
        subject = subject[: SNS_SUBJECT_MAX - 1] + "…"
    return subject


def format_notification(event: UploadEvent) -> str:
    return "\n".join(
        [
            "================================",
            "IMAGE UPLOAD NOTIFICATION",
            "================================",
            "",
            f"File Name: {event.file_name}",
            f"File Size: {event.file_size_mb} MB",
            f"Extension: {event.file_extension}",
            f"Description: {event.description}",
            f"Uploaded By: {event.uploaded_by}",
            f"Event ID: {event.event_id}",
            f"Timestamp: {event.timestamp}",
            "",
            "================================",
            "This is an automated notification from webproject.",
            "Please do not reply to this email.",
            "================================",
        ]
    )


def message_attributes(event: UploadEvent) -> dict[str, dict[str, str]]:
    return {
        "ImageExtension": {"StringValue": event.file_extension, "DataType": "String"},
        "FileSize": {"StringValue": str(event.file_size), "DataType": "Number"},
        "EventType": {"StringValue": EVENT_TYPE, "DataType": "String"},
        "EventId": {"StringValue": event.event_id, "DataType": "String"},
    }
