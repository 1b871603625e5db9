"""Relays upload events from the queue to the notification topic."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Iterable

from botocore.exceptions import BotoCoreError, ClientError
from pydantic import ValidationError

from webproject.aws.errors import classify_client_error
from webproject.aws.queue import QueueMessage, UploadQueue
from webproject.aws.topic import NotificationTopic
from webproject.services.upload_events import (
    UploadEvent,
    format_notification,
    message_attributes,
    notification_subject,
)
from webproject.telemetry.metrics import notifications_forwarded_total

logger = logging.getLogger(__name__)

STATUS_SUCCESS = "success"
STATUS_FAILED = "failed"


@dataclass
class ItemResult:
    message_id: str
    status: str
    file_name: str | None = None
    topic_message_id: str | None = None
    reason: str | None = None
    timestamp: str = field(default_factory=lambda: datetime.now(UTC).isoformat())

    @property
    def ok(self) -> bool:
        return self.status == STATUS_SUCCESS

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "messageId": self.message_id,
            "status": self.status,
            "timestamp": self.timestamp,
        }
        if self.ok:
            out["snsMessageId"] = self.topic_message_id
            out["fileName"] = self.file_name
        else:
            out["reason"] = self.reason
        return out


@dataclass
class BatchReport:
    """
    Outcome of one batch.

    Policy is partial success: every message is attempted, successes are
    acknowledged, and only the failed message ids are handed back for retry.
    """

    items: list[ItemResult] = field(default_factory=list)

    @property
    def success_count(self) -> int:
        return sum(1 for item in self.items if item.ok)

    @property
    def failure_count(self) -> int:
        return sum(1 for item in self.items if not item.ok)

    @property
    def failed_ids(self) -> list[str]:
        return [item.message_id for item in self.items if not item.ok]

    @property
    def status_code(self) -> int:
        return 200 if self.failure_count == 0 else 207

    def to_dict(self) -> dict[str, Any]:
        return {
            "successCount": self.success_count,
            "failureCount": self.failure_count,
            "processedMessages": [item.to_dict() for item in self.items],
            "batchItemFailures": [{"itemIdentifier": mid} for mid in self.failed_ids],
        }


class NotificationForwarder:
    def __init__(self, queue: UploadQueue | None, topic: NotificationTopic) -> None:
        self.queue = queue
        self.topic = topic
        self.running = False

    def forward(self, message: QueueMessage) -> ItemResult:
        """Parse one queue message and publish it; never raises for per-message problems."""
        try:
            event = UploadEvent.parse_body(message.body)
        except ValidationError as e:
            reason = "Invalid upload event: " + "; ".join(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
            )
            return self._failed(message, reason)
        except ValueError as e:
            return self._failed(message, str(e))

        try:
            topic_message_id = self.topic.publish(
                notification_subject(event),
                format_notification(event),
                message_attributes(event),
            )
        except ClientError as e:
            err = classify_client_error(e)
            return self._failed(message, f"publish failed: {err.error_code}: {err.error_message}")
        except BotoCoreError as e:
            return self._failed(message, f"publish failed: {e}")

        logger.info(
            "Published notification for %s (message_id=%s, topic_message_id=%s)",
            event.file_name,
            message.message_id,
            topic_message_id,
        )
        notifications_forwarded_total.labels(status=STATUS_SUCCESS).inc()
        return ItemResult(
            message_id=message.message_id,
            status=STATUS_SUCCESS,
            file_name=event.file_name,
            topic_message_id=topic_message_id,
        )

    def _failed(self, message: QueueMessage, reason: str) -> ItemResult:
        logger.error("Error processing message %s: %s", message.message_id, reason)
        notifications_forwarded_total.labels(status=STATUS_FAILED).inc()
        return ItemResult(message_id=message.message_id, status=STATUS_FAILED, reason=reason)

    def handle_batch(self, messages: Iterable[QueueMessage]) -> BatchReport:
        report = BatchReport()
        # sequential, so notifications go out in queue order
        for message in messages:
            report.items.append(self.forward(message))
        if report.items:
            logger.info(
                "Batch processed: success=%d failed=%d",
                report.success_count,
                report.failure_count,
            )
        return report

    def run_once(self, max_messages: int = 10, wait_seconds: int = 20) -> BatchReport:
        if self.queue is None:
            raise RuntimeError("run_once requires a queue")
        messages = self.queue.receive(max_messages=max_messages, wait_seconds=wait_seconds)
        report = self.handle_batch(messages)
        done = {item.message_id for item in report.items if item.ok}
        # failed messages stay on the queue and come back after the visibility timeout
        to_delete = [m for m in messages if m.message_id in done]
        if to_delete:
            self.queue.delete_batch(to_delete)
        return report

    def run_forever(self, max_messages: int = 10, wait_seconds: int = 20, idle_sleep: float = 1.0) -> None:
        self.running = True
        logger.info("Starting notification forwarder (queue=%s)", getattr(self.queue, "queue_url", None))
        while self.running:
            try:
                self.run_once(max_messages=max_messages, wait_seconds=wait_seconds)
            except (ClientError, BotoCoreError) as exc:
                logger.error("Error in forwarder loop: %s", exc, exc_info=True)
                time.sleep(idle_sleep)
        logger.info("Notification forwarder stopped")

    def stop(self) -> None:
        self.running = False
