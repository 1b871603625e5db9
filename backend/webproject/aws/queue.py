from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)


@dataclass
class QueueMessage:
    message_id: str
    body: str
    receipt_handle: str | None = None


class UploadQueue:
    """SQS queue carrying upload events from the web tier to the notification forwarder."""

    def __init__(self, client: Any, queue_url: str) -> None:
        self.client = client
        self.queue_url = queue_url

    def send(self, event: dict[str, Any]) -> str:
        resp = self.client.send_message(
            QueueUrl=self.queue_url,
            MessageBody=json.dumps(event, default=str),
        )
        message_id = resp.get("MessageId", "")
        logger.info("Upload event queued: event_id=%s message_id=%s", event.get("eventId"), message_id)
        return message_id

    def receive(self, max_messages: int = 10, wait_seconds: int = 20) -> list[QueueMessage]:
        resp = self.client.receive_message(
            QueueUrl=self.queue_url,
            MaxNumberOfMessages=max(1, min(max_messages, 10)),
            WaitTimeSeconds=max(0, min(wait_seconds, 20)),
        )
        return [
            QueueMessage(
                message_id=m["MessageId"],
                body=m.get("Body", ""),
                receipt_handle=m.get("ReceiptHandle"),
            )
            for m in resp.get("Messages") or []
        ]

    def delete_batch(self, messages: list[QueueMessage]) -> list[str]:
        """Deletes the given messages; returns the ids SQS refused to delete."""
        entries = [
            {"Id": str(idx), "ReceiptHandle": m.receipt_handle}
            for idx, m in enumerate(messages)
            if m.receipt_handle
        ]
        failed: list[str] = []
        # SQS accepts at most 10 entries per batch call
        for start in range(0, len(entries), 10):
            chunk = entries[start : start + 10]
            resp = self.client.delete_message_batch(QueueUrl=self.queue_url, Entries=chunk)
            for item in resp.get("Failed") or []:
                failed.append(messages[int(item["Id"])].message_id)
        if failed:
            logger.warning("Failed to delete %d messages from queue: %s", len(failed), failed)
        return failed
