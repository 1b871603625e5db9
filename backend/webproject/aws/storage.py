from __future__ import annotations

import logging
from typing import Any

from webproject.services.reconciliation import StorageEntry

logger = logging.getLogger(__name__)

DIRECTORY_SUFFIX = "/"


class ObjectStore:
    """Image bucket operations on top of a boto3 S3 client."""

    def __init__(self, client: Any, bucket: str) -> None:
        self.client = client
        self.bucket = bucket

    def list_entries(self, prefix: str = "") -> list[StorageEntry]:
        """
        Enumerate every object in the bucket across all listing pages.

        Directory markers (keys ending with "/") are dropped, they hold no file.
        """
        entries: list[StorageEntry] = []
        paginator = self.client.get_paginator("list_objects_v2")
        for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix):
            for obj in page.get("Contents") or []:
                key = obj["Key"]
                if key.endswith(DIRECTORY_SUFFIX):
                    continue
                entries.append(
                    StorageEntry(key=key, size=obj.get("Size"), modified=obj.get("LastModified"))
                )
        logger.debug("Listed %d objects in %s", len(entries), self.bucket)
        return entries

    def list_keys(self) -> list[str]:
        return [entry.key for entry in self.list_entries()]

    def put_image(
        self,
        key: str,
        body: bytes,
        *,
        content_type: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> None:
        params: dict[str, Any] = {"Bucket": self.bucket, "Key": key, "Body": body}
        if content_type:
            params["ContentType"] = content_type
        if metadata:
            params["Metadata"] = metadata
        self.client.put_object(**params)
        logger.info("Object uploaded: %s", key)

    def get_object(self, key: str) -> tuple[bytes, str | None]:
        resp = self.client.get_object(Bucket=self.bucket, Key=key)
        body = resp["Body"].read()
        return body, resp.get("ContentType")

    def head(self, key: str) -> dict[str, Any]:
        resp = self.client.head_object(Bucket=self.bucket, Key=key)
        return {
            "name": key,
            "size": resp.get("ContentLength"),
            "type": resp.get("ContentType"),
            "lastModified": resp.get("LastModified"),
            "etag": resp.get("ETag"),
            "storageClass": resp.get("StorageClass", "STANDARD"),
        }

    def delete(self, key: str) -> None:
        self.client.delete_object(Bucket=self.bucket, Key=key)
        logger.info("Object deleted: %s", key)

    def ping(self) -> None:
        self.client.head_bucket(Bucket=self.bucket)
