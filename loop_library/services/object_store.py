"""Object store adapter for loop audio.

Binary payloads live under `<id>.<extension>` in two buckets: uploads wait in
the submissions bucket until a moderator publishes them to the loops bucket.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass
from uuid import UUID

from botocore.client import BaseClient
from botocore.exceptions import BotoCoreError, ClientError

from loop_library.core.errors import NotFoundError, UpstreamStorageError

logger = logging.getLogger(__name__)

STREAM_CHUNK_SIZE = 64 * 1024
_MISSING_CODES = {"NoSuchKey", "404", "NotFound"}


def object_key(owner_id: UUID | str, extension: str) -> str:
    """Key for one stored file of a submission or loop."""
    return f"{owner_id}.{extension}"


@dataclass
class StoredObject:
    body: Iterator[bytes]
    content_length: int | None = None


class ObjectStore:
    """put/get/copy/delete of named objects within named buckets."""

    def __init__(self, client: BaseClient):
        self._client = client

    def _wrap(self, exc: Exception, action: str, bucket: str, key: str) -> Exception:
        if isinstance(exc, ClientError):
            code = str(exc.response.get("Error", {}).get("Code", ""))
            if code in _MISSING_CODES:
                return NotFoundError("Object not found")
        logger.error("Object store %s failed for %s/%s: %s", action, bucket, key, exc)
        return UpstreamStorageError()

    def put(self, bucket: str, key: str, data: bytes, content_type: str) -> None:
        try:
            self._client.put_object(Bucket=bucket, Key=key, Body=data, ContentType=content_type)
        except (BotoCoreError, ClientError) as exc:
            raise self._wrap(exc, "put", bucket, key) from exc

    def get(self, bucket: str, key: str) -> StoredObject:
        try:
            response = self._client.get_object(Bucket=bucket, Key=key)
        except (BotoCoreError, ClientError) as exc:
            raise self._wrap(exc, "get", bucket, key) from exc
        body = response["Body"]
        return StoredObject(
            body=body.iter_chunks(chunk_size=STREAM_CHUNK_SIZE),
            content_length=response.get("ContentLength"),
        )

    def copy(self, source_bucket: str, key: str, target_bucket: str) -> None:
        try:
            self._client.copy_object(
                Bucket=target_bucket,
                Key=key,
                CopySource={"Bucket": source_bucket, "Key": key},
            )
        except (BotoCoreError, ClientError) as exc:
            raise self._wrap(exc, "copy", source_bucket, key) from exc

    def delete(self, bucket: str, key: str) -> None:
        try:
            self._client.delete_object(Bucket=bucket, Key=key)
        except (BotoCoreError, ClientError) as exc:
            raise self._wrap(exc, "delete", bucket, key) from exc
