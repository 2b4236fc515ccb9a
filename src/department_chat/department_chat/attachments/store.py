from __future__ import annotations

import logging
import os
import uuid
from typing import Any, Optional, Protocol

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ..core.constants import DEFAULT_MIME_TYPE
from .model import StoredAttachment

logger = logging.getLogger(__name__)

MESSAGES_PREFIX = "messages"


class AttachmentStore(Protocol):
    def store(self, data: bytes, *, file_name: str, mime_type: str, owner_id: int) -> StoredAttachment:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError


def _blob_name(file_name: str) -> str:
    _, ext = os.path.splitext(file_name or "")
    return f"{uuid.uuid4().hex}{ext.lower()}"


class LocalAttachmentStore(AttachmentStore):
    """Writes blobs under `base_dir/messages/` and serves them from `public_prefix`."""

    def __init__(self, base_dir: str, public_prefix: str = "/uploads"):
        self.base_dir = base_dir
        self.public_prefix = public_prefix.rstrip("/")

    def _full_path(self, key: str) -> str:
        return os.path.join(self.base_dir, *key.split("/"))

    def store(self, data: bytes, *, file_name: str, mime_type: str, owner_id: int) -> StoredAttachment:
        key = f"{MESSAGES_PREFIX}/{_blob_name(file_name)}"
        full_path = self._full_path(key)
        os.makedirs(os.path.dirname(full_path), exist_ok=True)
        with open(full_path, "wb") as handle:
            handle.write(data)
        return StoredAttachment(
            url=f"{self.public_prefix}/{key}",
            key=key,
            size=len(data),
            mime_type=mime_type or DEFAULT_MIME_TYPE,
        )

    def delete(self, key: str) -> None:
        full_path = self._full_path(key)
        if os.path.exists(full_path):
            os.remove(full_path)


class S3AttachmentStore(AttachmentStore):
    def __init__(self, bucket: str, client: Any, *, region: Optional[str] = None):
        self.bucket = bucket
        self.client = client
        self.region = region or "us-east-1"

    def _object_url(self, key: str) -> str:
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{key}"

    def store(self, data: bytes, *, file_name: str, mime_type: str, owner_id: int) -> StoredAttachment:
        key = f"{MESSAGES_PREFIX}/{int(owner_id)}/{_blob_name(file_name)}"
        content_type = mime_type or DEFAULT_MIME_TYPE
        try:
            self.client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
                ACL="private",
            )
        except (BotoCoreError, ClientError) as exc:
            raise RuntimeError(f"S3 upload failed: {exc}") from exc
        return StoredAttachment(url=self._object_url(key), key=key, size=len(data), mime_type=content_type)

    def delete(self, key: str) -> None:
        try:
            self.client.delete_object(Bucket=self.bucket, Key=key)
        except (BotoCoreError, ClientError) as exc:
            raise RuntimeError(f"S3 delete failed: {exc}") from exc


def build_attachment_store(settings: Any) -> AttachmentStore:
    """Pick the backend from settings.

    Local disk when STORAGE_PROVIDER is "local" or AWS credentials are missing.
    """
    provider = (getattr(settings, "STORAGE_PROVIDER", "") or "").lower()
    access_key = getattr(settings, "AWS_ACCESS_KEY_ID", None)
    secret_key = getattr(settings, "AWS_SECRET_ACCESS_KEY", None)

    if provider == "local" or not access_key or not secret_key:
        upload_dir = getattr(settings, "UPLOAD_DIR", None) or os.path.join(os.getcwd(), "uploads")
        logger.info("Attachment store: local disk at %s", upload_dir)
        return LocalAttachmentStore(upload_dir)

    region = getattr(settings, "AWS_REGION", None) or "us-east-1"
    bucket = getattr(settings, "AWS_S3_BUCKET", None) or "department-chat-attachments"
    client = boto3.client(
        "s3",
        aws_access_key_id=access_key,
        aws_secret_access_key=secret_key,
        region_name=region,
    )
    logger.info("Attachment store: s3://%s (%s)", bucket, region)
    return S3AttachmentStore(bucket, client, region=region)
