"""Object store backends used by the publisher."""

from __future__ import annotations

import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Protocol

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from shotline.models.config import StorageConfig

logger = logging.getLogger(__name__)

_NOT_FOUND_CODES = {"NoSuchKey", "404", "NotFound"}


class StoreError(RuntimeError):
    """Raised when an object store read or write fails (other than not-found)."""


class ObjectStore(Protocol):
    def put(self, key: str, body: bytes, content_type: str, cache_control: str) -> None: ...

    def get(self, key: str) -> Optional[bytes]:
        """Return the object body, or None when the key does not exist."""
        ...


@dataclass(frozen=True)
class FilesystemObjectStore:
    """Stores objects as files under ``base_dir``; keys map to relative paths."""

    base_dir: Path

    def _path(self, key: str) -> Path:
        path = (self.base_dir / key).resolve()
        if not path.is_relative_to(self.base_dir.resolve()):
            raise StoreError(f"Key escapes store root: {key}")
        return path

    def put(self, key: str, body: bytes, content_type: str, cache_control: str) -> None:
        path = self._path(key)
        tmp: Optional[str] = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=".tmp-")
            with os.fdopen(fd, "wb") as f:
                f.write(body)
            os.replace(tmp, path)
        except OSError as e:
            if tmp is not None:
                Path(tmp).unlink(missing_ok=True)
            raise StoreError(f"Failed to write {key}: {e}") from e
        logger.debug("Stored %s (%d bytes, %s)", key, len(body), content_type)

    def get(self, key: str) -> Optional[bytes]:
        path = self._path(key)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StoreError(f"Failed to read {key}: {e}") from e


class S3ObjectStore:
    """S3-compatible store (Cloudflare R2 by default)."""

    def __init__(self, bucket: str, client: Any):
        self.bucket = bucket
        self.client = client

    def put(self, key: str, body: bytes, content_type: str, cache_control: str) -> None:
        try:
            self.client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=body,
                ContentType=content_type,
                CacheControl=cache_control,
            )
        except (ClientError, BotoCoreError) as e:
            raise StoreError(f"Failed to put s3://{self.bucket}/{key}: {e}") from e
        logger.debug("Uploaded s3://%s/%s (%d bytes)", self.bucket, key, len(body))

    def get(self, key: str) -> Optional[bytes]:
        try:
            response = self.client.get_object(Bucket=self.bucket, Key=key)
            return response["Body"].read()
        except ClientError as e:
            code = str(e.response.get("Error", {}).get("Code", ""))
            if code in _NOT_FOUND_CODES:
                return None
            raise StoreError(f"Failed to get s3://{self.bucket}/{key}: {e}") from e
        except BotoCoreError as e:
            raise StoreError(f"Failed to get s3://{self.bucket}/{key}: {e}") from e


def create_store(config: StorageConfig) -> ObjectStore:
    """Build the object store described by the storage config."""
    if config.backend == "filesystem":
        logger.info("Using filesystem object store at %s", config.root_dir)
        return FilesystemObjectStore(Path(config.root_dir))

    missing = [
        name for name in ("bucket", "access_key_id", "secret_access_key")
        if not getattr(config, name)
    ]
    if not config.endpoint_url and not config.account_id:
        missing.append("account_id or endpoint_url")
    if missing:
        raise ValueError(f"R2 storage requires: {', '.join(missing)}")

    endpoint = config.endpoint_url or f"https://{config.account_id}.r2.cloudflarestorage.com"
    client = boto3.client(
        "s3",
        region_name="auto",
        endpoint_url=endpoint,
        aws_access_key_id=config.access_key_id,
        aws_secret_access_key=config.secret_access_key,
        config=BotoConfig(
            connect_timeout=config.timeout_seconds,
            read_timeout=config.timeout_seconds,
            retries={"max_attempts": 3, "mode": "standard"},
        ),
    )
    logger.info("Using R2 object store bucket=%s endpoint=%s", config.bucket, endpoint)
    return S3ObjectStore(config.bucket, client)
