"""이미지 저장소(로컬 디스크 / S3 호환 오브젝트 스토리지) 추상화 계층입니다.

두 구현 모두 같은 기능 집합을 제공합니다.

* ``store(namespace, data, extension) -> reference``
* ``delete(reference) -> bool`` (없는 대상은 ``False``, 여러 번 호출해도 안전)
* ``list_references(namespace) -> list[StoredObject]`` (고아 파일 정리용)
"""

from __future__ import annotations

import logging
import os
import secrets
import string
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from functools import lru_cache
from pathlib import Path
from typing import Protocol
from urllib.parse import urlparse

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from cms.config import settings
from cms.utils.media_paths import UPLOADS_PREFIX, normalize, to_remote_object_id

logger = logging.getLogger(__name__)

REMOTE_EXTENSION = ".jpg"
REMOTE_CONTENT_TYPE = "image/jpeg"
_SUFFIX_ALPHABET = string.digits + string.ascii_lowercase
_MAX_NAME_ATTEMPTS = 5


class StorageError(Exception):
    """Base exception for storage operations."""

    def __init__(self, reference: str, reason: str) -> None:
        super().__init__(f"{reason}: {reference}")
        self.reference = reference
        self.reason = reason


class StorageWriteError(StorageError):
    """Persisting an uploaded asset failed."""


class StorageDeleteError(StorageError):
    """Removing an asset failed for a reason other than it being absent."""


@dataclass(frozen=True)
class StoredObject:
    reference: str
    modified_at: datetime


class StorageBackend(Protocol):
    def store(self, namespace: str, data: bytes, extension: str) -> str:
        ...

    def delete(self, reference: str) -> bool:
        ...

    def list_references(self, namespace: str) -> list[StoredObject]:
        ...


def generate_filename(extension: str) -> str:
    ext = extension if extension.startswith(".") else f".{extension}"
    suffix = "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(4))
    return f"{int(time.time() * 1000)}_{suffix}{ext.lower()}"


def _clean_namespace(namespace: str) -> str:
    parts = [p for p in str(namespace or "").replace("\\", "/").split("/") if p and p not in {".", ".."}]
    if not parts:
        raise ValueError(f"invalid storage namespace: {namespace!r}")
    return "/".join(parts)


class LocalStorageBackend:
    """Stores assets under ``upload_root``; references look like ``uploads/<ns>/<file>``."""

    def __init__(self, upload_root: Path | str) -> None:
        self.upload_root = Path(upload_root).resolve()

    def store(self, namespace: str, data: bytes, extension: str) -> str:
        folder = self.upload_root / _clean_namespace(namespace)
        try:
            folder.mkdir(parents=True, exist_ok=True)
            for _ in range(_MAX_NAME_ATTEMPTS):
                filename = generate_filename(extension)
                try:
                    with open(folder / filename, "xb") as f:
                        f.write(data)
                except FileExistsError:
                    continue
                reference = f"{UPLOADS_PREFIX}{_clean_namespace(namespace)}/{filename}"
                logger.info("[storage] stored %s (%d bytes)", reference, len(data))
                return reference
        except OSError as exc:
            raise StorageWriteError(str(folder), str(exc)) from exc
        raise StorageWriteError(str(folder), "could not allocate a unique filename")

    def delete(self, reference: str) -> bool:
        canonical = normalize(reference, self.upload_root)
        if canonical is None:
            logger.error("[storage] refusing to delete path outside upload root: %s", reference)
            return False
        target = self.upload_root / canonical[len(UPLOADS_PREFIX):]
        if not target.is_file():
            logger.info("[storage] delete skipped, file not found: %s", canonical)
            return False
        try:
            target.unlink()
        except FileNotFoundError:
            # lost a race with another deleter
            return False
        except OSError as exc:
            raise StorageDeleteError(canonical, str(exc)) from exc
        logger.info("[storage] deleted %s", canonical)
        return True

    def list_references(self, namespace: str) -> list[StoredObject]:
        root = self.upload_root / _clean_namespace(namespace)
        if not root.exists():
            return []
        found: list[StoredObject] = []
        for dirpath, _, filenames in os.walk(root):
            for filename in filenames:
                abs_path = Path(dirpath) / filename
                try:
                    mtime = abs_path.stat().st_mtime
                except FileNotFoundError:
                    continue
                rel_path = abs_path.relative_to(self.upload_root).as_posix()
                found.append(
                    StoredObject(
                        reference=f"{UPLOADS_PREFIX}{rel_path}",
                        modified_at=datetime.fromtimestamp(mtime, tz=timezone.utc),
                    )
                )
        return found

    def remove_empty_dirs(self, namespace: str) -> None:
        root = self.upload_root / _clean_namespace(namespace)
        if not root.exists():
            return
        for dirpath, dirnames, filenames in os.walk(root, topdown=False):
            if dirnames or filenames or Path(dirpath) == root:
                continue
            try:
                os.rmdir(dirpath)
            except OSError as exc:
                logger.warning("[storage] could not remove empty directory %s: %s", dirpath, exc)


class S3StorageBackend:
    """S3-compatible object storage. References are public object URLs."""

    def __init__(
        self,
        bucket: str,
        public_base_url: str,
        region: str = "us-east-1",
        endpoint_url: str | None = None,
        access_key: str | None = None,
        secret_key: str | None = None,
        client=None,
    ) -> None:
        self.bucket = bucket
        self.public_base_url = public_base_url.rstrip("/")
        self.host_marker = urlparse(self.public_base_url).netloc
        if client is None:
            extra = {} if not endpoint_url else {"endpoint_url": endpoint_url}
            client = boto3.client(
                "s3",
                region_name=region,
                aws_access_key_id=access_key or None,
                aws_secret_access_key=secret_key or None,
                **extra,
            )
        self._client = client

    def _url_for(self, key: str) -> str:
        return f"{self.public_base_url}/{key}"

    def _key_for(self, reference: str) -> str:
        object_id = to_remote_object_id(reference, self.host_marker)
        if os.path.splitext(object_id)[1]:
            return object_id
        return object_id + REMOTE_EXTENSION

    def store(self, namespace: str, data: bytes, extension: str = REMOTE_EXTENSION) -> str:
        # remote assets are always re-encoded to JPEG
        key = f"{UPLOADS_PREFIX}{_clean_namespace(namespace)}/{generate_filename(REMOTE_EXTENSION)}"
        try:
            self._client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType=REMOTE_CONTENT_TYPE,
            )
        except (ClientError, BotoCoreError) as exc:
            raise StorageWriteError(key, str(exc)) from exc
        logger.info("[storage] uploaded s3://%s/%s (%d bytes)", self.bucket, key, len(data))
        return self._url_for(key)

    def delete(self, reference: str) -> bool:
        if not str(reference or "").strip():
            return False
        key = self._key_for(reference)
        try:
            self._client.head_object(Bucket=self.bucket, Key=key)
        except ClientError as exc:
            code = str(exc.response.get("Error", {}).get("Code", ""))
            if code in {"404", "NoSuchKey", "NotFound"}:
                logger.info("[storage] delete skipped, object not found: %s", key)
                return False
            raise StorageDeleteError(key, str(exc)) from exc
        except BotoCoreError as exc:
            raise StorageDeleteError(key, str(exc)) from exc
        try:
            self._client.delete_object(Bucket=self.bucket, Key=key)
        except (ClientError, BotoCoreError) as exc:
            raise StorageDeleteError(key, str(exc)) from exc
        logger.info("[storage] deleted s3://%s/%s", self.bucket, key)
        return True

    def list_references(self, namespace: str) -> list[StoredObject]:
        prefix = f"{UPLOADS_PREFIX}{_clean_namespace(namespace)}/"
        found: list[StoredObject] = []
        try:
            paginator = self._client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix):
                for item in page.get("Contents", []):
                    found.append(StoredObject(reference=self._url_for(item["Key"]), modified_at=item["LastModified"]))
        except (ClientError, BotoCoreError) as exc:
            raise StorageError(prefix, str(exc)) from exc
        return found


@lru_cache(maxsize=4)
def _build_s3_backend(
    bucket: str,
    public_base_url: str,
    region: str,
    endpoint_url: str,
    access_key: str,
    secret_key: str,
) -> S3StorageBackend:
    return S3StorageBackend(
        bucket=bucket,
        public_base_url=public_base_url,
        region=region,
        endpoint_url=endpoint_url or None,
        access_key=access_key or None,
        secret_key=secret_key or None,
    )


def get_storage() -> StorageBackend:
    """FastAPI dependency: the storage backend selected by ``STORAGE_BACKEND``."""
    backend = str(settings.STORAGE_BACKEND or "local").strip().lower()
    if backend == "s3":
        return _build_s3_backend(
            settings.S3_BUCKET,
            settings.s3_public_base_url(),
            settings.S3_REGION,
            settings.S3_ENDPOINT_URL,
            settings.S3_ACCESS_KEY,
            settings.S3_SECRET_KEY,
        )
    if backend != "local":
        raise ValueError(f"unknown STORAGE_BACKEND: {settings.STORAGE_BACKEND}")
    return LocalStorageBackend(settings.upload_root())
