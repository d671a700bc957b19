"""로컬/S3 저장소 백엔드 동작을 검증하는 테스트입니다."""

import re
import threading
from datetime import datetime, timezone

import pytest
from botocore.exceptions import ClientError

from cms.config import settings
from cms.services.storage_service import (
    LocalStorageBackend,
    S3StorageBackend,
    StorageDeleteError,
    StorageError,
    StorageWriteError,
    generate_filename,
    get_storage,
)


class FakeS3Client:
    def __init__(self):
        self.objects = {}
        self.fail_put = False

    def put_object(self, Bucket, Key, Body, ContentType):
        if self.fail_put:
            raise ClientError({"Error": {"Code": "500", "Message": "boom"}}, "PutObject")
        self.objects[Key] = (Body, ContentType)

    def head_object(self, Bucket, Key):
        if Key not in self.objects:
            raise ClientError({"Error": {"Code": "404", "Message": "Not Found"}}, "HeadObject")
        return {}

    def delete_object(self, Bucket, Key):
        self.objects.pop(Key, None)

    def get_paginator(self, name):
        assert name == "list_objects_v2"
        client = self

        class _Paginator:
            def paginate(self, Bucket, Prefix):
                contents = [
                    {"Key": key, "LastModified": datetime(2024, 1, 1, tzinfo=timezone.utc)}
                    for key in sorted(client.objects)
                    if key.startswith(Prefix)
                ]
                yield {"Contents": contents}

        return _Paginator()


@pytest.fixture
def s3():
    client = FakeS3Client()
    backend = S3StorageBackend(bucket="site-media", public_base_url="https://media.example.com/", client=client)
    return backend, client


def test_generate_filename_format():
    name = generate_filename(".JPG")
    assert re.fullmatch(r"\d{13}_[0-9a-z]{4}\.jpg", name)


def test_local_store_writes_under_namespace(upload_root):
    storage = LocalStorageBackend(upload_root)
    ref = storage.store("projects", b"jpeg-bytes", ".jpg")
    assert ref.startswith("uploads/projects/")
    assert (upload_root / ref.replace("uploads/", "", 1)).read_bytes() == b"jpeg-bytes"


def test_local_store_rejects_bad_namespace(upload_root):
    with pytest.raises(ValueError):
        LocalStorageBackend(upload_root).store("../..", b"x", ".jpg")


def test_local_store_failure_raises_write_error(upload_root):
    (upload_root / "projects").write_bytes(b"not a directory")
    with pytest.raises(StorageWriteError):
        LocalStorageBackend(upload_root).store("projects", b"x", ".jpg")


def test_local_delete_is_idempotent(upload_root):
    storage = LocalStorageBackend(upload_root)
    ref = storage.store("projects", b"x", ".jpg")
    assert storage.delete("/" + ref) is True
    assert storage.delete(ref) is False


def test_local_delete_refuses_paths_outside_root(upload_root):
    outside = upload_root.parent / "secret.txt"
    outside.write_text("keep")
    storage = LocalStorageBackend(upload_root)
    assert storage.delete("../secret.txt") is False
    assert storage.delete("uploads/../secret.txt") is False
    assert outside.exists()


def test_local_concurrent_deletes_remove_once(upload_root):
    storage = LocalStorageBackend(upload_root)
    ref = storage.store("projects", b"x", ".jpg")
    results = []
    barrier = threading.Barrier(8)

    def worker():
        barrier.wait()
        results.append(storage.delete(ref))

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert results.count(True) == 1
    assert results.count(False) == 7


def test_local_list_references_and_remove_empty_dirs(upload_root):
    storage = LocalStorageBackend(upload_root)
    ref = storage.store("projects", b"x", ".jpg")
    (upload_root / "projects" / "nested").mkdir()
    listed = storage.list_references("projects")
    assert [obj.reference for obj in listed] == [ref]
    assert listed[0].modified_at.tzinfo is not None
    storage.remove_empty_dirs("projects")
    assert not (upload_root / "projects" / "nested").exists()
    assert (upload_root / "projects").exists()
    assert storage.list_references("services") == []


def test_s3_store_returns_public_url(s3):
    backend, client = s3
    url = backend.store("services", b"jpeg-bytes", ".png")
    assert re.fullmatch(r"https://media\.example\.com/uploads/services/\d{13}_[0-9a-z]{4}\.jpg", url)
    key = url.split("media.example.com/", 1)[1]
    assert client.objects[key] == (b"jpeg-bytes", "image/jpeg")


def test_s3_store_failure_raises_write_error(s3):
    backend, client = s3
    client.fail_put = True
    with pytest.raises(StorageWriteError):
        backend.store("services", b"x")


def test_s3_delete_by_url_is_idempotent(s3):
    backend, client = s3
    url = backend.store("projects", b"x")
    assert backend.delete(url) is True
    assert client.objects == {}
    assert backend.delete(url) is False


def test_s3_delete_other_errors_raise(s3):
    backend, client = s3

    def denied(Bucket, Key):
        raise ClientError({"Error": {"Code": "403", "Message": "Forbidden"}}, "HeadObject")

    client.head_object = denied
    with pytest.raises(StorageDeleteError):
        backend.delete("https://media.example.com/uploads/projects/a.jpg")


def test_s3_list_references(s3):
    backend, client = s3
    url = backend.store("projects", b"x")
    backend.store("services", b"y")
    listed = backend.list_references("projects")
    assert [obj.reference for obj in listed] == [url]


def test_get_storage_selects_backend(upload_root, monkeypatch):
    assert isinstance(get_storage(), LocalStorageBackend)
    monkeypatch.setattr(settings, "STORAGE_BACKEND", "ftp")
    with pytest.raises(ValueError):
        get_storage()


def test_s3_list_failure_raises_storage_error(s3):
    backend, client = s3

    def broken_paginator(name):
        raise ClientError({"Error": {"Code": "AccessDenied", "Message": "denied"}}, "ListObjectsV2")

    client.get_paginator = broken_paginator
    with pytest.raises(StorageError):
        backend.list_references("projects")


def test_remove_empty_dirs_logs_failures(upload_root, monkeypatch, caplog):
    storage = LocalStorageBackend(upload_root)
    (upload_root / "projects" / "nested").mkdir(parents=True)

    def refuse(path):
        raise PermissionError("read-only")

    monkeypatch.setattr("cms.services.storage_service.os.rmdir", refuse)
    with caplog.at_level("WARNING", logger="cms.services.storage_service"):
        storage.remove_empty_dirs("projects")
    assert (upload_root / "projects" / "nested").exists()
    assert "could not remove empty directory" in caplog.text
