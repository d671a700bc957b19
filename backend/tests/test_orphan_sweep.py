"""고아 이미지 정리 서비스/API/스크립트를 검증하는 테스트입니다."""

import importlib.util
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from cms.main import app
from cms.models.project import Project
from cms.models.service import Service, ServiceSection
from cms.services.orphan_sweep_service import collect_referenced_keys, sweep_orphan_images
from cms.services.storage_service import LocalStorageBackend, StorageError, get_storage
from cms.utils.helpers import dump_json_list
from tests.conftest import TestingSession, auth_headers, write_upload

SCRIPT_PATH = Path(__file__).resolve().parents[1] / "scripts" / "cleanup_orphan_images.py"


@pytest.fixture
def media_state(db, upload_root):
    """Three entities referencing a, b and c; d is an orphan."""
    db.add(
        Project(
            client="Acme",
            project_title="Launch",
            description="desc",
            poster_img="uploads/projects/a.jpg",
            images=dump_json_list([]),
        )
    )
    db.add(
        Project(
            client="Globex",
            project_title="Rebrand",
            description="desc",
            images=dump_json_list(["/uploads/projects/b.jpg"]),
        )
    )
    service = Service(title="Design", description="desc")
    service.sections = [ServiceSection(position=0, heading="Intro", images=dump_json_list(["uploads/services/c.jpg"]))]
    db.add(service)
    db.commit()

    for ref in ("uploads/projects/a.jpg", "uploads/projects/b.jpg", "uploads/services/c.jpg", "uploads/services/d.jpg"):
        write_upload(upload_root, ref)
    return upload_root


def test_collect_referenced_keys(db, media_state):
    assert collect_referenced_keys(db) == {
        "uploads/projects/a.jpg",
        "uploads/projects/b.jpg",
        "uploads/services/c.jpg",
    }


def test_dry_run_reports_without_deleting(db, media_state):
    result = sweep_orphan_images(db, LocalStorageBackend(media_state), dry_run=True, grace_minutes=0)
    assert result["dry_run"] is True
    assert result["total_count"] == 4
    assert result["used_count"] == 3
    assert result["orphan_references"] == ["uploads/services/d.jpg"]
    assert result["deleted_count"] == 0
    assert (media_state / "services" / "d.jpg").exists()


def test_apply_deletes_only_orphans(db, media_state):
    result = sweep_orphan_images(db, LocalStorageBackend(media_state), dry_run=False, grace_minutes=0)
    assert result["orphan_count"] == 1
    assert result["deleted_count"] == 1
    assert not (media_state / "services" / "d.jpg").exists()
    for name in ("projects/a.jpg", "projects/b.jpg", "services/c.jpg"):
        assert (media_state / name).exists()


def test_recent_orphans_are_skipped(db, media_state):
    result = sweep_orphan_images(db, LocalStorageBackend(media_state), dry_run=False, grace_minutes=30)
    assert result["orphan_count"] == 0
    assert result["skipped_recent_count"] == 1
    assert (media_state / "services" / "d.jpg").exists()

    later = datetime.now(timezone.utc) + timedelta(hours=1)
    result = sweep_orphan_images(db, LocalStorageBackend(media_state), dry_run=False, grace_minutes=30, now=later)
    assert result["deleted_count"] == 1


def test_sweep_endpoint_requires_admin(client, seed_users, media_state):
    assert client.post("/api/media/orphans/sweep").status_code in (401, 403)
    resp = client.post("/api/media/orphans/sweep", headers=auth_headers(client, "member@example.com"))
    assert resp.status_code == 403


def test_sweep_endpoint(client, seed_users, media_state):
    headers = auth_headers(client, "admin@example.com")
    resp = client.post("/api/media/orphans/sweep?grace_minutes=0", headers=headers)
    assert resp.status_code == 200
    assert resp.json()["dry_run"] is True
    assert resp.json()["orphan_references"] == ["uploads/services/d.jpg"]

    resp = client.post("/api/media/orphans/sweep?dry_run=false&grace_minutes=0", headers=headers)
    assert resp.status_code == 200
    assert resp.json()["deleted_count"] == 1
    assert not (media_state / "services" / "d.jpg").exists()


def test_cleanup_script(media_state, monkeypatch, capsys):
    spec = importlib.util.spec_from_file_location("cleanup_orphan_images", SCRIPT_PATH)
    script = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(script)
    monkeypatch.setattr(script, "SessionLocal", TestingSession)

    result = script.main(["--grace-minutes", "0"])
    assert result["dry_run"] is True
    assert (media_state / "services" / "d.jpg").exists()

    result = script.main(["--apply", "--grace-minutes", "0", "--namespace", "services"])
    assert result["deleted_count"] == 1
    assert result["total_count"] == 2
    assert "uploads/services/d.jpg" in capsys.readouterr().out


def test_sweep_endpoint_reports_listing_failure(client, seed_users, upload_root):

    class UnreachableStorage:
        def list_references(self, namespace):
            raise StorageError(namespace, "listing unavailable")

    app.dependency_overrides[get_storage] = lambda: UnreachableStorage()
    try:
        resp = client.post("/api/media/orphans/sweep", headers=auth_headers(client, "admin@example.com"))
    finally:
        app.dependency_overrides.pop(get_storage, None)
    assert resp.status_code == 502
    assert resp.json()["detail"] == "Storage listing failed"
