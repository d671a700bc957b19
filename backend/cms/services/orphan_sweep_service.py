"""Orphan Sweep 서비스 레이어입니다. 어떤 엔티티도 참조하지 않는 업로드 이미지를 정리합니다."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Iterable

from sqlalchemy.orm import Session

from cms.config import settings
from cms.models.project import Project
from cms.models.service import Service, ServiceSection
from cms.services.storage_service import StorageBackend, StorageError
from cms.utils.helpers import load_json_list
from cms.utils.media_paths import reference_key

logger = logging.getLogger(__name__)

MEDIA_NAMESPACES = ("projects", "services")


def _collect_keys(refs: Iterable[str | None]) -> set[str]:
    root = settings.upload_root()
    found: set[str] = set()
    for ref in refs:
        key = reference_key(ref, root)
        if key:
            found.add(key)
    return found


def collect_referenced_keys(db: Session) -> set[str]:
    referenced: set[str] = set()

    referenced.update(_collect_keys(row[0] for row in db.query(Project.poster_img).all()))
    for row in db.query(Project.images).all():
        referenced.update(_collect_keys(load_json_list(row[0])))
    referenced.update(_collect_keys(row[0] for row in db.query(Service.poster_img).all()))
    for row in db.query(ServiceSection.images).all():
        referenced.update(_collect_keys(load_json_list(row[0])))

    return referenced


def sweep_orphan_images(
    db: Session,
    storage: StorageBackend,
    namespaces: Iterable[str] = MEDIA_NAMESPACES,
    dry_run: bool = True,
    grace_minutes: int | None = None,
    now: datetime | None = None,
):
    """Delete stored images that no project or service references.

    Files modified within the grace window are left alone: an upload whose entity
    write has not committed yet looks exactly like an orphan.
    """
    grace = settings.ORPHAN_GRACE_MINUTES if grace_minutes is None else max(0, int(grace_minutes))
    cutoff = (now or datetime.now(timezone.utc)) - timedelta(minutes=grace)
    namespaces = tuple(namespaces)
    root = settings.upload_root()

    referenced = collect_referenced_keys(db)
    stored = [obj for ns in namespaces for obj in storage.list_references(ns)]

    orphans: list[str] = []
    skipped_recent = 0
    for obj in stored:
        key = reference_key(obj.reference, root)
        if key in referenced:
            continue
        if grace and obj.modified_at > cutoff:
            skipped_recent += 1
            continue
        orphans.append(obj.reference)
    orphans.sort()

    deleted_count = 0
    if not dry_run:
        for ref in orphans:
            try:
                if storage.delete(ref):
                    deleted_count += 1
            except (StorageError, OSError) as exc:
                logger.error("[sweep] failed to delete orphan %s: %s", ref, exc)
        remove_empty_dirs = getattr(storage, "remove_empty_dirs", None)
        if remove_empty_dirs is not None:
            for ns in namespaces:
                remove_empty_dirs(ns)

    logger.info(
        "[sweep] dry_run=%s total=%d used=%d orphan=%d recent=%d deleted=%d",
        dry_run,
        len(stored),
        len(referenced),
        len(orphans),
        skipped_recent,
        deleted_count,
    )
    return {
        "dry_run": dry_run,
        "total_count": len(stored),
        "used_count": len(referenced),
        "orphan_count": len(orphans),
        "skipped_recent_count": skipped_recent,
        "deleted_count": deleted_count,
        "orphan_references": orphans,
    }
