"""Project Service 도메인 서비스 레이어입니다. 비즈니스 규칙과 데이터 접근 흐름을 캡슐화합니다."""

import logging
from typing import List

from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from cms.config import settings
from cms.models.project import Project
from cms.services import media_reconciler
from cms.services.media_reconciler import DeletionReport
from cms.services.storage_service import StorageBackend
from cms.services.upload_service import UploadDescriptor, store_request_uploads
from cms.utils.helpers import dump_json_list, parse_retain_list
from cms.utils.upload_fields import GALLERY, GALLERY_FIELD, POSTER, POSTER_FIELD, UploadTarget

logger = logging.getLogger(__name__)

NAMESPACE = "projects"
ACCEPTED_UPLOAD_KINDS = {POSTER, GALLERY}
TEXT_FIELDS = ("client", "projectTitle", "description")


def _clean_text(fields: dict[str, str], key: str) -> str | None:
    if key not in fields:
        return None
    return str(fields[key]).strip()


def _ensure_title_available(db: Session, title: str, exclude_id: int | None = None):
    q = db.query(Project).filter(Project.project_title == title)
    if exclude_id is not None:
        q = q.filter(Project.project_id != exclude_id)
    if q.first():
        raise HTTPException(status_code=400, detail="Project with this title already exists")


def _flush_or_discard_uploads(db: Session, storage: StorageBackend, uploaded: list[str]):
    # a concurrent request may have taken the title after our check
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        media_reconciler.execute_deletions(uploaded, storage)
        raise HTTPException(status_code=400, detail="Project with this title already exists")


def list_projects(db: Session) -> List[Project]:
    return db.query(Project).order_by(Project.created_at.desc(), Project.project_id.desc()).all()


def get_project(db: Session, project_id: int) -> Project:
    project = db.query(Project).filter(Project.project_id == project_id).first()
    if not project:
        raise HTTPException(status_code=404, detail="Project not found")
    return project


def create_project(
    db: Session,
    storage: StorageBackend,
    fields: dict[str, str],
    uploads: list[UploadDescriptor],
) -> Project:
    values = {key: _clean_text(fields, key) for key in TEXT_FIELDS}
    missing = [key for key, value in values.items() if not value]
    if missing:
        raise HTTPException(status_code=400, detail=f"Missing required fields: {', '.join(missing)}")
    _ensure_title_available(db, values["projectTitle"])

    grouped = store_request_uploads(uploads, NAMESPACE, storage, ACCEPTED_UPLOAD_KINDS)
    posters = grouped.get(UploadTarget(POSTER), [])
    gallery = grouped.get(UploadTarget(GALLERY), [])

    project = Project(
        client=values["client"],
        project_title=values["projectTitle"],
        description=values["description"],
        poster_img=posters[0] if posters else None,
        images=dump_json_list(gallery),
    )
    db.add(project)
    _flush_or_discard_uploads(db, storage, posters + gallery)
    db.commit()
    db.refresh(project)
    logger.info("[media] project %s created with %d image(s)", project.project_id, len(posters) + len(gallery))
    return project


def update_project(
    db: Session,
    storage: StorageBackend,
    project_id: int,
    fields: dict[str, str],
    uploads: list[UploadDescriptor],
) -> Project:
    project = get_project(db, project_id)
    values = {key: _clean_text(fields, key) for key in TEXT_FIELDS}
    blank = [key for key, value in values.items() if value is not None and not value]
    if blank:
        raise HTTPException(status_code=400, detail=f"Fields must not be empty: {', '.join(blank)}")
    if values["projectTitle"]:
        _ensure_title_available(db, values["projectTitle"], exclude_id=project_id)

    grouped = store_request_uploads(uploads, NAMESPACE, storage, ACCEPTED_UPLOAD_KINDS)
    new_posters = grouped.get(UploadTarget(POSTER), [])
    new_gallery = grouped.get(UploadTarget(GALLERY), [])

    upload_root = settings.upload_root()
    poster_plan = media_reconciler.plan_single(
        existing=project.poster_img,
        raw_value=fields.get(POSTER_FIELD),
        uploaded=new_posters,
        upload_root=upload_root,
        field_present=POSTER_FIELD in fields,
    )
    gallery_plan = media_reconciler.plan_gallery(
        existing=project.image_list,
        retain_raw=parse_retain_list(fields.get(GALLERY_FIELD)),
        uploaded=new_gallery,
        upload_root=upload_root,
    )
    if values["client"]:
        project.client = values["client"]
    if values["projectTitle"]:
        project.project_title = values["projectTitle"]
    if values["description"]:
        project.description = values["description"]
    project.poster_img = poster_plan.single
    project.images = dump_json_list(gallery_plan.next_refs)

    _flush_or_discard_uploads(db, storage, new_posters + new_gallery)

    # the row change is known to be valid before any stored file is removed
    to_delete = media_reconciler.merge_plans(poster_plan, gallery_plan, upload_root=upload_root)
    report = media_reconciler.execute_deletions(to_delete, storage)
    if report.failed:
        logger.warning("[media] project %s: %d stale image(s) left in storage", project_id, len(report.failed))
    db.commit()
    db.refresh(project)
    return project


def delete_project(db: Session, storage: StorageBackend, project_id: int) -> DeletionReport:
    project = get_project(db, project_id)
    references = media_reconciler.collect_entity_references(project)
    db.delete(project)
    db.commit()
    # row is gone first, so a failed file delete leaves an orphan, never a dangling reference
    return media_reconciler.execute_deletions(references, storage)
