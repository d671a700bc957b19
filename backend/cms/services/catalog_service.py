"""Service 카탈로그 도메인 서비스 레이어입니다. 서비스와 섹션별 이미지의 생성/수정/삭제 흐름을 캡슐화합니다."""

import logging
from typing import List

from fastapi import HTTPException
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from cms.config import settings
from cms.models.service import Service, ServiceSection
from cms.schemas.service import ServiceSectionIn
from cms.services import media_reconciler
from cms.services.media_reconciler import DeletionReport
from cms.services.storage_service import StorageBackend
from cms.services.upload_service import UploadDescriptor, store_request_uploads
from cms.utils.helpers import dump_json_list, parse_json
from cms.utils.upload_fields import POSTER, POSTER_FIELD, SECTION, UploadTarget

logger = logging.getLogger(__name__)

NAMESPACE = "services"
ACCEPTED_UPLOAD_KINDS = {POSTER, SECTION}
SECTIONS_FIELD = "sections"
_MALFORMED = object()


def parse_sections(raw: str | None) -> list[ServiceSectionIn] | None:
    """Decode the ``sections`` form field; ``None`` when the field was not sent."""
    if raw is None:
        return None
    if not str(raw).strip():
        return []
    decoded = parse_json(raw, _MALFORMED)
    if decoded is _MALFORMED or not isinstance(decoded, list):
        raise HTTPException(status_code=400, detail="sections must be a JSON array")
    try:
        return [ServiceSectionIn.model_validate(item) for item in decoded]
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=f"Invalid section: {exc.errors()[0].get('msg')}")


def _uploads_by_section(grouped: dict[UploadTarget, list[str]]) -> dict[int, list[str]]:
    return {target.index: refs for target, refs in grouped.items() if target.kind == SECTION}


def _ensure_title_available(db: Session, title: str, exclude_id: int | None = None):
    q = db.query(Service).filter(Service.title == title)
    if exclude_id is not None:
        q = q.filter(Service.service_id != exclude_id)
    if q.first():
        raise HTTPException(status_code=400, detail="Service with this title already exists")


def _build_sections(sections: list[ServiceSectionIn], section_images: list[list[str]]) -> list[ServiceSection]:
    return [
        ServiceSection(
            position=index,
            heading=section.heading.strip(),
            description=section.description or "",
            points=dump_json_list(section.points),
            images=dump_json_list(section_images[index]),
        )
        for index, section in enumerate(sections)
    ]


def _flush_or_discard_uploads(db: Session, storage: StorageBackend, uploaded: list[str]):
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        media_reconciler.execute_deletions(uploaded, storage)
        raise HTTPException(status_code=400, detail="Service with this title already exists")


def list_services(db: Session) -> List[Service]:
    return db.query(Service).order_by(Service.created_at.desc(), Service.service_id.desc()).all()


def get_service(db: Session, service_id: int) -> Service:
    service = db.query(Service).filter(Service.service_id == service_id).first()
    if not service:
        raise HTTPException(status_code=404, detail="Service not found")
    return service


def create_service(
    db: Session,
    storage: StorageBackend,
    fields: dict[str, str],
    uploads: list[UploadDescriptor],
) -> Service:
    title = str(fields.get("title") or "").strip()
    description = str(fields.get("description") or "").strip()
    if not title or not description:
        raise HTTPException(status_code=400, detail="Title and description are required")
    sections = parse_sections(fields.get(SECTIONS_FIELD)) or []
    _ensure_title_available(db, title)

    grouped = store_request_uploads(uploads, NAMESPACE, storage, ACCEPTED_UPLOAD_KINDS)
    posters = grouped.get(UploadTarget(POSTER), [])
    upload_root = settings.upload_root()
    sections_plan = media_reconciler.plan_sections(
        existing_images=[],
        submitted_retains=[None] * len(sections),
        uploads_by_index=_uploads_by_section(grouped),
        upload_root=upload_root,
    )
    service = Service(
        title=title,
        description=description,
        poster_img=posters[0] if posters else None,
        sections=_build_sections(sections, sections_plan.section_images),
    )
    db.add(service)
    _flush_or_discard_uploads(db, storage, posters + sections_plan.next_refs + sections_plan.to_delete)
    media_reconciler.execute_deletions(sections_plan.to_delete, storage)
    db.commit()
    db.refresh(service)
    return service


def update_service(
    db: Session,
    storage: StorageBackend,
    service_id: int,
    fields: dict[str, str],
    uploads: list[UploadDescriptor],
) -> Service:
    service = get_service(db, service_id)
    title = fields.get("title")
    description = fields.get("description")
    if title is not None and not title.strip():
        raise HTTPException(status_code=400, detail="Title must not be empty")
    if description is not None and not description.strip():
        raise HTTPException(status_code=400, detail="Description must not be empty")
    sections = parse_sections(fields.get(SECTIONS_FIELD))
    if title and title.strip() != service.title:
        _ensure_title_available(db, title.strip(), exclude_id=service_id)

    grouped = store_request_uploads(uploads, NAMESPACE, storage, ACCEPTED_UPLOAD_KINDS)
    new_posters = grouped.get(UploadTarget(POSTER), [])
    upload_root = settings.upload_root()

    poster_plan = media_reconciler.plan_single(
        existing=service.poster_img,
        raw_value=fields.get(POSTER_FIELD),
        uploaded=new_posters,
        upload_root=upload_root,
        field_present=POSTER_FIELD in fields,
    )
    sections_plan = media_reconciler.plan_sections(
        existing_images=[section.image_list for section in service.sections],
        submitted_retains=None if sections is None else [section.images for section in sections],
        uploads_by_index=_uploads_by_section(grouped),
        upload_root=upload_root,
    )
    if title:
        service.title = title.strip()
    if description:
        service.description = description.strip()
    service.poster_img = poster_plan.single
    if sections is not None:
        service.sections = _build_sections(sections, sections_plan.section_images)

    new_refs = new_posters + [ref for refs in _uploads_by_section(grouped).values() for ref in refs]
    _flush_or_discard_uploads(db, storage, new_refs)

    # the row change is known to be valid before any stored file is removed
    to_delete = media_reconciler.merge_plans(poster_plan, sections_plan, upload_root=upload_root)
    report = media_reconciler.execute_deletions(to_delete, storage)
    if report.failed:
        logger.warning("[media] service %s: %d stale image(s) left in storage", service_id, len(report.failed))
    db.commit()
    db.refresh(service)
    return service


def delete_service(db: Session, storage: StorageBackend, service_id: int) -> DeletionReport:
    service = get_service(db, service_id)
    references = media_reconciler.collect_entity_references(service)
    db.delete(service)
    db.commit()
    return media_reconciler.execute_deletions(references, storage)
