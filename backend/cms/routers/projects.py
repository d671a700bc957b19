"""Projects 기능 API 라우터입니다. 멀티파트 요청을 해석하고 서비스 레이어로 비즈니스 로직을 위임합니다."""

from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session
from typing import List

from cms.database import get_db
from cms.middleware.auth_middleware import require_admin
from cms.models.user import User
from cms.schemas.project import EntityDeleteOut, ProjectOut
from cms.services import project_service
from cms.services.storage_service import StorageBackend, get_storage
from cms.services.upload_service import read_upload_descriptors, text_fields

router = APIRouter(prefix="/api/projects", tags=["projects"])


@router.get("", response_model=List[ProjectOut])
def list_projects(db: Session = Depends(get_db)):
    return [ProjectOut.from_model(p) for p in project_service.list_projects(db)]


@router.get("/{project_id}", response_model=ProjectOut)
def get_project(project_id: int, db: Session = Depends(get_db)):
    return ProjectOut.from_model(project_service.get_project(db, project_id))


@router.post("", response_model=ProjectOut, status_code=201)
async def create_project(
    request: Request,
    db: Session = Depends(get_db),
    storage: StorageBackend = Depends(get_storage),
    _current_user: User = Depends(require_admin),
):
    form = await request.form()
    fields = text_fields(form)
    uploads = await read_upload_descriptors(form)
    project = await run_in_threadpool(project_service.create_project, db, storage, fields, uploads)
    return ProjectOut.from_model(project)


@router.put("/{project_id}", response_model=ProjectOut)
async def update_project(
    project_id: int,
    request: Request,
    db: Session = Depends(get_db),
    storage: StorageBackend = Depends(get_storage),
    _current_user: User = Depends(require_admin),
):
    form = await request.form()
    fields = text_fields(form)
    uploads = await read_upload_descriptors(form)
    project = await run_in_threadpool(project_service.update_project, db, storage, project_id, fields, uploads)
    return ProjectOut.from_model(project)


@router.delete("/{project_id}", response_model=EntityDeleteOut)
def delete_project(
    project_id: int,
    db: Session = Depends(get_db),
    storage: StorageBackend = Depends(get_storage),
    _current_user: User = Depends(require_admin),
):
    report = project_service.delete_project(db, storage, project_id)
    return EntityDeleteOut.from_report("Project deleted successfully", report)
