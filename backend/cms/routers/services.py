"""Services 기능 API 라우터입니다. 멀티파트 요청을 해석하고 서비스 레이어로 비즈니스 로직을 위임합니다."""

from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session
from typing import List

from cms.database import get_db
from cms.middleware.auth_middleware import require_admin
from cms.models.user import User
from cms.schemas.project import EntityDeleteOut
from cms.schemas.service import ServiceOut
from cms.services import catalog_service
from cms.services.storage_service import StorageBackend, get_storage
from cms.services.upload_service import read_upload_descriptors, text_fields

router = APIRouter(prefix="/api/services", tags=["services"])


@router.get("", response_model=List[ServiceOut])
def list_services(db: Session = Depends(get_db)):
    return [ServiceOut.from_model(s) for s in catalog_service.list_services(db)]


@router.get("/{service_id}", response_model=ServiceOut)
def get_service(service_id: int, db: Session = Depends(get_db)):
    return ServiceOut.from_model(catalog_service.get_service(db, service_id))


@router.post("", response_model=ServiceOut, status_code=201)
async def create_service(
    request: Request,
    db: Session = Depends(get_db),
    storage: StorageBackend = Depends(get_storage),
    _current_user: User = Depends(require_admin),
):
    form = await request.form()
    fields = text_fields(form)
    uploads = await read_upload_descriptors(form)
    service = await run_in_threadpool(catalog_service.create_service, db, storage, fields, uploads)
    return ServiceOut.from_model(service)


@router.put("/{service_id}", response_model=ServiceOut)
async def update_service(
    service_id: int,
    request: Request,
    db: Session = Depends(get_db),
    storage: StorageBackend = Depends(get_storage),
    _current_user: User = Depends(require_admin),
):
    form = await request.form()
    fields = text_fields(form)
    uploads = await read_upload_descriptors(form)
    service = await run_in_threadpool(catalog_service.update_service, db, storage, service_id, fields, uploads)
    return ServiceOut.from_model(service)


@router.delete("/{service_id}", response_model=EntityDeleteOut)
def delete_service(
    service_id: int,
    db: Session = Depends(get_db),
    storage: StorageBackend = Depends(get_storage),
    _current_user: User = Depends(require_admin),
):
    report = catalog_service.delete_service(db, storage, service_id)
    return EntityDeleteOut.from_report("Service deleted successfully", report)
