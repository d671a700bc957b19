"""Media 관리 API 라우터입니다. 고아 이미지 정리 작업을 관리자에게 노출합니다."""

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from cms.database import get_db
from cms.middleware.auth_middleware import require_admin
from cms.models.user import User
from cms.schemas.media import OrphanSweepOut
from cms.services import orphan_sweep_service
from cms.services.storage_service import StorageBackend, StorageError, get_storage

router = APIRouter(prefix="/api/media", tags=["media"])


@router.post("/orphans/sweep", response_model=OrphanSweepOut)
def sweep_orphans(
    dry_run: bool = True,
    grace_minutes: int | None = Query(None, ge=0),
    db: Session = Depends(get_db),
    storage: StorageBackend = Depends(get_storage),
    _current_user: User = Depends(require_admin),
):
    try:
        return orphan_sweep_service.sweep_orphan_images(db, storage, dry_run=dry_run, grace_minutes=grace_minutes)
    except StorageError as exc:
        raise HTTPException(status_code=502, detail="Storage listing failed") from exc
