"""관리자 대시보드 API 라우터입니다."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from cms.database import get_db
from cms.middleware.auth_middleware import require_admin
from cms.models.user import User
from cms.schemas.common import DashboardOut
from cms.schemas.project import ProjectOut
from cms.schemas.service import ServiceOut
from cms.services import catalog_service, project_service, user_service

router = APIRouter(prefix="/api/common", tags=["common"])


@router.get("", response_model=DashboardOut)
def get_dashboard(db: Session = Depends(get_db), _current_user: User = Depends(require_admin)):
    return DashboardOut(
        projects=[ProjectOut.from_model(p) for p in project_service.list_projects(db)],
        services=[ServiceOut.from_model(s) for s in catalog_service.list_services(db)],
        user_count=user_service.count_users(db),
    )
