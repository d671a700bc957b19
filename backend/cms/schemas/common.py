"""관리자 대시보드 응답 계약을 위한 Pydantic 스키마입니다."""

from pydantic import BaseModel
from typing import List

from cms.schemas.project import ProjectOut
from cms.schemas.service import ServiceOut


class DashboardOut(BaseModel):
    projects: List[ProjectOut]
    services: List[ServiceOut]
    user_count: int
