"""SQLAlchemy 모델 패키지 초기화 모듈입니다."""

from cms.models.user import User
from cms.models.project import Project
from cms.models.service import Service, ServiceSection
from cms.models.contact import Contact

__all__ = [
    "User",
    "Project",
    "Service", "ServiceSection",
    "Contact",
]
