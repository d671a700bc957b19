"""Project 요청/응답 계약을 위한 Pydantic 스키마입니다."""

from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime

from cms.utils.media_paths import to_display_path


class ProjectOut(BaseModel):
    project_id: int
    client: str
    project_title: str
    description: str
    poster_img: Optional[str] = None
    images: List[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, project) -> "ProjectOut":
        return cls(
            project_id=project.project_id,
            client=project.client,
            project_title=project.project_title,
            description=project.description,
            poster_img=to_display_path(project.poster_img),
            images=[to_display_path(ref) for ref in project.image_list],
            created_at=project.created_at,
            updated_at=project.updated_at,
        )


class DeletedImageOut(BaseModel):
    image: str
    deleted: bool


class EntityDeleteOut(BaseModel):
    message: str
    deleted_images: List[DeletedImageOut] = Field(default_factory=list)
    failed_images: List[str] = Field(default_factory=list)

    @classmethod
    def from_report(cls, message: str, report) -> "EntityDeleteOut":
        return cls(
            message=message,
            deleted_images=[DeletedImageOut(image=ref, deleted=True) for ref in report.deleted]
            + [DeletedImageOut(image=ref, deleted=False) for ref in report.missing],
            failed_images=list(report.failed),
        )
