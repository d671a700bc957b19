"""Service 요청/응답 계약을 위한 Pydantic 스키마입니다."""

from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from datetime import datetime

from cms.utils.helpers import parse_json
from cms.utils.media_paths import to_display_path


class ServiceSectionIn(BaseModel):
    heading: str
    description: Optional[str] = ""
    points: List[str] = Field(default_factory=list)
    # None: keep the section's current images; a list: keep only those
    images: Optional[List[str]] = None

    @field_validator("points", mode="before")
    @classmethod
    def _decode_points(cls, value):
        decoded = parse_json(value, [])
        return decoded if isinstance(decoded, list) else []

    @field_validator("images", mode="before")
    @classmethod
    def _decode_images(cls, value):
        if value is None:
            return None
        decoded = parse_json(value, [])
        return decoded if isinstance(decoded, list) else []


class ServiceSectionOut(BaseModel):
    heading: str
    description: Optional[str] = ""
    points: List[str] = Field(default_factory=list)
    images: List[str] = Field(default_factory=list)


class ServiceOut(BaseModel):
    service_id: int
    title: str
    description: str
    poster_img: Optional[str] = None
    sections: List[ServiceSectionOut] = Field(default_factory=list)
    created_at: datetime
    updated_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, service) -> "ServiceOut":
        return cls(
            service_id=service.service_id,
            title=service.title,
            description=service.description,
            poster_img=to_display_path(service.poster_img),
            sections=[
                ServiceSectionOut(
                    heading=section.heading,
                    description=section.description or "",
                    points=section.point_list,
                    images=[to_display_path(ref) for ref in section.image_list],
                )
                for section in service.sections
            ],
            created_at=service.created_at,
            updated_at=service.updated_at,
        )
