"""Contact 문의 요청/응답 계약을 위한 Pydantic 스키마입니다."""

from pydantic import BaseModel, field_validator
from datetime import datetime


class ContactCreate(BaseModel):
    first_name: str
    last_name: str
    phone: str
    email: str
    organization_name: str
    message: str

    @field_validator("first_name", "last_name", "phone", "email", "organization_name", "message")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        text = (value or "").strip()
        if not text:
            raise ValueError("must not be empty")
        return text


class ContactOut(BaseModel):
    contact_id: int
    first_name: str
    last_name: str
    phone: str
    email: str
    organization_name: str
    message: str
    created_at: datetime

    model_config = {"from_attributes": True}
