"""Contacts 기능 API 라우터입니다. 공개 문의 접수와 관리자 조회를 제공합니다."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List

from cms.database import get_db
from cms.middleware.auth_middleware import require_admin
from cms.models.user import User
from cms.schemas.contact import ContactCreate, ContactOut
from cms.services import contact_service

router = APIRouter(prefix="/api/contacts", tags=["contacts"])


@router.post("", response_model=ContactOut, status_code=201)
def create_contact(data: ContactCreate, db: Session = Depends(get_db)):
    return contact_service.create_contact(db, data)


@router.get("", response_model=List[ContactOut])
def list_contacts(db: Session = Depends(get_db), _current_user: User = Depends(require_admin)):
    return contact_service.list_contacts(db)


@router.get("/{contact_id}", response_model=ContactOut)
def get_contact(contact_id: int, db: Session = Depends(get_db), _current_user: User = Depends(require_admin)):
    return contact_service.get_contact(db, contact_id)
