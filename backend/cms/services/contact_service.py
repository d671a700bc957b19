"""Contact Service 도메인 서비스 레이어입니다. 문의 접수와 조회를 담당합니다."""

import logging
from typing import List

from fastapi import HTTPException
from sqlalchemy.orm import Session

from cms.models.contact import Contact
from cms.schemas.contact import ContactCreate

logger = logging.getLogger(__name__)


def create_contact(db: Session, data: ContactCreate) -> Contact:
    contact = Contact(**data.model_dump())
    db.add(contact)
    db.commit()
    db.refresh(contact)
    logger.info("[contact] inquiry %s received from %s", contact.contact_id, contact.organization_name)
    return contact


def list_contacts(db: Session) -> List[Contact]:
    return db.query(Contact).order_by(Contact.created_at.desc(), Contact.contact_id.desc()).all()


def get_contact(db: Session, contact_id: int) -> Contact:
    contact = db.query(Contact).filter(Contact.contact_id == contact_id).first()
    if not contact:
        raise HTTPException(status_code=404, detail="Contact not found")
    return contact
