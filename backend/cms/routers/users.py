"""Users 기능 API 라우터입니다. 관리자 전용 사용자 조회/수정/삭제와 로그아웃을 제공합니다."""

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session
from typing import List

from cms.database import get_db
from cms.middleware.auth_middleware import require_admin
from cms.models.user import User
from cms.schemas.user import UserOut, UserUpdate
from cms.services import user_service

router = APIRouter(prefix="/api/users", tags=["users"])


@router.post("/logout")
def logout():
    # bearer tokens are stateless; the client discards its copy
    return {"message": "Logged out successfully"}


@router.get("", response_model=List[UserOut])
def list_users(
    include_inactive: bool = False,
    db: Session = Depends(get_db),
    _current_user: User = Depends(require_admin),
):
    return user_service.list_users(db, include_inactive=include_inactive)


@router.get("/{user_id}", response_model=UserOut)
def get_user(user_id: int, db: Session = Depends(get_db), _current_user: User = Depends(require_admin)):
    return user_service.get_user(db, user_id)


@router.put("/{user_id}", response_model=UserOut)
def update_user(
    user_id: int,
    data: UserUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    return user_service.update_user(db, user_id, data, current_user)


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    user_service.delete_user(db, user_id, current_user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
