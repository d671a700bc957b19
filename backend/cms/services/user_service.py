"""User Service 도메인 서비스 레이어입니다. 비즈니스 규칙과 데이터 접근 흐름을 캡슐화합니다."""

from fastapi import HTTPException
from sqlalchemy.orm import Session

from cms.models.user import User
from cms.schemas.user import UserUpdate


def list_users(db: Session, include_inactive: bool = False):
    q = db.query(User)
    if not include_inactive:
        q = q.filter(User.is_active == True)  # noqa: E712
    return q.order_by(User.created_at.desc(), User.user_id.desc()).all()


def get_user(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.user_id == user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


def delete_user(db: Session, user_id: int, current_user: User):
    user = get_user(db, user_id)
    if user.user_id == current_user.user_id:
        raise HTTPException(status_code=400, detail="You cannot delete your own account")
    if user.is_admin:
        if _active_admin_count(db) <= 1:
            raise HTTPException(status_code=400, detail="The last admin account cannot be deleted")
    db.delete(user)
    db.commit()


def count_users(db: Session) -> int:
    return db.query(User).count()


def _active_admin_count(db: Session) -> int:
    return db.query(User).filter(User.is_admin == True, User.is_active == True).count()  # noqa: E712


def update_user(db: Session, user_id: int, data: UserUpdate, current_user: User) -> User:
    user = get_user(db, user_id)
    changes = data.model_dump(exclude_unset=True)

    if "email" in changes:
        email = (changes["email"] or "").strip().lower()
        if not email:
            raise HTTPException(status_code=400, detail="Email must not be empty")
        taken = db.query(User).filter(User.email == email, User.user_id != user_id).first()
        if taken:
            raise HTTPException(status_code=400, detail="Email already exists")
        user.email = email
    if "name" in changes:
        user.name = (changes["name"] or "").strip() or None

    loses_admin = changes.get("is_admin") is False or changes.get("is_active") is False
    if loses_admin and user.is_admin and user.is_active:
        if user.user_id == current_user.user_id:
            raise HTTPException(status_code=400, detail="You cannot remove your own admin access")
        if _active_admin_count(db) <= 1:
            raise HTTPException(status_code=400, detail="The last admin account cannot be demoted")
    if changes.get("is_admin") is not None:
        user.is_admin = changes["is_admin"]
    if changes.get("is_active") is not None:
        user.is_active = changes["is_active"]

    db.commit()
    db.refresh(user)
    return user
