"""Project 도메인의 SQLAlchemy 모델 정의입니다."""

from sqlalchemy import Column, Integer, String, Text, DateTime
from sqlalchemy.sql import func
from cms.database import Base
from cms.utils.helpers import load_json_list


class Project(Base):
    __tablename__ = "projects"

    project_id = Column(Integer, primary_key=True, autoincrement=True)
    client = Column(String(200), nullable=False)
    project_title = Column(String(200), unique=True, nullable=False)
    description = Column(Text, nullable=False)
    poster_img = Column(String(500))  # stored image reference
    images = Column(Text)  # JSON array of stored image references, display order
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, onupdate=func.now())

    @property
    def image_list(self) -> list[str]:
        return load_json_list(self.images)
