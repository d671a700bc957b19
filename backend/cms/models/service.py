"""Service 도메인의 SQLAlchemy 모델 정의입니다."""

from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from cms.database import Base
from cms.utils.helpers import load_json_list


class Service(Base):
    __tablename__ = "services"

    service_id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(200), unique=True, nullable=False)
    description = Column(Text, nullable=False)
    poster_img = Column(String(500))
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, onupdate=func.now())

    sections = relationship(
        "ServiceSection",
        back_populates="service",
        cascade="all, delete-orphan",
        order_by="ServiceSection.position",
    )


class ServiceSection(Base):
    __tablename__ = "service_section"

    section_id = Column(Integer, primary_key=True, autoincrement=True)
    service_id = Column(Integer, ForeignKey("services.service_id"), nullable=False)
    position = Column(Integer, nullable=False, default=0)
    heading = Column(String(200), nullable=False)
    description = Column(Text)
    points = Column(Text)  # JSON array string
    images = Column(Text)  # JSON array of stored image references

    service = relationship("Service", back_populates="sections")

    __table_args__ = (
        Index("idx_service_section_service", "service_id"),
    )

    @property
    def point_list(self) -> list[str]:
        return load_json_list(self.points)

    @property
    def image_list(self) -> list[str]:
        return load_json_list(self.images)
