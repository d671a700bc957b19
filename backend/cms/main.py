"""FastAPI 애플리케이션 진입점. 미들웨어, API 라우터, 업로드 정적 파일 서빙을 등록합니다."""

import logging
import os
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from cms.config import settings
from cms.database import Base, engine
import cms.models  # noqa: F401 - 모델 import로 metadata 등록
from cms.routers import auth, users, projects, services, contacts, common, media

logging.basicConfig(
    level=getattr(logging, str(settings.LOG_LEVEL).upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(
    title="Studio CMS",
    description="마케팅 사이트 프로젝트/서비스 콘텐츠와 이미지 자산을 관리하는 백엔드",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register all routers
app.include_router(auth.router)
app.include_router(users.router)
app.include_router(projects.router)
app.include_router(services.router)
app.include_router(contacts.router)
app.include_router(common.router)
app.include_router(media.router)


@app.on_event("startup")
def ensure_schema():
    Base.metadata.create_all(bind=engine)


@app.get("/api/health")
def health_check():
    return {"status": "ok", "service": "Studio CMS", "storage": settings.STORAGE_BACKEND}


# Static file serving for uploads (local storage mode)
os.makedirs(settings.UPLOAD_DIR, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=settings.UPLOAD_DIR), name="uploads")
