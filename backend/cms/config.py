"""환경 변수 기반 애플리케이션 설정을 중앙에서 관리합니다."""

from pydantic_settings import BaseSettings
from typing import List
from pathlib import Path


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./studio_cms.db"
    SECRET_KEY: str = "change-me-to-a-random-secret-key"
    DEBUG: bool = True
    ALLOWED_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:8000"]
    LOG_LEVEL: str = "INFO"

    # JWT
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 30

    # Image upload
    MAX_UPLOAD_SIZE: int = 100 * 1024 * 1024  # 100 MB
    ALLOWED_IMAGE_TYPES: List[str] = ["image/jpeg", "image/png", "image/gif", "image/webp"]
    IMAGE_SMALL_FILE_THRESHOLD: int = 1024 * 1024  # below this: re-encode only
    IMAGE_SMALL_QUALITY: int = 85
    IMAGE_MAX_DIMENSION: int = 1024
    IMAGE_LARGE_QUALITY: int = 70
    UPLOAD_DIR: str = "uploads"

    # Storage backend: "local" writes under UPLOAD_DIR, "s3" writes to an object store
    STORAGE_BACKEND: str = "local"
    S3_BUCKET: str = ""
    S3_REGION: str = "us-east-1"
    S3_ENDPOINT_URL: str = ""
    S3_ACCESS_KEY: str = ""
    S3_SECRET_KEY: str = ""
    S3_PUBLIC_BASE_URL: str = ""

    # Orphan sweep skips files younger than this so in-flight uploads survive
    ORPHAN_GRACE_MINUTES: int = 30

    def upload_root(self) -> Path:
        return Path(self.UPLOAD_DIR).resolve()

    def s3_public_base_url(self) -> str:
        base = str(self.S3_PUBLIC_BASE_URL or "").strip().rstrip("/")
        if base:
            return base
        if self.S3_ENDPOINT_URL:
            return f"{self.S3_ENDPOINT_URL.rstrip('/')}/{self.S3_BUCKET}"
        return f"https://{self.S3_BUCKET}.s3.{self.S3_REGION}.amazonaws.com"

    class Config:
        # 실행 cwd와 무관하게 backend/.env를 로드한다.
        env_file = str(Path(__file__).resolve().parents[1] / ".env")


settings = Settings()
