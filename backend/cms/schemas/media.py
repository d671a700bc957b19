"""미디어 정리 작업 응답 계약을 위한 Pydantic 스키마입니다."""

from pydantic import BaseModel


class OrphanSweepOut(BaseModel):
    dry_run: bool
    total_count: int
    used_count: int
    orphan_count: int
    skipped_recent_count: int
    deleted_count: int
    orphan_references: list[str]
