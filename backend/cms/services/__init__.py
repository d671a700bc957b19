"""서비스 레이어 패키지 초기화 모듈입니다."""

from cms.services import (
    auth_service,
    user_service,
    contact_service,
    # 이미지 자산 생명주기
    storage_service,
    upload_service,
    media_reconciler,
    orphan_sweep_service,
    project_service,
    catalog_service,
)
