"""JSON 필드 파싱 등 공용 유틸리티 헬퍼입니다."""

import json
import logging
from typing import Any

logger = logging.getLogger(__name__)


def parse_json(value: Any, fallback: Any = None) -> Any:
    """Decode a JSON form value; already-decoded values pass through.

    Returns ``fallback`` for ``None`` and for malformed input.
    """
    if value is None:
        return fallback
    if not isinstance(value, (str, bytes)):
        return value
    try:
        return json.loads(value)
    except (json.JSONDecodeError, ValueError):
        logger.warning("[helpers] malformed JSON field ignored: %.80s", value)
        return fallback


def load_json_list(raw: str | None) -> list[str]:
    if not raw:
        return []
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        return []
    if not isinstance(parsed, list):
        return []
    return [str(item) for item in parsed if str(item).strip()]


def dump_json_list(items: list[str] | None) -> str:
    return json.dumps([str(item) for item in (items or [])], ensure_ascii=False)


def parse_retain_list(value: Any) -> list[str] | None:
    """Decode a client "keep these images" field.

    ``None`` (field not sent) means keep everything. A sent but empty or malformed
    value is an empty list, which drops every current image.
    """
    if value is None:
        return None
    if isinstance(value, str) and not value.strip():
        return []
    decoded = parse_json(value, [])
    if isinstance(decoded, str):
        decoded = [decoded]
    if not isinstance(decoded, list):
        return []
    return [str(item) for item in decoded if str(item or "").strip()]
