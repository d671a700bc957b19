"""업로드 이미지 참조 경로를 정규화하는 유틸리티입니다.

저장된 이미지 참조는 두 가지 형태 중 하나입니다.

* 로컬 참조: ``uploads/<namespace>/<file>`` (업로드 루트 기준 상대 경로)
* 원격 참조: 오브젝트 스토리지가 돌려준 공개 URL

``normalize`` 는 절대 예외를 던지지 않으며, 업로드 루트 밖을 가리키는 입력은
``None`` 을 돌려줍니다. 호출자는 삭제 전에 반드시 ``None`` 여부를 확인해야 합니다.
"""

import posixpath
import re
from pathlib import Path

UPLOADS_SEGMENT = "uploads"
UPLOADS_PREFIX = f"{UPLOADS_SEGMENT}/"

_UPLOADS_SEGMENT_RE = re.compile(r"(?:^|/)uploads/")
_REPEATED_SLASH_RE = re.compile(r"/{2,}")


def is_remote_url(value: str | None) -> bool:
    text = str(value or "").strip().lower()
    return text.startswith("http://") or text.startswith("https://")


def normalize(raw: str | None, upload_root: Path | str) -> str | None:
    """Canonicalize a stored path or URL into ``uploads/<relative path>``.

    Returns ``None`` when the input is empty or resolves outside ``upload_root``.
    """
    if raw is None:
        return None
    try:
        text = str(raw).strip().replace("\\", "/")
        text = _REPEATED_SLASH_RE.sub("/", text).lstrip("/")
        if not text:
            return None

        match = _UPLOADS_SEGMENT_RE.search(text)
        if match:
            start = match.start() if text[match.start()] != "/" else match.start() + 1
            text = text[start:]
        if not text.startswith(UPLOADS_PREFIX):
            text = UPLOADS_PREFIX + text

        root = Path(upload_root).resolve()
        candidate = (root / text[len(UPLOADS_PREFIX):]).resolve()
        if candidate == root or root not in candidate.parents:
            return None
        return UPLOADS_PREFIX + candidate.relative_to(root).as_posix()
    except (OSError, ValueError, RuntimeError):
        return None


def to_absolute_path(reference: str, upload_root: Path | str) -> Path | None:
    """Map a local reference to its file under ``upload_root``; ``None`` if unresolvable."""
    canonical = normalize(reference, upload_root)
    if canonical is None:
        return None
    return Path(upload_root).resolve() / canonical[len(UPLOADS_PREFIX):]


def to_remote_object_id(url: str, host_marker: str, namespace_root: str = UPLOADS_SEGMENT) -> str:
    """Derive the object id (key without extension) from a stored remote URL.

    Inputs that do not carry ``host_marker`` are assumed to already be object ids.
    """
    text = str(url or "").strip()
    if not host_marker or host_marker not in text:
        return text
    path = text.split("?", 1)[0].split("#", 1)[0]
    idx = path.find(f"/{namespace_root}/")
    if idx == -1:
        return text
    return posixpath.splitext(path[idx + 1:])[0]


def to_display_path(stored: str | None) -> str | None:
    """Render a stored reference for clients: ``/uploads/...`` or the remote URL."""
    text = str(stored or "").strip()
    if not text:
        return None
    if is_remote_url(text):
        return text
    return "/" + text.replace("\\", "/").lstrip("/")


def reference_key(reference: str | None, upload_root: Path | str) -> str | None:
    """Comparison key for a reference; remote URLs compare verbatim."""
    text = str(reference or "").strip()
    if not text:
        return None
    if is_remote_url(text):
        return text
    return normalize(text, upload_root)
