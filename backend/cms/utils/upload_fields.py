"""멀티파트 업로드 필드 이름을 대상 이미지 필드로 해석합니다."""

import re
from dataclasses import dataclass

POSTER_FIELD = "posterImg"
GALLERY_FIELD = "images"

POSTER = "poster"
GALLERY = "gallery"
SECTION = "section"

# sections[0].images, and sections[0][images] as sent by older admin clients
_SECTION_FIELD_RE = re.compile(r"^sections\[(\d+)\](?:\.images|\[images\])$")


@dataclass(frozen=True)
class UploadTarget:
    kind: str
    index: int | None = None


def parse_upload_field(name: str | None) -> UploadTarget | None:
    text = str(name or "").strip()
    if text == POSTER_FIELD:
        return UploadTarget(POSTER)
    if text == GALLERY_FIELD:
        return UploadTarget(GALLERY)
    match = _SECTION_FIELD_RE.match(text)
    if match:
        return UploadTarget(SECTION, int(match.group(1)))
    return None
