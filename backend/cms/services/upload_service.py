"""Upload Service 도메인 서비스 레이어입니다. 업로드 이미지를 검증/최적화한 뒤 저장소에 기록합니다."""

import io
import logging
from dataclasses import dataclass

from fastapi import HTTPException
from PIL import Image, UnidentifiedImageError
from starlette.datastructures import FormData, UploadFile

from cms.config import settings
from cms.services.storage_service import StorageBackend, StorageWriteError
from cms.utils.upload_fields import POSTER, UploadTarget, parse_upload_field

logger = logging.getLogger(__name__)

JPEG_EXTENSION = ".jpg"


@dataclass
class UploadDescriptor:
    field_name: str
    content: bytes
    content_type: str
    filename: str

    @property
    def target(self) -> UploadTarget | None:
        return parse_upload_field(self.field_name)


@dataclass
class StoredUpload:
    field_name: str
    target: UploadTarget
    reference: str
    filename: str
    size: int


def text_fields(form: FormData) -> dict[str, str]:
    """Non-file form values; the last value wins for repeated keys."""
    fields: dict[str, str] = {}
    for key, value in form.multi_items():
        if isinstance(value, UploadFile):
            continue
        fields[key] = str(value)
    return fields


async def read_upload_descriptors(form: FormData) -> list[UploadDescriptor]:
    """Collect file parts from a parsed multipart form, in submission order."""
    descriptors: list[UploadDescriptor] = []
    for field_name, value in form.multi_items():
        if not isinstance(value, UploadFile):
            continue
        if parse_upload_field(field_name) is None:
            logger.warning("[upload] ignoring file in unknown field %r (%s)", field_name, value.filename)
            continue
        if not value.filename:
            continue
        content = await value.read()
        descriptors.append(
            UploadDescriptor(
                field_name=field_name,
                content=content,
                content_type=str(value.content_type or "").lower(),
                filename=value.filename,
            )
        )
    return descriptors


def _flatten_to_rgb(img: Image.Image) -> Image.Image:
    if img.mode in ("RGBA", "LA") or (img.mode == "P" and "transparency" in img.info):
        rgba = img.convert("RGBA")
        background = Image.new("RGB", rgba.size, (255, 255, 255))
        background.paste(rgba, mask=rgba.split()[-1])
        return background
    if img.mode != "RGB":
        return img.convert("RGB")
    return img


def optimize_image(data: bytes) -> bytes:
    """Re-encode an uploaded image as JPEG.

    Small files keep their dimensions and are re-encoded at ``IMAGE_SMALL_QUALITY``.
    Files at or above ``IMAGE_SMALL_FILE_THRESHOLD`` are shrunk to fit within
    ``IMAGE_MAX_DIMENSION`` on both sides (never enlarged) and written as a
    progressive JPEG at ``IMAGE_LARGE_QUALITY``.

    Raises ``UnidentifiedImageError``/``OSError`` for undecodable input.
    """
    with Image.open(io.BytesIO(data)) as img:
        img.load()
        image = _flatten_to_rgb(img)
        buf = io.BytesIO()
        if len(data) < settings.IMAGE_SMALL_FILE_THRESHOLD:
            image.save(buf, format="JPEG", quality=settings.IMAGE_SMALL_QUALITY)
        else:
            image = image.copy()
            size = settings.IMAGE_MAX_DIMENSION
            image.thumbnail((size, size), Image.LANCZOS)
            image.save(buf, format="JPEG", quality=settings.IMAGE_LARGE_QUALITY, progressive=True, optimize=True)
        return buf.getvalue()


def validate_descriptor(descriptor: UploadDescriptor) -> bool:
    allowed = {t.lower() for t in settings.ALLOWED_IMAGE_TYPES}
    if descriptor.content_type not in allowed:
        logger.warning(
            "[upload] rejected %s: content type %r not allowed",
            descriptor.filename,
            descriptor.content_type,
        )
        return False
    if not descriptor.content:
        logger.warning("[upload] rejected %s: empty file", descriptor.filename)
        return False
    if len(descriptor.content) > settings.MAX_UPLOAD_SIZE:
        logger.warning("[upload] rejected %s: %d bytes exceeds limit", descriptor.filename, len(descriptor.content))
        return False
    return True


def process_uploads(
    descriptors: list[UploadDescriptor],
    namespace: str,
    storage: StorageBackend,
    accepted_kinds: set[str] | None = None,
) -> list[StoredUpload]:
    """Validate, optimize and store each descriptor.

    Rejected files are left out of the result, so positions do not line up with the
    input. A storage failure aborts the batch; files stored before it stay on disk
    until the orphan sweep removes them.
    """
    stored: list[StoredUpload] = []
    poster_seen = False
    for descriptor in descriptors:
        target = descriptor.target
        if target is None:
            continue
        if accepted_kinds is not None and target.kind not in accepted_kinds:
            logger.warning("[upload] field %r not used by %s; file ignored", descriptor.field_name, namespace)
            continue
        if target.kind == POSTER:
            if poster_seen:
                logger.warning("[upload] extra poster file %s ignored", descriptor.filename)
                continue
        if not validate_descriptor(descriptor):
            continue
        try:
            data = optimize_image(descriptor.content)
        except (UnidentifiedImageError, OSError, Image.DecompressionBombError) as exc:
            logger.warning("[upload] rejected %s: not a readable image (%s)", descriptor.filename, exc)
            continue

        try:
            reference = storage.store(namespace, data, JPEG_EXTENSION)
        except StorageWriteError:
            logger.error(
                "[upload] storage write failed for %s; %d file(s) already stored in this batch",
                descriptor.filename,
                len(stored),
            )
            raise
        if target.kind == POSTER:
            poster_seen = True
        stored.append(
            StoredUpload(
                field_name=descriptor.field_name,
                target=target,
                reference=reference,
                filename=descriptor.filename,
                size=len(data),
            )
        )
    return stored


def group_by_target(stored: list[StoredUpload]) -> dict[UploadTarget, list[str]]:
    grouped: dict[UploadTarget, list[str]] = {}
    for item in stored:
        grouped.setdefault(item.target, []).append(item.reference)
    return grouped


def store_request_uploads(
    descriptors: list[UploadDescriptor],
    namespace: str,
    storage: StorageBackend,
    accepted_kinds: set[str],
) -> dict[UploadTarget, list[str]]:
    """``process_uploads`` for a request handler: storage failures become a 502."""
    try:
        stored = process_uploads(descriptors, namespace, storage, accepted_kinds=accepted_kinds)
    except StorageWriteError as exc:
        raise HTTPException(status_code=502, detail="Image upload failed") from exc
    return group_by_target(stored)
