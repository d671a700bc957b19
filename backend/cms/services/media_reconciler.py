"""엔티티 이미지 참조 재조정(reconciliation) 로직입니다.

요청마다 (기존 참조, 클라이언트가 유지하겠다고 보낸 목록, 새로 업로드된 참조) 세 입력으로
다음 참조 목록과 삭제 대상 목록을 계산합니다. 계산은 순수 함수이고, 실제 삭제는
``execute_deletions`` 에서 따로 수행합니다. 호출 순서는 다음과 같습니다.

1. 중복 제목 등 요청 거부 검사 (저장소 부작용 이전)
2. 업로드 저장
3. ``plan_*`` 으로 계획 계산
4. ``execute_deletions`` (실패는 로그만 남김)
5. 엔티티 커밋
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Protocol

from cms.services.storage_service import StorageBackend, StorageError
from cms.utils.media_paths import reference_key

logger = logging.getLogger(__name__)


class _Plan(Protocol):
    next_refs: list[str]
    to_delete: list[str]


@dataclass(frozen=True)
class ReconciliationPlan:
    next_refs: list[str]
    to_delete: list[str]

    @property
    def single(self) -> str | None:
        return self.next_refs[0] if self.next_refs else None


@dataclass(frozen=True)
class SectionsPlan:
    section_images: list[list[str]]
    to_delete: list[str]

    @property
    def next_refs(self) -> list[str]:
        return [ref for images in self.section_images for ref in images]


@dataclass
class DeletionReport:
    deleted: list[str] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


def _clean(refs: Iterable[str | None] | None) -> list[str]:
    return [str(r).strip() for r in (refs or []) if str(r or "").strip()]


def _key(ref: str, upload_root: Path | str) -> str:
    # unresolvable references still need a stable identity for set arithmetic
    return reference_key(ref, upload_root) or f"!{ref}"


def plan_gallery(
    existing: list[str] | None,
    retain_raw: list[str] | None,
    uploaded: list[str] | None,
    upload_root: Path | str,
) -> ReconciliationPlan:
    """Plan an ordered multi-image field.

    ``retain_raw`` of ``None`` means the client sent no instruction and every existing
    reference survives. Otherwise only existing references named in ``retain_raw``
    survive, in their existing order; names that are not already on the entity are
    ignored. New uploads are appended in upload order.
    """
    current = _clean(existing)
    if retain_raw is None:
        retained = list(current)
    else:
        wanted = {k for k in (reference_key(r, upload_root) for r in _clean(retain_raw)) if k is not None}
        retained = []
        kept: set[str] = set()
        for ref in current:
            key = reference_key(ref, upload_root)
            if key is None or key not in wanted or key in kept:
                continue
            retained.append(ref)
            kept.add(key)

    retained_keys = {_key(ref, upload_root) for ref in retained}
    to_delete: list[str] = []
    scheduled: set[str] = set()
    for ref in current:
        key = _key(ref, upload_root)
        if key in retained_keys or key in scheduled:
            continue
        to_delete.append(ref)
        scheduled.add(key)
    return ReconciliationPlan(next_refs=retained + _clean(uploaded), to_delete=to_delete)


def plan_single(
    existing: str | None,
    raw_value: str | None,
    uploaded: list[str] | None,
    upload_root: Path | str,
    field_present: bool,
) -> ReconciliationPlan:
    """Plan a single-reference field such as a poster.

    * a new upload always replaces the current reference
    * the field omitted from the request keeps the current reference
    * the field sent empty clears it and deletes the stored asset
    * the field sent with the current reference keeps it; any other value is not
      something this entity owns, so it is treated like an empty value
    """
    current = str(existing or "").strip() or None
    new_refs = _clean(uploaded)
    old = [current] if current else []

    if new_refs:
        # only one poster can be attached; surplus uploads must not linger
        return ReconciliationPlan(next_refs=new_refs[:1], to_delete=old + new_refs[1:])
    if not field_present:
        return ReconciliationPlan(next_refs=old, to_delete=[])

    value = str(raw_value or "").strip()
    if value and current:
        value_key = reference_key(value, upload_root)
        if value_key is not None and value_key == reference_key(current, upload_root):
            return ReconciliationPlan(next_refs=old, to_delete=[])
        logger.warning("[media] poster value %r is not owned by this entity; clearing", value)
    return ReconciliationPlan(next_refs=[], to_delete=old)


def plan_sections(
    existing_images: list[list[str]],
    submitted_retains: list[list[str] | None] | None,
    uploads_by_index: dict[int, list[str]],
    upload_root: Path | str,
) -> SectionsPlan:
    """Plan per-section image lists.

    ``submitted_retains`` holds one retain list (or ``None``) per submitted section.
    ``None`` for the whole argument means the request did not touch sections.

    A retain list may name any image the service already holds in any section, so
    sections can be removed or reordered without losing their images. A ``None``
    entry keeps the images of the existing section at the same position. An image is
    attached to at most one section, and only images no submitted section keeps are
    deleted. Uploads addressed to a section index that does not exist cannot be
    attached and are deleted.
    """
    if submitted_retains is None:
        unattached = [ref for refs in uploads_by_index.values() for ref in refs]
        return SectionsPlan(section_images=[list(images) for images in existing_images], to_delete=unattached)

    pool = [ref for images in existing_images for ref in _clean(images)]
    claimed: set[str] = set()
    section_images: list[list[str]] = []
    for index, retain in enumerate(submitted_retains):
        if retain is None:
            candidates = _clean(existing_images[index]) if index < len(existing_images) else []
            wanted = None
        else:
            candidates = pool
            wanted = {k for k in (reference_key(r, upload_root) for r in _clean(retain)) if k is not None}
        retained: list[str] = []
        for ref in candidates:
            key = _key(ref, upload_root)
            if key in claimed or (wanted is not None and key not in wanted):
                continue
            retained.append(ref)
            claimed.add(key)
        section_images.append(retained + _clean(uploads_by_index.get(index, [])))

    to_delete: list[str] = []
    for ref in pool:
        key = _key(ref, upload_root)
        if key in claimed:
            continue
        to_delete.append(ref)
        claimed.add(key)
    for index, refs in uploads_by_index.items():
        if index < 0 or index >= len(submitted_retains):
            logger.warning("[media] upload for missing section %s discarded", index)
            to_delete.extend(refs)
    return SectionsPlan(section_images=section_images, to_delete=to_delete)


def merge_plans(*plans: _Plan, upload_root: Path | str) -> list[str]:
    """Combine deletions, dropping anything still referenced by a plan's next state."""
    live = {_key(ref, upload_root) for plan in plans for ref in plan.next_refs}
    merged: list[str] = []
    seen: set[str] = set()
    for plan in plans:
        for ref in plan.to_delete:
            key = _key(ref, upload_root)
            if key in live or key in seen:
                continue
            merged.append(ref)
            seen.add(key)
    return merged


def execute_deletions(references: Iterable[str], storage: StorageBackend) -> DeletionReport:
    """Delete each reference; failures are logged and never raised."""
    report = DeletionReport()
    for ref in references:
        try:
            deleted = storage.delete(ref)
        except (StorageError, OSError) as exc:
            logger.error("[media] failed to delete %s: %s", ref, exc)
            report.failed.append(ref)
            continue
        if deleted:
            report.deleted.append(ref)
        else:
            logger.warning("[media] nothing deleted for %s", ref)
            report.missing.append(ref)
    return report


def collect_entity_references(entity) -> list[str]:
    """Every image reference held by a project or service."""
    refs: list[str] = []
    poster = getattr(entity, "poster_img", None)
    if poster:
        refs.append(poster)
    refs.extend(getattr(entity, "image_list", None) or [])
    for section in getattr(entity, "sections", None) or []:
        refs.extend(section.image_list)
    return _clean(refs)
