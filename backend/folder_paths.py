"""Resolve classifier folder paths to folders in the bookmark tree."""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Protocol, Sequence

from naming import normalize_folder_name


logger = logging.getLogger(__name__)


class FolderStore(Protocol):
    async def list_children(self, node_id: str): ...

    async def create_folder(self, parent_id: str, title: str): ...


def _clean_segment(raw: object) -> str:
    if not isinstance(raw, str):
        return ""
    return raw.strip().strip("/\\").strip()


def sanitize_path(raw_path: Iterable[object] | None) -> List[str]:
    """Trim segments, drop empty ones and drop repeats of an earlier segment.

    >>> sanitize_path(["  ", "News", "World", "News"])
    ['News', 'World']
    """

    if not raw_path:
        return []
    seen: set[str] = set()
    segments: List[str] = []
    for raw in raw_path:
        segment = _clean_segment(raw)
        if not segment:
            continue
        key = normalize_folder_name(segment)
        if key in seen:
            continue
        seen.add(key)
        segments.append(segment)
    return segments


async def find_child_folder(store: FolderStore, parent_id: str, name: str) -> Optional[object]:
    key = normalize_folder_name(name)
    for child in await store.list_children(parent_id):
        if child.url:
            continue
        if normalize_folder_name(child.title) == key:
            return child
    return None


async def ensure_folder_path(
    store: FolderStore,
    path: Sequence[str],
    *,
    root_id: str = "1",
) -> str:
    """Return the id of the folder addressed by ``path``, creating missing parts.

    Matching is done on normalized names, so decorated variants of an existing
    folder are reused instead of created as siblings. A segment equal to the
    one before it is skipped to avoid nesting a folder inside itself. Store
    errors propagate to the caller.
    """

    current_id = str(root_id)
    previous_key: str | None = None
    for raw in path:
        name = _clean_segment(raw)
        if not name:
            continue
        key = normalize_folder_name(name)
        if key == previous_key:
            logger.debug("Skipping self-nested folder segment %s", name)
            continue
        existing = await find_child_folder(store, current_id, name)
        if existing is not None:
            current_id = existing.id
        else:
            created = await store.create_folder(current_id, name)
            current_id = created.id
        previous_key = key
    return current_id
