"""Remove folders left empty after reorganizing bookmarks."""

from __future__ import annotations

import logging
from typing import AbstractSet, List

from bookmark_store import SYSTEM_ROOT_IDS, BookmarkStore, FolderNode
from errors import StoreError
from runtime_settings import resolve_default_parent_id


logger = logging.getLogger(__name__)


class _EmptyFolderSweep:
    def __init__(self, store: BookmarkStore, protected_ids: AbstractSet[str]) -> None:
        self._store = store
        self._protected = {str(node_id) for node_id in protected_ids}
        self.removed: List[str] = []

    async def visit(self, node: FolderNode) -> bool:
        """Return True when ``node`` was removed (or may be removed) as empty."""

        if node.is_link:
            return False

        has_content = False
        for child in list(node.children):
            if not await self.visit(child):
                has_content = True

        if node.id in self._protected:
            return False
        if has_content:
            return False

        try:
            await self._store.delete_node(node.id)
        except StoreError as exc:
            logger.warning("Could not remove empty folder %s (%s): %s", node.title, node.id, exc)
            return False
        self.removed.append(node.id)
        logger.debug("Removed empty folder %s (%s)", node.title, node.id)
        return True


async def remove_empty_folders(
    store: BookmarkStore,
    *,
    protected_ids: AbstractSet[str] = SYSTEM_ROOT_IDS,
) -> int:
    """Delete every folder without links below it and return how many went.

    The walk is post-order so a folder whose subfolders were all removed is
    removed in the same pass. System roots and the configured default parent
    folder are never removed.
    """

    tree = await store.get_full_tree()
    protected = {*protected_ids, resolve_default_parent_id()}
    sweep = _EmptyFolderSweep(store, protected)
    await sweep.visit(tree)
    if sweep.removed:
        logger.info("Removed %s empty folders", len(sweep.removed))
    return len(sweep.removed)
