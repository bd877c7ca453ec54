"""Place bookmarks into classified folders and inspect the current tree."""

from __future__ import annotations

import logging
from typing import List, Sequence

from bookmark_store import SYSTEM_ROOT_IDS, BookmarkStore, FolderNode
from folder_paths import ensure_folder_path, sanitize_path
from runtime_settings import resolve_default_parent_id


logger = logging.getLogger(__name__)


FOLDER_PATH_SEPARATOR = " > "


class BookmarkManager:
    def __init__(self, store: BookmarkStore | None = None, *, root_id: str | None = None) -> None:
        self.store = store or BookmarkStore()
        self.root_id = root_id or resolve_default_parent_id()

    async def resolve_folder(self, folder_path: Sequence[str]) -> str:
        return await ensure_folder_path(self.store, sanitize_path(folder_path), root_id=self.root_id)

    async def create_bookmark(self, url: str, title: str, folder_path: Sequence[str]) -> FolderNode:
        folder_id = await self.resolve_folder(folder_path)
        node = await self.store.create_link(folder_id, title, url)
        logger.info("Saved bookmark %s in folder %s", url, folder_id)
        return node

    async def move_bookmark(self, bookmark_id: str, folder_path: Sequence[str]) -> FolderNode:
        folder_id = await self.resolve_folder(folder_path)
        return await self.store.move_node(bookmark_id, folder_id)

    async def get_all_bookmarks(self) -> List[FolderNode]:
        tree = await self.store.get_full_tree()
        bookmarks: List[FolderNode] = []

        def traverse(nodes: Sequence[FolderNode]) -> None:
            for node in nodes:
                if node.is_link:
                    bookmarks.append(node)
                if node.children:
                    traverse(node.children)

        traverse([tree])
        return bookmarks

    async def get_existing_folders(self) -> List[str]:
        """Return every user folder as a ``"A > B > C"`` path, depth first."""

        tree = await self.store.get_full_tree()
        paths: List[str] = []

        def traverse(node: FolderNode, prefix: List[str]) -> None:
            for child in node.children:
                if child.is_link:
                    continue
                if child.id in SYSTEM_ROOT_IDS:
                    traverse(child, prefix)
                    continue
                segments = [*prefix, child.title.strip() or "(untitled)"]
                paths.append(FOLDER_PATH_SEPARATOR.join(segments))
                traverse(child, segments)

        traverse(tree, [])
        return paths
