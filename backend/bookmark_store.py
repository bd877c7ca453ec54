"""SQL backed bookmark tree with folders and links."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Optional

from sqlalchemy import func
from sqlmodel import Session, select

from database import ROOT_NODE_ID, SYSTEM_ROOTS, get_session
from errors import StoreError, UnknownNodeError
from models import BookmarkNode


logger = logging.getLogger(__name__)


SYSTEM_ROOT_IDS: FrozenSet[str] = frozenset(str(node_id) for node_id in SYSTEM_ROOTS)
ROOT_ID = str(ROOT_NODE_ID)


@dataclass
class FolderNode:
    """One node of the bookmark tree; a link when ``url`` is set."""

    id: str
    title: str
    parent_id: Optional[str] = None
    url: Optional[str] = None
    children: List["FolderNode"] = field(default_factory=list)

    @property
    def is_link(self) -> bool:
        return bool(self.url)


def _parse_id(node_id: str | int) -> int:
    try:
        return int(str(node_id).strip())
    except (TypeError, ValueError) as exc:
        raise UnknownNodeError(f"Bookmark node {node_id!r} does not exist") from exc


def _to_node(row: BookmarkNode) -> FolderNode:
    return FolderNode(
        id=str(row.id),
        title=row.title or "",
        parent_id=str(row.parent_id) if row.parent_id is not None else None,
        url=row.url or None,
    )


def _load(ses: Session, node_id: str | int) -> BookmarkNode:
    row = ses.get(BookmarkNode, _parse_id(node_id))
    if row is None:
        raise UnknownNodeError(f"Bookmark node {node_id!r} does not exist")
    return row


def _load_folder(ses: Session, node_id: str | int) -> BookmarkNode:
    row = _load(ses, node_id)
    if row.url:
        raise StoreError(f"Bookmark node {node_id!r} is a link, not a folder")
    return row


def _child_rows(ses: Session, parent_id: int) -> List[BookmarkNode]:
    stmt = (
        select(BookmarkNode)
        .where(BookmarkNode.parent_id == parent_id)
        .order_by(BookmarkNode.position, BookmarkNode.id)
    )
    return list(ses.exec(stmt).all())


def _next_position(ses: Session, parent_id: int) -> int:
    count = ses.exec(
        select(func.count(BookmarkNode.id)).where(BookmarkNode.parent_id == parent_id)
    ).one()
    if isinstance(count, tuple):
        count = count[0]
    return int(count or 0)


def _list_children(node_id: str) -> List[FolderNode]:
    with get_session() as ses:
        parent = _load(ses, node_id)
        return [_to_node(row) for row in _child_rows(ses, parent.id)]


def _get_node(node_id: str) -> FolderNode:
    with get_session() as ses:
        return _to_node(_load(ses, node_id))


def _create(parent_id: str, title: str, url: Optional[str]) -> FolderNode:
    with get_session() as ses:
        parent = _load_folder(ses, parent_id)
        row = BookmarkNode(
            parent_id=parent.id,
            title=title,
            url=url,
            position=_next_position(ses, parent.id),
        )
        ses.add(row)
        ses.commit()
        ses.refresh(row)
        return _to_node(row)


def _move(node_id: str, parent_id: str) -> FolderNode:
    if str(node_id) in SYSTEM_ROOT_IDS:
        raise StoreError(f"System folder {node_id} cannot be moved")
    with get_session() as ses:
        row = _load(ses, node_id)
        target = _load_folder(ses, parent_id)
        ancestor: Optional[BookmarkNode] = target
        while ancestor is not None:
            if ancestor.id == row.id:
                raise StoreError(f"Cannot move node {node_id} into its own subtree")
            ancestor = ses.get(BookmarkNode, ancestor.parent_id) if ancestor.parent_id is not None else None
        if row.parent_id != target.id:
            row.parent_id = target.id
            row.position = _next_position(ses, target.id)
            ses.add(row)
            ses.commit()
            ses.refresh(row)
        return _to_node(row)


def _delete(node_id: str) -> None:
    if str(node_id) in SYSTEM_ROOT_IDS:
        raise StoreError(f"System folder {node_id} cannot be removed")
    with get_session() as ses:
        row = _load(ses, node_id)
        if _next_position(ses, row.id):
            raise StoreError(f"Folder {node_id} is not empty")
        ses.delete(row)
        ses.commit()


def _full_tree() -> FolderNode:
    with get_session() as ses:
        rows = ses.exec(select(BookmarkNode).order_by(BookmarkNode.position, BookmarkNode.id)).all()
        nodes: Dict[str, FolderNode] = {str(row.id): _to_node(row) for row in rows}
    for node in nodes.values():
        if node.parent_id is None:
            continue
        parent = nodes.get(node.parent_id)
        if parent is None:
            logger.warning("Bookmark node %s references missing parent %s", node.id, node.parent_id)
            continue
        parent.children.append(node)
    root = nodes.get(ROOT_ID)
    if root is None:
        raise StoreError("Bookmark tree has no root node")
    return root


class BookmarkStore:
    """Async facade over the bookmark tables.

    Every method runs its blocking database session in a worker thread and
    raises :class:`StoreError` (or :class:`UnknownNodeError`) on failure.
    """

    async def list_children(self, node_id: str) -> List[FolderNode]:
        return await asyncio.to_thread(_list_children, node_id)

    async def get_node(self, node_id: str) -> FolderNode:
        return await asyncio.to_thread(_get_node, node_id)

    async def create_folder(self, parent_id: str, title: str) -> FolderNode:
        node = await asyncio.to_thread(_create, parent_id, title, None)
        logger.info("Created folder %s (%s) under %s", node.title, node.id, parent_id)
        return node

    async def create_link(self, parent_id: str, title: str, url: str) -> FolderNode:
        if not url:
            raise StoreError("A bookmark needs a URL")
        return await asyncio.to_thread(_create, parent_id, title, url)

    async def move_node(self, node_id: str, parent_id: str) -> FolderNode:
        return await asyncio.to_thread(_move, node_id, parent_id)

    async def delete_node(self, node_id: str) -> None:
        await asyncio.to_thread(_delete, node_id)

    async def get_full_tree(self) -> FolderNode:
        return await asyncio.to_thread(_full_tree)
