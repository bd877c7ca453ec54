"""Reclassify every bookmark and tidy up the folder tree afterwards."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Awaitable, Callable, List, Optional

from bookmark_manager import BookmarkManager
from classifier import ClassificationResult, classify_url
from cleanup import remove_empty_folders
from runtime_settings import resolve_organize_delay


logger = logging.getLogger(__name__)


Classifier = Callable[..., Awaitable[ClassificationResult]]
ProgressListener = Callable[[int, int], None]


@dataclass
class OrganizeResult:
    processed: int = 0
    total: int = 0
    removed_folders: int = 0
    failed: List[str] = field(default_factory=list)


def _notify(listener: Optional[ProgressListener], processed: int, total: int) -> None:
    if listener is None:
        return
    try:
        listener(processed, total)
    except Exception:
        logger.debug("Progress listener failed", exc_info=True)


async def organize_all_bookmarks(
    manager: BookmarkManager | None = None,
    *,
    classify: Optional[Classifier] = None,
    on_progress: Optional[ProgressListener] = None,
    delay: float | None = None,
) -> OrganizeResult:
    """Classify and move every bookmark one at a time, then drop empty folders.

    A failing bookmark is logged and skipped. Errors from the final cleanup
    propagate to the caller.
    """

    manager = manager or BookmarkManager()
    classify = classify or classify_url
    pause = resolve_organize_delay() if delay is None else max(0.0, delay)
    bookmarks = await manager.get_all_bookmarks()
    existing_folders = await manager.get_existing_folders()
    result = OrganizeResult(total=len(bookmarks))

    logger.info("Found %s bookmarks to organize", result.total)
    logger.info("Found %s existing folders", len(existing_folders))

    for bookmark in bookmarks:
        try:
            classification = await classify(bookmark.url, bookmark.title, existing_folders)
            await manager.move_bookmark(bookmark.id, classification.folder_path)
            result.processed += 1
            _notify(on_progress, result.processed, result.total)
        except Exception:
            logger.exception("Failed to organize bookmark %s", bookmark.url)
            result.failed.append(bookmark.id)
        # Fixed throttle between provider requests.
        await asyncio.sleep(pause)

    logger.info("Cleaning up empty folders")
    result.removed_folders = await remove_empty_folders(manager.store)
    logger.info("Removed %s empty folders", result.removed_folders)
    return result


@dataclass
class OrganizeStatus:
    """Runtime information about the organize-all batch."""

    active: bool = False
    processed: int = 0
    total: int = 0
    removed_folders: Optional[int] = None
    failed: int = 0
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    last_error: Optional[str] = None


class OrganizeBusyError(Exception):
    """Raised when a batch is requested while another one is running."""


class OrganizeController:
    """Run at most one organize-all batch in the background."""

    def __init__(self) -> None:
        self._task: asyncio.Task[Optional[OrganizeResult]] | None = None
        self._lock = asyncio.Lock()
        self._status = OrganizeStatus()

    @property
    def status(self) -> OrganizeStatus:
        return self._status

    @property
    def task(self) -> asyncio.Task[Optional[OrganizeResult]] | None:
        return self._task

    async def start(self, manager: BookmarkManager | None = None) -> None:
        async with self._lock:
            if self._task and not self._task.done():
                raise OrganizeBusyError("bookmark organization already running")
            self._status = OrganizeStatus(active=True, started_at=datetime.now(timezone.utc))
            self._task = asyncio.create_task(self._run(manager))

    def _on_progress(self, processed: int, total: int) -> None:
        self._status.processed = processed
        self._status.total = total

    async def _run(self, manager: BookmarkManager | None) -> Optional[OrganizeResult]:
        try:
            result = await organize_all_bookmarks(manager, on_progress=self._on_progress)
            self._status.processed = result.processed
            self._status.total = result.total
            self._status.removed_folders = result.removed_folders
            self._status.failed = len(result.failed)
            return result
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.exception("Error organizing all bookmarks")
            self._status.last_error = str(exc)
            return None
        finally:
            self._status.active = False
            self._status.finished_at = datetime.now(timezone.utc)


def status_message(status: OrganizeStatus) -> str:
    if status.active:
        return f"Organizing: {status.processed}/{status.total}"
    if status.last_error:
        return f"Error: {status.last_error}"
    if status.finished_at is None:
        return "Ready"
    message = f"Organization complete! Processed {status.processed}/{status.total} bookmarks."
    if status.removed_folders:
        message += f" Removed {status.removed_folders} empty folders."
    return message


controller = OrganizeController()
