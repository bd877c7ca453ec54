"""FastAPI application for the bookmark sorter backend."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Dict, List, Optional

import httpx
from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from bookmark_manager import BookmarkManager
from bookmark_store import FolderNode
from classifier import classify_url
from cleanup import remove_empty_folders
from database import (
    clear_api_key,
    clear_selected_openrouter_model,
    init_db,
    set_api_key,
    set_provider_preference,
    set_selected_openrouter_model,
)
from errors import (
    AuthError,
    ClassificationError,
    PreconditionError,
    ProviderPermissionError,
    RateLimitError,
    SorterError,
    StoreError,
    UnknownNodeError,
)
from openrouter import fetch_openrouter_models
from organizer import OrganizeBusyError, OrganizeStatus, controller as organize_controller, status_message
from providers import provider_names, resolve_provider
from runtime_settings import (
    resolve_api_key,
    resolve_provider_preference,
    resolve_selected_model,
)
from settings import S


class BookmarkResponse(BaseModel):
    id: str
    title: str
    url: Optional[str] = None
    parent_id: Optional[str] = None

    @classmethod
    def from_node(cls, node: FolderNode) -> "BookmarkResponse":
        return cls(id=node.id, title=node.title, url=node.url, parent_id=node.parent_id)


class ClassificationResponse(BaseModel):
    folderPath: List[str]
    tags: List[str] = Field(default_factory=list)


class ClassifyRequest(BaseModel):
    url: str = Field(..., min_length=1)
    title: str = ""
    save: bool = True


class ClassifyResponse(BaseModel):
    classification: ClassificationResponse
    bookmark: Optional[BookmarkResponse] = None


class BookmarkCreateRequest(BaseModel):
    url: str = Field(..., min_length=1)
    title: str = ""
    classification: ClassificationResponse


class FolderListResponse(BaseModel):
    folders: List[str]


class BookmarkListResponse(BaseModel):
    bookmarks: List[BookmarkResponse]


class CleanupResponse(BaseModel):
    removed_folders: int


class OrganizeStatusResponse(BaseModel):
    active: bool
    processed: int
    total: int
    removed_folders: Optional[int] = None
    failed: int = 0
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    last_error: Optional[str] = None
    message: str

    @classmethod
    def from_status(cls, status: OrganizeStatus) -> "OrganizeStatusResponse":
        return cls(
            active=status.active,
            processed=status.processed,
            total=status.total,
            removed_folders=status.removed_folders,
            failed=status.failed,
            started_at=status.started_at,
            finished_at=status.finished_at,
            last_error=status.last_error,
            message=status_message(status),
        )


class ConfigResponse(BaseModel):
    provider: str
    active_provider: Optional[str] = None
    active_model: Optional[str] = None
    openrouter_model: Optional[str] = None
    has_api_key: bool
    providers: List[str]


class ConfigUpdateRequest(BaseModel):
    provider: Optional[str] = None
    openrouter_model: Optional[str] = None
    api_key: Optional[str] = None
    clear_api_key: bool = False


class OpenRouterModelResponse(BaseModel):
    id: str
    name: str
    context_length: Optional[int] = None
    free: bool = False


class OpenRouterModelsResponse(BaseModel):
    models: List[OpenRouterModelResponse]
    selected: Optional[str] = None


app = FastAPI(title="Bookmark Smart Sorter")
app.add_middleware(
    CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"]
)

logger = logging.getLogger(__name__)


@app.on_event("startup")
async def _startup() -> None:
    logging.basicConfig(level=getattr(logging, S.LOG_LEVEL.upper(), logging.INFO))
    init_db()


def _http_error(exc: SorterError) -> HTTPException:
    if isinstance(exc, PreconditionError):
        return HTTPException(400, str(exc))
    if isinstance(exc, AuthError):
        return HTTPException(401, str(exc))
    if isinstance(exc, ProviderPermissionError):
        return HTTPException(403, str(exc))
    if isinstance(exc, RateLimitError):
        return HTTPException(429, str(exc))
    if isinstance(exc, UnknownNodeError):
        return HTTPException(404, str(exc))
    if isinstance(exc, StoreError):
        return HTTPException(409, str(exc))
    if isinstance(exc, ClassificationError):
        return HTTPException(502, f"Classification failed: {exc}")
    return HTTPException(500, str(exc))


@app.get("/healthz")
def healthcheck() -> Dict[str, str]:
    return {"status": "ok"}


@app.post("/api/classify", response_model=ClassifyResponse)
async def api_classify(payload: ClassifyRequest) -> ClassifyResponse:
    manager = BookmarkManager()
    try:
        existing = await manager.get_existing_folders()
        logger.info("Classifying %s against %s existing folders", payload.url, len(existing))
        result = await classify_url(payload.url, payload.title, existing)
        bookmark = None
        if payload.save:
            node = await manager.create_bookmark(payload.url, payload.title, result.folder_path)
            bookmark = BookmarkResponse.from_node(node)
    except SorterError as exc:
        logger.error("Classification of %s failed: %s", payload.url, exc)
        raise _http_error(exc) from exc
    return ClassifyResponse(
        classification=ClassificationResponse(folderPath=result.folder_path, tags=result.tags),
        bookmark=bookmark,
    )


@app.post("/api/bookmarks", response_model=BookmarkResponse)
async def api_create_bookmark(payload: BookmarkCreateRequest) -> BookmarkResponse:
    manager = BookmarkManager()
    try:
        node = await manager.create_bookmark(
            payload.url, payload.title, payload.classification.folderPath
        )
    except SorterError as exc:
        raise _http_error(exc) from exc
    return BookmarkResponse.from_node(node)


@app.get("/api/bookmarks", response_model=BookmarkListResponse)
async def api_list_bookmarks() -> BookmarkListResponse:
    bookmarks = await BookmarkManager().get_all_bookmarks()
    return BookmarkListResponse(bookmarks=[BookmarkResponse.from_node(node) for node in bookmarks])


@app.get("/api/folders", response_model=FolderListResponse)
async def api_folders() -> FolderListResponse:
    return FolderListResponse(folders=await BookmarkManager().get_existing_folders())


@app.post("/api/cleanup", response_model=CleanupResponse)
async def api_cleanup() -> CleanupResponse:
    try:
        removed = await remove_empty_folders(BookmarkManager().store)
    except SorterError as exc:
        raise _http_error(exc) from exc
    return CleanupResponse(removed_folders=removed)


@app.post("/api/organize", response_model=OrganizeStatusResponse)
async def api_organize() -> OrganizeStatusResponse:
    if not resolve_api_key():
        raise HTTPException(400, "API key not configured. Please save your API key first.")
    try:
        await organize_controller.start()
    except OrganizeBusyError as exc:
        raise HTTPException(409, str(exc)) from exc
    return OrganizeStatusResponse.from_status(organize_controller.status)


@app.get("/api/organize/status", response_model=OrganizeStatusResponse)
async def api_organize_status() -> OrganizeStatusResponse:
    return OrganizeStatusResponse.from_status(organize_controller.status)


def _config_response() -> ConfigResponse:
    api_key = resolve_api_key()
    preference = resolve_provider_preference()
    selected = resolve_selected_model()
    active_provider = None
    active_model = None
    if api_key:
        profile = resolve_provider(api_key, preference, selected)
        active_provider = profile.name
        active_model = profile.model
    return ConfigResponse(
        provider=preference or "auto",
        active_provider=active_provider,
        active_model=active_model,
        openrouter_model=selected,
        has_api_key=bool(api_key),
        providers=["auto", *provider_names()],
    )


@app.get("/api/config", response_model=ConfigResponse)
def api_config() -> ConfigResponse:
    return _config_response()


@app.put("/api/config", response_model=ConfigResponse)
def api_update_config(payload: ConfigUpdateRequest) -> ConfigResponse:
    updates = payload.model_dump(exclude_unset=True)
    if "provider" in updates:
        provider = (payload.provider or "").strip().lower()
        if provider and provider != "auto" and provider not in provider_names():
            raise HTTPException(400, f"unknown provider: {payload.provider}")
        set_provider_preference(provider)
    if "openrouter_model" in updates:
        model = (payload.openrouter_model or "").strip()
        if model:
            set_selected_openrouter_model(model)
        else:
            clear_selected_openrouter_model()
    if payload.clear_api_key:
        clear_api_key()
    elif "api_key" in updates:
        api_key = (payload.api_key or "").strip()
        if not api_key:
            raise HTTPException(400, "Please enter a valid API key.")
        set_api_key(api_key)
    return _config_response()


@app.get("/api/openrouter/models", response_model=OpenRouterModelsResponse)
async def api_openrouter_models(force_refresh: bool = Query(False)) -> OpenRouterModelsResponse:
    api_key = resolve_api_key()
    if not api_key:
        raise HTTPException(400, "Enter and save API key first.")
    try:
        models = await fetch_openrouter_models(api_key, force_refresh=force_refresh)
    except (httpx.HTTPError, ValueError) as exc:
        logger.warning("Failed to load OpenRouter models: %s", exc)
        raise HTTPException(502, "Failed to load models") from exc
    return OpenRouterModelsResponse(
        models=[
            OpenRouterModelResponse(
                id=model.id, name=model.name, context_length=model.context_length, free=model.free
            )
            for model in models
        ],
        selected=resolve_selected_model(),
    )
