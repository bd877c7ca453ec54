"""OpenRouter model discovery."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Iterable, List, Optional

import httpx

from settings import S


logger = logging.getLogger(__name__)


@dataclass(slots=True)
class OpenRouterModel:
    id: str
    name: str
    context_length: int | None = None
    free: bool = False


# Tried in order when a replacement model has to be picked automatically.
PREFERRED_MODELS = (
    "openai/gpt-4o-mini",
    "google/gemini-2.0-flash-001",
    "meta-llama/llama-3.3-70b-instruct",
    "mistralai/mistral-small-3.1-24b-instruct",
)


_MODEL_CACHE: List[OpenRouterModel] = []
_MODEL_CACHE_AT: float | None = None
_MODEL_CACHE_LOCK = asyncio.Lock()


def _is_free(pricing: Any) -> bool:
    if not isinstance(pricing, dict):
        return False
    prices = [value for value in (pricing.get("prompt"), pricing.get("completion")) if value is not None]
    if not prices:
        return False
    try:
        return all(float(value) == 0.0 for value in prices)
    except (TypeError, ValueError):
        return False


def _parse_models(payload: Any) -> List[OpenRouterModel]:
    entries = payload.get("data") if isinstance(payload, dict) else payload
    if not isinstance(entries, list):
        return []
    models: List[OpenRouterModel] = []
    seen: set[str] = set()
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        model_id = str(entry.get("id") or "").strip()
        if not model_id or model_id in seen:
            continue
        seen.add(model_id)
        context = entry.get("context_length")
        models.append(
            OpenRouterModel(
                id=model_id,
                name=str(entry.get("name") or model_id),
                context_length=int(context) if isinstance(context, (int, float)) else None,
                free=_is_free(entry.get("pricing")),
            )
        )
    return models


def _cache_fresh() -> bool:
    if _MODEL_CACHE_AT is None or not _MODEL_CACHE:
        return False
    ttl = max(0, int(S.OPENROUTER_MODEL_CACHE_SECONDS))
    return (time.monotonic() - _MODEL_CACHE_AT) < ttl


def invalidate_model_cache() -> None:
    global _MODEL_CACHE_AT
    _MODEL_CACHE.clear()
    _MODEL_CACHE_AT = None


async def fetch_openrouter_models(api_key: str | None, force_refresh: bool = False) -> List[OpenRouterModel]:
    """Return the models OpenRouter offers, cached for a configurable time."""

    global _MODEL_CACHE_AT
    async with _MODEL_CACHE_LOCK:
        if not force_refresh and _cache_fresh():
            return list(_MODEL_CACHE)

        headers = {"Accept": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        async with httpx.AsyncClient(timeout=S.REQUEST_TIMEOUT_SECONDS) as client:
            response = await client.get(S.OPENROUTER_MODELS_URL, headers=headers)
            response.raise_for_status()
            payload = response.json()

        models = _parse_models(payload)
        _MODEL_CACHE.clear()
        _MODEL_CACHE.extend(models)
        _MODEL_CACHE_AT = time.monotonic()
        logger.debug("Loaded %s OpenRouter models", len(models))
        return list(models)


def pick_default_model(models: Iterable[OpenRouterModel], exclude: Iterable[str] = ()) -> Optional[str]:
    excluded = {value for value in exclude if value}
    available = [model for model in models if model.id not in excluded]
    if not available:
        return None
    ids = {model.id for model in available}
    for candidate in PREFERRED_MODELS:
        if candidate in ids:
            return candidate
    return available[0].id


async def choose_default_openrouter_model(
    api_key: str | None,
    *,
    exclude: Iterable[str] = (),
) -> Optional[str]:
    """Pick a replacement model, or None when none can be determined."""

    try:
        models = await fetch_openrouter_models(api_key, force_refresh=True)
    except (httpx.HTTPError, ValueError) as exc:
        logger.warning("Could not load OpenRouter models: %s", exc)
        return None
    return pick_default_model(models, exclude)
