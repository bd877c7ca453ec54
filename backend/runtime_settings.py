"""Helpers to resolve runtime configuration with persisted overrides."""

from __future__ import annotations

from dataclasses import dataclass

from settings import S
from database import (
    get_api_key,
    get_provider_preference,
    get_selected_openrouter_model,
)


@dataclass(frozen=True)
class ClassifierConfig:
    """Snapshot of credential and provider choices for one classification call."""

    api_key: str | None
    provider_preference: str | None = None
    selected_model: str | None = None


def resolve_api_key() -> str | None:
    """Return the stored API key, falling back to the environment."""

    stored = get_api_key()
    if stored:
        return stored
    value = (S.API_KEY or "").strip()
    return value or None


def resolve_provider_preference() -> str | None:
    """Return the preferred provider family or None for auto-detection."""

    override = get_provider_preference()
    if override:
        return override
    value = (S.AI_PROVIDER or "").strip().lower()
    if not value or value == "auto":
        return None
    return value


def resolve_selected_model() -> str | None:
    """Return the persisted OpenRouter model choice, if any."""

    override = get_selected_openrouter_model()
    if override:
        return override
    value = (S.OPENROUTER_MODEL or "").strip()
    return value or None


def load_classifier_config() -> ClassifierConfig:
    return ClassifierConfig(
        api_key=resolve_api_key(),
        provider_preference=resolve_provider_preference(),
        selected_model=resolve_selected_model(),
    )


def resolve_default_parent_id() -> str:
    value = (S.DEFAULT_PARENT_ID or "").strip()
    return value or "1"


def resolve_organize_delay() -> float:
    try:
        delay = float(S.ORGANIZE_DELAY_SECONDS)
    except (TypeError, ValueError):
        delay = 1.0
    return max(0.0, delay)
