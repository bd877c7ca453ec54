"""Inference provider profiles and selection by preference or API key shape."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Callable, Dict, List, Optional, Tuple

import httpx

from errors import TokenExchangeError
from settings import S


logger = logging.getLogger(__name__)


OPENROUTER = "openrouter"
COPILOT = "copilot"

# Only this family accepts a separately selected model.
MODEL_OVERRIDE_PROVIDER = OPENROUTER
DEFAULT_PROVIDER = OPENROUTER

_COPILOT_EDITOR_HEADERS = {
    "Editor-Version": "vscode/1.95.0",
    "Editor-Plugin-Version": "copilot/1.156.0",
    "User-Agent": "GitHubCopilot/1.156.0",
}


@dataclass(frozen=True)
class ProviderProfile:
    """An OpenAI compatible chat completion endpoint."""

    key: str
    name: str
    base_url: str
    model: str
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def supports_model_override(self) -> bool:
        return self.key == MODEL_OVERRIDE_PROVIDER

    def with_model(self, model: str) -> "ProviderProfile":
        return replace(self, model=model)


PROVIDERS: Dict[str, ProviderProfile] = {
    "openai": ProviderProfile(
        key="openai",
        name="OpenAI",
        base_url="https://api.openai.com/v1",
        model="gpt-3.5-turbo",
    ),
    "moonshot": ProviderProfile(
        key="moonshot",
        name="Moonshot (Kimi)",
        base_url="https://api.moonshot.ai/v1",
        model="kimi-k2-0711-preview",
    ),
    "grok": ProviderProfile(
        key="grok",
        name="Grok",
        base_url="https://api.x.ai/v1",
        model="grok-beta",
    ),
    OPENROUTER: ProviderProfile(
        key=OPENROUTER,
        name="OpenRouter",
        base_url="https://openrouter.ai/api/v1",
        model="openai/gpt-4o-mini",
    ),
    "groq": ProviderProfile(
        key="groq",
        name="Groq",
        base_url="https://api.groq.com/openai/v1",
        model="llama-3.3-70b-versatile",
    ),
    COPILOT: ProviderProfile(
        key=COPILOT,
        name="GitHub Copilot",
        base_url="https://api.githubcopilot.com",
        model="gpt-4o",
        headers={
            **_COPILOT_EDITOR_HEADERS,
            "Openai-Organization": "github-copilot",
            "Openai-Intent": "conversation-panel",
        },
    ),
}


KeyPredicate = Callable[[str], bool]

# Evaluated top to bottom; the first matching rule wins. Specific prefixes come
# before the content and length checks.
DETECTION_RULES: List[Tuple[KeyPredicate, str]] = [
    (lambda key: key.startswith("gho_") or key.startswith("github_pat_"), COPILOT),
    (lambda key: key.startswith("gsk_"), "groq"),
    (lambda key: key.startswith("sk-") and "kimi" not in key and "or-v1" not in key, "openai"),
    (lambda key: key.startswith("sk-or-v1-") or "openrouter" in key, OPENROUTER),
    (lambda key: "kimi" in key or len(key) > 40, "moonshot"),
    (lambda key: "grok" in key or key.startswith("xai-"), "grok"),
]


def provider_names() -> List[str]:
    return list(PROVIDERS)


def detect_provider(api_key: str) -> ProviderProfile:
    """Guess the provider family from the literal shape of the API key."""

    for predicate, provider_key in DETECTION_RULES:
        if predicate(api_key):
            return PROVIDERS[provider_key]
    return PROVIDERS[DEFAULT_PROVIDER]


def resolve_provider(
    api_key: str,
    preference: Optional[str] = None,
    selected_model: Optional[str] = None,
) -> ProviderProfile:
    """Return the profile to use for one classification call."""

    preferred = (preference or "").strip().lower()
    if preferred and preferred in PROVIDERS:
        profile = PROVIDERS[preferred]
    else:
        if preferred and preferred != "auto":
            logger.warning("Unknown provider preference %s, detecting from API key", preferred)
        profile = detect_provider(api_key)

    if profile.supports_model_override and selected_model:
        profile = profile.with_model(selected_model)
    return profile


def requires_token_exchange(profile: ProviderProfile) -> bool:
    return profile.key == COPILOT


async def exchange_copilot_token(github_token: str) -> str:
    """Trade a GitHub token for a short lived Copilot session token."""

    headers = {
        "Authorization": f"token {github_token}",
        "Accept": "application/json",
        **_COPILOT_EDITOR_HEADERS,
    }
    try:
        async with httpx.AsyncClient(timeout=S.REQUEST_TIMEOUT_SECONDS) as client:
            response = await client.get(S.COPILOT_TOKEN_URL, headers=headers)
            response.raise_for_status()
            payload = response.json()
    except httpx.HTTPStatusError as exc:
        status = exc.response.status_code if exc.response is not None else "?"
        logger.error("GitHub Copilot token fetch failed: %s", status)
        raise TokenExchangeError(
            "Failed to authenticate with GitHub Copilot. Ensure you have Copilot Pro enabled on your account."
        ) from exc
    except (httpx.HTTPError, ValueError) as exc:
        logger.error("Error fetching Copilot token: %s", exc)
        raise TokenExchangeError(
            "Failed to authenticate with GitHub Copilot. Ensure you have Copilot Pro enabled on your account."
        ) from exc

    token = payload.get("token") if isinstance(payload, dict) else None
    if not isinstance(token, str) or not token.strip():
        raise TokenExchangeError("GitHub Copilot token response did not contain a token")
    return token.strip()
