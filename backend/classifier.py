from __future__ import annotations

import json
import logging
import textwrap
from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence

from database import clear_selected_openrouter_model, set_selected_openrouter_model
from errors import ModelNotFoundError, NoFallbackModelError, PreconditionError, ResponseFormatError
from inference import complete
from openrouter import choose_default_openrouter_model
from providers import ProviderProfile, exchange_copilot_token, requires_token_exchange, resolve_provider
from runtime_settings import ClassifierConfig, load_classifier_config
from settings import S


logger = logging.getLogger(__name__)


MAX_TAGS = 5
MAX_FOLDER_DEPTH = 3


@dataclass
class ClassificationResult:
    folder_path: List[str]
    tags: List[str] = field(default_factory=list)

    def as_dict(self) -> Dict[str, List[str]]:
        return {"folderPath": list(self.folder_path), "tags": list(self.tags)}


_PROMPT_HEADER = textwrap.dedent(
    """
    You are an AI information architect responsible for organizing bookmarks into a clean, minimal, long-term folder system.

    Your primary goal is NOT to create new folders, but to reuse and consolidate existing ones into a small, stable hierarchy.

    Think like a librarian, not a classifier.

    ### Core Principles (STRICT)

    1. Reuse over creation
       - ALWAYS prefer existing folders if they are even a reasonable semantic match.
       - Treat folders with different emojis but the same meaning as duplicates.
       - Treat singular/plural and wording variations as the same category.
    2. One concept = one folder
       - Never create multiple folders that represent the same idea (e.g. "Technology", "Tech", "💻 Technology").
       - Never nest a category inside itself or a near-duplicate (e.g. "Technology → Coding → Technology").
    3. Minimal structure
       - Use the FEWEST folders possible.
       - Folder depth: 1-{max_depth} levels maximum.
       - Do NOT create a new top-level folder unless absolutely necessary.
    4. Broad → Specific
       - Top-level folders are broad domains (e.g. Coding, Finance, News, Learning).
       - Subfolders narrow by purpose or format (e.g. Guides, News, Tools).
       - Deeper levels are for specific technologies or topics (e.g. HTML, Python).
    5. No path-style or malformed names
       - Folder names must NEVER contain slashes, prefixes, or path fragments.
       - Never create folders like "/Category" or "Category/Subcategory".

    ### Folder Naming Rules

    - Each folder name starts with ONE simple emoji, uses clear human-friendly wording
      and represents a stable concept that can hold many bookmarks.
    - GOOD: 🧑‍💻 Coding → 📘 Guides → 🌐 HTML
    - BAD: 💻 Technology + 🧑‍💻 Technology, Coding → Coding, /Technology → /Technology/HTML

    ### Tags

    - Generate 2-5 lowercase tags describing the content, not restating folder names.
    - Prefer specific terms (e.g. "html", "frontend", "investing").
    """
).strip()

_PROMPT_FOOTER = textwrap.dedent(
    """
    ### Output Rules (MANDATORY)

    - Output valid JSON ONLY. No explanations, no markdown.
    - Structure: {"folderPath": ["Emoji Folder", "Emoji Subfolder", "Emoji Topic"], "tags": ["tag1", "tag2", "tag3"]}

    ### Examples

    HTML guide article → {"folderPath": ["🧑‍💻 Coding", "📘 Guides", "🌐 HTML"], "tags": ["html", "frontend", "web"]}
    Tech news website → {"folderPath": ["🧑‍💻 Coding", "📰 News"], "tags": ["tech", "industry", "news"]}
    Finance investing blog → {"folderPath": ["💰 Finance", "📈 Investing"], "tags": ["investing", "markets", "finance"]}
    Global news site → {"folderPath": ["📰 News"], "tags": ["news", "world", "current-events"]}
    """
).strip()


def _max_depth() -> int:
    try:
        depth = int(S.CLASSIFIER_MAX_DEPTH)
    except (TypeError, ValueError):
        depth = MAX_FOLDER_DEPTH
    return min(MAX_FOLDER_DEPTH, max(1, depth))


def build_classification_prompt(url: str, title: str, existing_folders: Sequence[str] = ()) -> str:
    """Return the single user prompt asking for a folder path and tags."""

    folders = [str(item).strip() for item in existing_folders if str(item).strip()]
    if folders:
        folder_lines = "\n".join(f"- {item}" for item in folders)
        folder_section = (
            "### Existing Folders (CRITICAL)\n\n"
            "Normalize their meaning (ignore emoji differences), reuse full or partial paths whenever "
            "possible and only create a new folder if NO existing folder reasonably fits.\n\n"
            f"{folder_lines}"
        )
    else:
        folder_section = "### Existing Folders\n\n(none yet)"

    input_section = f"### Input\n\nURL: {url}\nTitle: {title or '-'}"
    header = _PROMPT_HEADER.replace("{max_depth}", str(_max_depth()))
    return "\n\n".join([header, folder_section, input_section, _PROMPT_FOOTER])


def _strip_code_fence(content: str) -> str:
    text = content.strip()
    if not text.startswith("```"):
        return text
    stripped = text[3:]
    stripped = stripped.lstrip()
    if stripped.lower().startswith("json"):
        stripped = stripped[4:].lstrip()
    closing = stripped.rfind("```")
    if closing != -1:
        stripped = stripped[:closing]
    return stripped.strip()


def _load_json_object(content: str) -> Dict[str, Any] | None:
    text = _strip_code_fence(content)
    candidates = [text]
    brace_start = text.find("{")
    brace_end = text.rfind("}")
    if brace_start != -1 and brace_end > brace_start:
        inner = text[brace_start : brace_end + 1]
        if inner != text:
            candidates.append(inner)
    for candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed
    return None


def _normalise_tags(raw: Any) -> List[str]:
    if not isinstance(raw, list):
        return []
    tags: List[str] = []
    for item in raw:
        if not isinstance(item, str):
            continue
        value = item.strip().lower()
        if value and value not in tags:
            tags.append(value)
    return tags[:MAX_TAGS]


def parse_classification(content: str | None) -> ClassificationResult:
    """Validate a model answer and return the folder path and tags."""

    if not content or not content.strip():
        raise ResponseFormatError("No response content received from AI provider")
    parsed = _load_json_object(content)
    if parsed is None:
        preview = content.strip().splitlines()[0][:200]
        logger.warning("Could not parse classification response (preview: %s)", preview)
        raise ResponseFormatError("Invalid response format: expected a JSON object")
    folder_path = parsed.get("folderPath")
    if not isinstance(folder_path, list):
        raise ResponseFormatError("Invalid response format: missing folderPath")
    segments = [str(item) for item in folder_path if item is not None]
    return ClassificationResult(
        folder_path=segments[: _max_depth()],
        tags=_normalise_tags(parsed.get("tags")),
    )


def _sampling() -> tuple[int, float]:
    try:
        max_tokens = int(S.CLASSIFIER_MAX_TOKENS)
    except (TypeError, ValueError):
        max_tokens = 300
    try:
        temperature = float(S.CLASSIFIER_TEMPERATURE)
    except (TypeError, ValueError):
        temperature = 0.2
    return max(16, max_tokens), min(2.0, max(0.0, temperature))


async def _fallback_profile(profile: ProviderProfile, api_key: str) -> ProviderProfile:
    logger.warning(
        "%s model %s returned 404; attempting fallback model", profile.name, profile.model
    )
    clear_selected_openrouter_model()
    fallback = await choose_default_openrouter_model(api_key, exclude=[profile.model])
    if not fallback:
        raise NoFallbackModelError("No fallback OpenRouter model available.")
    set_selected_openrouter_model(fallback)
    logger.info("Retrying with fallback %s model %s", profile.name, fallback)
    return profile.with_model(fallback)


async def classify_url(
    url: str,
    title: str,
    existing_folders: Sequence[str] = (),
    *,
    config: ClassifierConfig | None = None,
) -> ClassificationResult:
    """Ask the configured provider where a bookmark belongs.

    A missing model on OpenRouter triggers a single retry with a freshly
    discovered default model; every other provider error is raised as is.
    """

    snapshot = config or load_classifier_config()
    api_key = (snapshot.api_key or "").strip()
    if not api_key:
        raise PreconditionError("API key not configured. Please save your API key first.")

    profile = resolve_provider(api_key, snapshot.provider_preference, snapshot.selected_model)
    logger.debug("Using API key %s... with provider %s", api_key[:4], profile.name)

    request_key = api_key
    if requires_token_exchange(profile):
        request_key = await exchange_copilot_token(api_key)

    prompt = build_classification_prompt(url, title, existing_folders)
    max_tokens, temperature = _sampling()

    logger.info("Using %s for classification (model=%s)", profile.name, profile.model)
    try:
        content = await complete(
            profile, request_key, prompt, max_tokens=max_tokens, temperature=temperature
        )
    except ModelNotFoundError:
        if not profile.supports_model_override:
            raise
        profile = await _fallback_profile(profile, api_key)
        try:
            content = await complete(
                profile, request_key, prompt, max_tokens=max_tokens, temperature=temperature
            )
        except ModelNotFoundError as exc:
            raise NoFallbackModelError(
                f"No fallback OpenRouter model available: {profile.model} was not found either."
            ) from exc

    result = parse_classification(content)
    logger.debug("Classification for %s: %s", url, result.as_dict())
    return result
