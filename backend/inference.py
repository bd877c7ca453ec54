"""Minimal client for OpenAI compatible chat completion endpoints."""

from __future__ import annotations

import logging
from typing import Any, Dict

import httpx

from errors import (
    AuthError,
    ModelNotFoundError,
    ProviderAPIError,
    ProviderPermissionError,
    RateLimitError,
    TransportError,
)
from providers import ProviderProfile
from settings import S


logger = logging.getLogger(__name__)


def _error_detail(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict):
            message = error.get("message")
            if message:
                return str(message)
        elif error:
            return str(error)
        message = payload.get("message")
        if message:
            return str(message)
    text = (response.text or "").strip()
    return text[:300] if text else f"HTTP {response.status_code}"


def error_for_status(status_code: int, detail: str) -> ProviderAPIError:
    if status_code == 401:
        return AuthError(status_code, "Invalid API key. Please check your credentials.")
    if status_code == 403:
        return ProviderPermissionError(status_code, "API access forbidden. Check your API key permissions.")
    if status_code == 404:
        return ModelNotFoundError(status_code, f"API Error (404): {detail}")
    if status_code == 429:
        return RateLimitError(status_code, "Rate limit exceeded. Please try again later.")
    return ProviderAPIError(status_code, f"API Error ({status_code}): {detail}")


def _extract_content(payload: Any) -> str:
    if not isinstance(payload, dict):
        return ""
    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices:
        return ""
    first = choices[0]
    if not isinstance(first, dict):
        return ""
    message = first.get("message")
    if isinstance(message, dict):
        content = message.get("content")
        if isinstance(content, str):
            return content
    text = first.get("text")
    return text if isinstance(text, str) else ""


async def complete(
    profile: ProviderProfile,
    api_key: str,
    prompt: str,
    *,
    max_tokens: int,
    temperature: float,
) -> str:
    """Send one user prompt and return the text of the first choice.

    HTTP errors are raised as :class:`ProviderAPIError` subclasses keyed by
    status code; timeouts and connection problems as :class:`TransportError`.
    """

    headers: Dict[str, str] = {
        "Authorization": f"Bearer {api_key}",
        "Content-Type": "application/json",
        **profile.headers,
    }
    payload = {
        "model": profile.model,
        "messages": [{"role": "user", "content": prompt}],
        "max_tokens": max_tokens,
        "temperature": temperature,
    }
    url = f"{profile.base_url.rstrip('/')}/chat/completions"
    try:
        async with httpx.AsyncClient(timeout=S.REQUEST_TIMEOUT_SECONDS) as client:
            response = await client.post(url, json=payload, headers=headers)
            response.raise_for_status()
    except httpx.HTTPStatusError as exc:
        status = exc.response.status_code
        detail = _error_detail(exc.response)
        logger.debug("%s returned HTTP %s: %s", profile.name, status, detail)
        raise error_for_status(status, detail) from exc
    except httpx.TimeoutException as exc:
        raise TransportError(f"{profile.name} request timed out") from exc
    except httpx.HTTPError as exc:
        raise TransportError(f"{profile.name} request failed: {exc}") from exc

    try:
        data = response.json()
    except ValueError:
        logger.warning("%s returned a non JSON completion body", profile.name)
        return ""
    return _extract_content(data)
