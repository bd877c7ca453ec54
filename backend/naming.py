"""Canonical comparison keys for folder labels."""

from __future__ import annotations

import re
import unicodedata


_WHITESPACE_RE = re.compile(r"\s+")
_PATH_SEPARATORS = "/\\"


def _strip_leading_symbols(value: str) -> str:
    for index, char in enumerate(value):
        if char.isalnum():
            return value[index:]
    return ""


def normalize_folder_name(label: str) -> str:
    """Return the key two labels must share to denote the same folder.

    Case, surrounding whitespace and separators, repeated inner whitespace and
    a decorative prefix (emoji, arrows, bullets) are ignored, so
    ``"💻 Technology"`` and ``"🧑‍💻 technology "`` map to ``"technology"``.
    """

    if not isinstance(label, str):
        return ""
    value = unicodedata.normalize("NFKD", label)
    value = value.lower().strip()
    value = value.strip(_PATH_SEPARATORS).strip()
    value = _WHITESPACE_RE.sub(" ", value)
    return _strip_leading_symbols(value)


def same_folder_name(left: str, right: str) -> bool:
    return normalize_folder_name(left) == normalize_folder_name(right)
