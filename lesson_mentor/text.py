from __future__ import annotations

import re

_BOLD = re.compile(r"\*\*(.*?)\*\*")
_ITALIC = re.compile(r"(\*|_)(.*?)\1")
_FENCE = re.compile(r"```(?:json)?")


def clean_model_text(text: str | None) -> str:
    """Strip bold/italic markdown emphasis from a model reply."""
    if not text:
        return ""
    result = _BOLD.sub(r"\1", text)
    result = _ITALIC.sub(r"\2", result)
    return result.strip()


def strip_code_fences(text: str | None) -> str:
    return _FENCE.sub("", text or "").strip()


def truncate(text: str, max_chars: int = 10_000) -> str:
    if len(text) <= max_chars:
        return text
    return text[:max_chars] + "..."
