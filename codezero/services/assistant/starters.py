"""
Utilities for loading the starter snippets from starters.yaml.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

import yaml


def _starters_yaml() -> Path:
    # file -> assistant -> services -> codezero
    return Path(__file__).resolve().parents[2] / "starters.yaml"


@lru_cache(maxsize=1)
def _load() -> dict[str, dict]:
    path = _starters_yaml()
    if not path.exists():
        raise FileNotFoundError(f"starters.yaml not found at {path}")
    data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    return {
        str(entry.get("language", "")).strip().lower(): entry
        for entry in data.get("languages") or []
        if entry.get("language")
    }


DOWNLOAD_STEM = "codezero-code"


def starter_code(language: str) -> dict | None:
    """Return ``{"code", "filename"}`` for a language, or None if unknown."""
    entry = _load().get(str(language).strip().lower())
    if entry is None:
        return None
    return {
        "code": str(entry.get("code") or "").rstrip("\n"),
        "filename": f"{DOWNLOAD_STEM}{entry.get('extension') or '.txt'}",
    }


__all__ = ["starter_code"]
