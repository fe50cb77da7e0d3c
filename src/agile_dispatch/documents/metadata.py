"""Helpers deriving registry metadata from artifact paths and content."""

from __future__ import annotations

import math
from pathlib import Path, PurePosixPath

from agile_dispatch.errors import ValidationError


def estimate_tokens(text: str, chars_per_token: int = 4) -> int:
    """Rough token estimate: one token per `chars_per_token` characters."""
    if not text:
        return 0
    return math.ceil(len(text) / chars_per_token)


def generate_summary(name: str, max_words: int = 25) -> str:
    """Readable fallback summary from a document name, e.g. `auth_flow` -> `Auth Flow`."""
    words = name.replace("_", " ").replace("-", " ").split()
    return " ".join(word.capitalize() for word in words[:max_words])


def infer_location(
    path: str,
    *,
    documents_root: str = "project-documents",
    default_category: str = "general",
) -> tuple[str, str]:
    """Map an artifact path to its registry `(category, name)` key.

    The documents root prefix is dropped, the first remaining directory is the
    category and the file stem is the name. Intermediate directories are folded
    into the name (`planning/sprints/sprint-1.md` -> `sprints-sprint-1`).
    Paths with no directory land in `default_category`.
    """

    parts = [part for part in PurePosixPath(path.replace("\\", "/")).parts if part not in ("", "/", ".")]
    root_parts = [part for part in PurePosixPath(documents_root).parts if part not in ("/", ".")]
    if root_parts and parts[: len(root_parts)] == root_parts:
        parts = parts[len(root_parts) :]

    if not parts:
        raise ValidationError(f"Cannot infer document location from path: {path!r}")

    stem = PurePosixPath(parts[-1]).stem
    if len(parts) == 1:
        return default_category, stem

    category = parts[0]
    sub_dirs = parts[1:-1]
    name = "-".join([*sub_dirs, stem]) if sub_dirs else stem
    return category, name


def summarize_text(text: str, max_words: int = 25) -> str:
    """First heading or non-empty line of a markdown body, capped at `max_words`."""
    for line in text.splitlines():
        cleaned = line.strip().lstrip("#").strip()
        if cleaned:
            return " ".join(cleaned.split()[:max_words])
    return ""


def count_file_tokens(path: str | Path, chars_per_token: int = 4) -> int:
    """Token estimate of a UTF-8 file; a missing file counts as zero."""
    target = Path(path)
    if not target.is_file():
        return 0
    return estimate_tokens(target.read_text(encoding="utf-8"), chars_per_token)
