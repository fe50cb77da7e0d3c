"""Persistence backends for the document registry."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol

from agile_dispatch.types import DocumentRecord, TokenCounts

logger = logging.getLogger(__name__)

# Categories the registry file always carries, even when empty.
DEFAULT_CATEGORIES = (
    "orchestration",
    "business-strategy",
    "implementation",
    "operations",
    "stakeholder-input",
    "analysis-reports",
    "planning",
    "research",
    "technical",
)


class RegistryStore(Protocol):
    """Minimal persistence contract for document records."""

    def load(self) -> tuple[int, list[DocumentRecord]]:
        """Return the stored version and records in insertion order."""

    def save(self, version: int, records: list[DocumentRecord]) -> None:
        """Persist a full snapshot of the registry."""


class InMemoryRegistryStore:
    """Snapshot store used for tests and throwaway sessions."""

    def __init__(self) -> None:
        self.version = 0
        self.records: list[DocumentRecord] = []

    def load(self) -> tuple[int, list[DocumentRecord]]:
        return self.version, list(self.records)

    def save(self, version: int, records: list[DocumentRecord]) -> None:
        self.version = version
        self.records = list(records)


class JsonRegistryStore:
    """Stores the registry as `{documents: {category: {name: entry}}}` JSON.

    The entry layout (`md`, `json`, `tokens`, `deps`, `modified`) is the one the
    command corpus reads, so prompt files can keep pointing at the same file.
    Writes go to a temporary file first and are swapped in with `os.replace`.

    Records are grouped by category on disk, so a reload yields them category
    by category; insertion order is kept within a category only. Entries with
    no markdown path or an empty key are skipped on load.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def load(self) -> tuple[int, list[DocumentRecord]]:
        if not self.path.exists():
            return 0, []
        payload: dict[str, Any] = json.loads(self.path.read_text(encoding="utf-8"))
        records: list[DocumentRecord] = []
        for category, entries in (payload.get("documents") or {}).items():
            for name, entry in (entries or {}).items():
                if not _is_valid_entry(category, name, entry):
                    logger.warning("Skipping invalid registry entry: %r/%r", category, name)
                    continue
                records.append(_entry_to_record(category, name, entry))
        return int(payload.get("version", 0)), records

    def save(self, version: int, records: list[DocumentRecord]) -> None:
        documents: dict[str, dict[str, Any]] = {category: {} for category in DEFAULT_CATEGORIES}
        for record in records:
            documents.setdefault(record.category, {})[record.name] = _record_to_entry(record)

        payload = {
            "version": version,
            "last_updated": datetime.now(timezone.utc).isoformat(),
            "document_count": sum(1 for record in records if not record.archived),
            "documents": documents,
        }

        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(payload, handle, ensure_ascii=False, indent=2)
            os.replace(tmp_name, self.path)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        logger.debug("Registry v%d saved to %s", version, self.path)


def _record_to_entry(record: DocumentRecord) -> dict[str, Any]:
    return {
        "md": record.path,
        "json": record.json_path,
        "tokens": {
            "md": record.token_counts.markdown,
            "json": record.token_counts.json,
        },
        "summary": record.summary,
        "deps": list(record.dependencies),
        "agent": record.agent,
        "created": record.created,
        "modified": record.updated,
        "archived": record.archived,
    }


def _entry_to_record(category: str, name: str, entry: dict[str, Any]) -> DocumentRecord:
    tokens = entry.get("tokens") or {}
    json_tokens = tokens.get("json")
    return DocumentRecord(
        category=category,
        name=name,
        path=str(entry.get("md") or ""),
        summary=str(entry.get("summary") or ""),
        token_counts=TokenCounts(
            markdown=int(tokens.get("md") or 0),
            json=int(json_tokens) if json_tokens is not None else None,
        ),
        agent=str(entry.get("agent") or "Unknown"),
        dependencies=[str(dep) for dep in entry.get("deps") or []],
        json_path=entry.get("json"),
        archived=bool(entry.get("archived", False)),
        created=entry.get("created"),
        updated=entry.get("modified"),
    )


def _is_valid_entry(category: str, name: str, entry: Any) -> bool:
    if not category.strip() or not name.strip() or not isinstance(entry, dict):
        return False
    return bool(str(entry.get("md") or "").strip())
