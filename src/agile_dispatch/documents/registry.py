"""Authoritative registry of generated-artifact metadata."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterator
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any

from agile_dispatch.documents.store import RegistryStore
from agile_dispatch.errors import NotFoundError, ValidationError
from agile_dispatch.types import DocumentRecord, TokenCounts

logger = logging.getLogger(__name__)

Key = tuple[str, str]


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _copy(record: DocumentRecord) -> DocumentRecord:
    return replace(
        record,
        token_counts=replace(record.token_counts),
        dependencies=list(record.dependencies),
    )


class CategoryView:
    """Lazy, restartable view over the active records of one category.

    Each iteration scans the registry afresh, so a view reflects writes made
    after it was created.
    """

    def __init__(self, registry: DocumentRegistry, category: str) -> None:
        self._registry = registry
        self._category = category

    def __iter__(self) -> Iterator[DocumentRecord]:
        for record in self._registry.records():
            if record.category == self._category:
                yield record

    def __repr__(self) -> str:
        return f"CategoryView({self._category!r})"


class DocumentRegistry:
    """Owns `DocumentRecord` lifecycle, keyed by `(category, name)`.

    Concurrency model:
    - One lock per key serialises every read-modify-write of a record,
      so concurrent writers to the same key never interleave. Conflicting
      upserts resolve last-writer-wins.
    - A short registry-wide lock guards the record map, the version counter
      and store snapshots.

    Records are never deleted. `remove` archives them: archived records drop
    out of listings and search but stay reachable through `get`.
    """

    def __init__(
        self,
        store: RegistryStore | None = None,
        *,
        clock: Callable[[], str] = _utc_now,
    ) -> None:
        self._store = store
        self._clock = clock
        self._records: dict[Key, DocumentRecord] = {}
        self._key_locks: dict[Key, threading.Lock] = {}
        self._locks_guard = threading.Lock()
        self._lock = threading.RLock()
        self._version = 0

        if store is not None:
            version, records = store.load()
            self._version = version
            for record in records:
                self._records[record.key] = record
            logger.info("Loaded %d document records (registry v%d)", len(records), version)

    @property
    def version(self) -> int:
        """Monotonic counter bumped on every mutation."""
        return self._version

    def upsert(self, record: DocumentRecord) -> DocumentRecord:
        """Insert or refresh a record; creation metadata is preserved."""

        _validate(record)
        key = record.key
        with self._key_lock(key):
            now = self._clock()
            with self._lock:
                existing = self._records.get(key)

            if existing is None:
                stored = _copy(record)
                stored.created = record.created or now
                stored.updated = now
                stored.archived = False
                action = "created"
            else:
                stored = replace(
                    existing,
                    path=record.path,
                    summary=record.summary,
                    token_counts=replace(record.token_counts),
                    dependencies=list(record.dependencies),
                    json_path=record.json_path,
                    archived=False,
                    updated=now,
                )
                action = "updated"

            with self._lock:
                self._apply(key, stored)

        logger.info(
            "Document %s: %s/%s",
            action,
            key[0],
            key[1],
            extra={"category": key[0], "document": key[1]},
        )
        return _copy(stored)

    def get(self, category: str, name: str) -> DocumentRecord:
        with self._lock:
            record = self._records.get((category, name))
        if record is None:
            raise NotFoundError(category, name)
        return _copy(record)

    def list_by_category(self, category: str) -> CategoryView:
        return CategoryView(self, category)

    def remove(self, category: str, name: str) -> DocumentRecord:
        """Archive a record; it stays retrievable through `get`."""

        key = (category, name)
        with self._key_lock(key):
            with self._lock:
                existing = self._records.get(key)
                if existing is None:
                    raise NotFoundError(category, name)
                if existing.archived:
                    return _copy(existing)
                archived = replace(existing, archived=True, updated=self._clock())
                self._apply(key, archived)

        logger.info("Document archived: %s/%s", category, name)
        return _copy(archived)

    def find_by_path(self, path: str) -> DocumentRecord | None:
        """Record whose markdown or JSON path is `path`, archived ones included."""
        target = _normalize_path(path)
        with self._lock:
            snapshot = list(self._records.values())
        for record in snapshot:
            if _normalize_path(record.path) == target:
                return _copy(record)
            if record.json_path and _normalize_path(record.json_path) == target:
                return _copy(record)
        return None

    def attach_json(self, md_path: str, json_path: str, *, json_tokens: int) -> DocumentRecord:
        """Link the JSON twin of an existing markdown document."""

        if not json_path or not json_path.strip() or json_tokens < 0:
            raise ValidationError(f"Invalid JSON twin for {md_path}: {json_path!r}")
        found = self.find_by_path(md_path)
        if found is None:
            raise NotFoundError(path=md_path)

        updated = self._modify(
            found.key,
            lambda existing: replace(
                existing,
                json_path=json_path,
                token_counts=TokenCounts(markdown=existing.token_counts.markdown, json=json_tokens),
                updated=self._clock(),
            ),
        )
        logger.info(
            "JSON twin attached to %s/%s: %d -> %d tokens",
            updated.category,
            updated.name,
            updated.token_counts.markdown,
            json_tokens,
            extra={"category": updated.category, "document": updated.name},
        )
        return updated

    def set_dependencies(self, category: str, name: str, dependencies: list[str]) -> DocumentRecord:
        """Replace the dependency list of a record."""

        deps = [dep.strip() for dep in dependencies if dep and dep.strip()]
        return self._modify(
            (category, name),
            lambda existing: replace(existing, dependencies=deps, updated=self._clock()),
        )

    def records(self, *, include_archived: bool = False) -> list[DocumentRecord]:
        """Snapshot of records in insertion order."""
        with self._lock:
            snapshot = list(self._records.values())
        return [_copy(record) for record in snapshot if include_archived or not record.archived]

    def categories(self) -> list[str]:
        seen: dict[str, None] = {}
        for record in self.records():
            seen.setdefault(record.category, None)
        return list(seen)

    def stats(self) -> dict[str, Any]:
        """Aggregate counts and token totals over active records."""

        records = self.records()
        categories: dict[str, dict[str, Any]] = {}
        total_md = 0
        total_json = 0
        with_json = 0

        for record in records:
            bucket = categories.setdefault(
                record.category, {"count": 0, "tokens": {"md": 0, "json": 0}}
            )
            json_tokens = record.token_counts.json or 0
            bucket["count"] += 1
            bucket["tokens"]["md"] += record.token_counts.markdown
            bucket["tokens"]["json"] += json_tokens
            total_md += record.token_counts.markdown
            total_json += json_tokens
            if record.json_path:
                with_json += 1

        total = len(records)
        return {
            "version": self._version,
            "total_documents": total,
            "archived_documents": len(self.records(include_archived=True)) - total,
            "categories": categories,
            "total_tokens": {"md": total_md, "json": total_json},
            "json_coverage": round(with_json / total * 100) if total else 0,
            "token_savings": round((1 - total_json / total_md) * 100)
            if total_md and total_json
            else 0,
        }

    def __len__(self) -> int:
        return len(self.records())

    def _key_lock(self, key: Key) -> threading.Lock:
        with self._locks_guard:
            lock = self._key_locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._key_locks[key] = lock
            return lock

    def _modify(
        self, key: Key, change: Callable[[DocumentRecord], DocumentRecord]
    ) -> DocumentRecord:
        with self._key_lock(key):
            with self._lock:
                existing = self._records.get(key)
                if existing is None:
                    raise NotFoundError(*key)
                modified = change(existing)
                self._apply(key, modified)
        return _copy(modified)

    def _apply(self, key: Key, record: DocumentRecord) -> None:
        # Caller holds self._lock. Persist first so a failed save changes nothing.
        records = dict(self._records)
        records[key] = record
        version = self._version + 1
        if self._store is not None:
            self._store.save(version, list(records.values()))
        self._records = records
        self._version = version


def _normalize_path(path: str) -> str:
    normalized = path.strip().replace("\\", "/")
    while normalized.startswith("./"):
        normalized = normalized[2:]
    return normalized


def _validate(record: DocumentRecord) -> None:
    if not record.category or not record.category.strip():
        raise ValidationError("Document category must not be empty")
    if not record.name or not record.name.strip():
        raise ValidationError("Document name must not be empty")
    if not record.path or not record.path.strip():
        raise ValidationError(f"Document path must not be empty: {record.category}/{record.name}")
    if not isinstance(record.token_counts, TokenCounts) or record.token_counts.markdown < 0:
        raise ValidationError(f"Invalid token counts for {record.category}/{record.name}")
