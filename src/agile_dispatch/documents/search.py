"""Case-insensitive substring search over the document registry."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass

from agile_dispatch.documents.registry import DocumentRegistry, Key
from agile_dispatch.errors import InvalidSearchError, NotFoundError
from agile_dispatch.types import SearchField, SearchHit

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class _IndexEntry:
    key: Key
    fields: tuple[tuple[SearchField, str], ...]


class SearchIndex:
    """Derived, rebuildable view over active registry records.

    The index keeps only record keys and lower-cased field text. Hits resolve
    their records through the registry at query time, so the index never owns
    a record and can always be regenerated from a registry scan.
    """

    def __init__(self, registry: DocumentRegistry) -> None:
        self._registry = registry
        self._entries: tuple[_IndexEntry, ...] = ()
        self._built_version: int | None = None
        self._lock = threading.Lock()

    def rebuild(self) -> None:
        """Re-scan the registry. Idempotent for unchanged registry state."""

        version = self._registry.version
        entries = tuple(
            _IndexEntry(
                key=record.key,
                fields=(
                    (SearchField.CATEGORY, record.category.lower()),
                    (SearchField.NAME, record.name.lower()),
                    (SearchField.SUMMARY, record.summary.lower()),
                    (SearchField.AGENT, record.agent.lower()),
                ),
            )
            for record in self._registry.records()
        )
        with self._lock:
            self._entries = entries
            self._built_version = version
        logger.debug("Search index rebuilt: %d entries (registry v%d)", len(entries), version)

    def search(self, term: str) -> list[SearchHit]:
        """Return hits in registry scan order; a hit lists every matching field."""

        if not term:
            raise InvalidSearchError("Search term must not be empty")
        if self._built_version != self._registry.version:
            self.rebuild()

        needle = term.lower()
        with self._lock:
            entries = self._entries

        hits: list[SearchHit] = []
        for entry in entries:
            matched = frozenset(field for field, text in entry.fields if needle in text)
            if not matched:
                continue
            try:
                record = self._registry.get(*entry.key)
            except NotFoundError:
                continue
            if record.archived:
                continue
            hits.append(SearchHit(record=record, matched_fields=matched))
        return hits

    def __len__(self) -> int:
        if self._built_version != self._registry.version:
            self.rebuild()
        return len(self._entries)
