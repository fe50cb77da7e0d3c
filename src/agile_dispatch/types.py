"""Shared domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


@dataclass(slots=True)
class TokenCounts:
    """Estimated token sizes of the markdown artifact and its JSON twin."""

    markdown: int = 0
    json: int | None = None


@dataclass(slots=True)
class DocumentRecord:
    """Metadata for one generated artifact, keyed by (category, name)."""

    category: str
    name: str
    path: str
    summary: str = ""
    token_counts: TokenCounts = field(default_factory=TokenCounts)
    agent: str = "Unknown"
    dependencies: list[str] = field(default_factory=list)
    json_path: str | None = None
    archived: bool = False
    created: str | None = None
    updated: str | None = None

    @property
    def key(self) -> tuple[str, str]:
        return (self.category, self.name)


class SearchField(str, Enum):
    CATEGORY = "category"
    NAME = "name"
    SUMMARY = "summary"
    AGENT = "agent"


@dataclass(slots=True)
class SearchHit:
    """A record matched by the search index and the fields that matched."""

    record: DocumentRecord
    matched_fields: frozenset[SearchField]


@dataclass(slots=True)
class ArtifactDescription:
    """Success payload returned by an LLM collaborator."""

    path: str
    summary: str = ""
    text: str | None = None
    agent: str | None = None
    category: str | None = None
    dependencies: list[str] = field(default_factory=list)
    json_path: str | None = None


class DispatchStatus(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(slots=True)
class DispatchResult:
    """Outcome of one command dispatch."""

    status: DispatchStatus
    command: str
    prompt: str | None = None
    record: DocumentRecord | None = None
    reason: str | None = None
    error: Exception | None = None
    trace_id: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is DispatchStatus.COMPLETED
