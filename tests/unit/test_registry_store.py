import json

from agile_dispatch.documents.registry import DocumentRegistry
from agile_dispatch.documents.store import DEFAULT_CATEGORIES, JsonRegistryStore
from agile_dispatch.types import DocumentRecord, TokenCounts


def test_json_store_writes_registry_layout(tmp_path) -> None:
    path = tmp_path / "machine-data" / "project-document-registry.json"
    registry = DocumentRegistry(JsonRegistryStore(path))

    registry.upsert(
        DocumentRecord(
            category="research",
            name="market-analysis",
            path="project-documents/research/market-analysis.md",
            summary="Market sizing",
            token_counts=TokenCounts(markdown=1200, json=150),
            agent="research_agent",
            dependencies=["planning/roadmap"],
            json_path="machine-data/research/market-analysis.json",
        )
    )

    payload = json.loads(path.read_text(encoding="utf-8"))
    assert payload["version"] == 1
    assert payload["document_count"] == 1
    assert set(DEFAULT_CATEGORIES) <= set(payload["documents"])

    entry = payload["documents"]["research"]["market-analysis"]
    assert entry["md"] == "project-documents/research/market-analysis.md"
    assert entry["json"] == "machine-data/research/market-analysis.json"
    assert entry["tokens"] == {"md": 1200, "json": 150}
    assert entry["deps"] == ["planning/roadmap"]
    assert entry["archived"] is False
    assert entry["created"] == entry["modified"]
    assert not list(path.parent.glob("*.tmp"))


def test_json_store_reload_restores_records_and_archive_flags(tmp_path) -> None:
    path = tmp_path / "registry.json"
    registry = DocumentRegistry(JsonRegistryStore(path))
    registry.upsert(DocumentRecord(category="technical", name="api-design", path="technical/api-design.md"))
    registry.upsert(DocumentRecord(category="technical", name="old-notes", path="technical/old-notes.md"))
    registry.remove("technical", "old-notes")

    reloaded = DocumentRegistry(JsonRegistryStore(path))

    assert reloaded.version == 3
    assert [r.name for r in reloaded.list_by_category("technical")] == ["api-design"]
    assert reloaded.get("technical", "old-notes").archived is True
    assert reloaded.get("technical", "api-design").token_counts == TokenCounts(markdown=0, json=None)
    assert json.loads(path.read_text(encoding="utf-8"))["document_count"] == 1


def test_json_store_missing_file_loads_empty(tmp_path) -> None:
    assert JsonRegistryStore(tmp_path / "absent.json").load() == (0, [])


def test_json_store_skips_entries_without_path(tmp_path) -> None:
    path = tmp_path / "registry.json"
    path.write_text(
        json.dumps(
            {
                "version": 4,
                "documents": {
                    "planning": {
                        "roadmap": {"md": "project-documents/planning/roadmap.md"},
                        "orphan": {"summary": "no markdown file"},
                        "broken": "not an entry",
                    },
                    "research": {},
                },
            }
        ),
        encoding="utf-8",
    )

    version, records = JsonRegistryStore(path).load()

    assert version == 4
    assert [record.key for record in records] == [("planning", "roadmap")]
