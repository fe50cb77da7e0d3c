"""FastAPI entrypoint for command dispatch and document registry endpoints."""

from __future__ import annotations

import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import asdict
from typing import Any

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from agile_dispatch.commands.registry import CommandDefinition
from agile_dispatch.documents.workflow_state import WorkflowState
from agile_dispatch.errors import (
    InvalidSearchError,
    MissingDefaultError,
    NotFoundError,
    UnknownCommandError,
    ValidationError,
)
from agile_dispatch.obs.logging import setup_logging
from agile_dispatch.services import Services, build_services_from_env
from agile_dispatch.types import DispatchResult, DocumentRecord, SearchHit


class DispatchRequest(BaseModel):
    command: str = Field(min_length=1)
    arguments: str = ""


class InvocationRequest(BaseModel):
    line: str = Field(min_length=2, pattern=r"^\s*/")


class JsonTwinRequest(BaseModel):
    md_path: str = Field(min_length=1)
    json_path: str = Field(min_length=1)


class DependenciesRequest(BaseModel):
    dependencies: list[str] = Field(default_factory=list)


def _command_payload(definition: CommandDefinition) -> dict[str, Any]:
    return {
        "name": definition.name,
        "description": definition.description,
        "category": definition.category,
        "argument_hint": definition.argument_hint,
        "requires_argument": definition.requires_argument,
        "default_argument": definition.default_argument,
        "allowed_tools": sorted(str(tool) for tool in definition.allowed_tools),
        "aliases": list(definition.aliases),
        "template_path": definition.template_path,
    }


def _hit_payload(hit: SearchHit) -> dict[str, Any]:
    return {
        "record": asdict(hit.record),
        "matched_fields": sorted(field.value for field in hit.matched_fields),
    }


def _dispatch_payload(result: DispatchResult) -> dict[str, Any]:
    return {
        "status": result.status.value,
        "command": result.command,
        "prompt": result.prompt,
        "record": asdict(result.record) if result.record else None,
        "reason": result.reason,
        "trace_id": result.trace_id,
    }


def _raise_for_failure(result: DispatchResult) -> None:
    if result.ok:
        return
    if isinstance(result.error, UnknownCommandError):
        status_code = 404
    elif isinstance(result.error, MissingDefaultError):
        status_code = 422
    else:
        status_code = 502
    raise HTTPException(status_code=status_code, detail=_dispatch_payload(result))


@asynccontextmanager
async def _configure_logging(_: FastAPI) -> AsyncIterator[None]:
    setup_logging(os.getenv("AGILE_LOG_LEVEL", "INFO"))
    yield


def create_app(services: Services, *, configure_logging: bool = False) -> FastAPI:
    """Build the API around `services`.

    Logging is configured at server startup only when `configure_logging` is
    set, so importing this module never touches the host's logging handlers.
    """
    app = FastAPI(
        title="AgileAiAgents Dispatch",
        version="0.1.0",
        lifespan=_configure_logging if configure_logging else None,
    )
    app.state.services = services

    @app.get("/health")
    def health() -> dict[str, Any]:
        return {
            "status": "ok",
            "llm_configured": services.llm_configured,
            "collaborator": "langchain" if services.llm_configured else "deterministic",
            "command_count": len(services.commands),
            "document_count": len(services.documents),
        }

    @app.get("/commands")
    def commands() -> dict[str, Any]:
        return {
            "categories": {
                category: [_command_payload(definition) for definition in definitions]
                for category, definitions in services.commands.by_category().items()
            }
        }

    @app.get("/commands/{name}")
    def command_detail(name: str) -> dict[str, Any]:
        try:
            return _command_payload(services.commands.resolve(name))
        except UnknownCommandError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc

    @app.post("/dispatch")
    def dispatch(request: DispatchRequest) -> dict[str, Any]:
        result = services.dispatcher.dispatch(request.command, request.arguments)
        _raise_for_failure(result)
        return _dispatch_payload(result)

    @app.post("/invoke")
    def invoke(request: InvocationRequest) -> dict[str, Any]:
        result = services.dispatcher.dispatch_line(request.line)
        _raise_for_failure(result)
        return _dispatch_payload(result)

    @app.get("/documents")
    def documents(include_archived: bool = False) -> dict[str, Any]:
        records = services.documents.records(include_archived=include_archived)
        return {"items": [asdict(record) for record in records]}

    @app.get("/documents/{category}")
    def documents_by_category(category: str) -> dict[str, Any]:
        return {"items": [asdict(record) for record in services.documents.list_by_category(category)]}

    @app.get("/documents/{category}/{name}")
    def document_detail(category: str, name: str) -> dict[str, Any]:
        try:
            record: DocumentRecord = services.documents.get(category, name)
        except NotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        return asdict(record)

    @app.delete("/documents/{category}/{name}")
    def archive_document(category: str, name: str) -> dict[str, Any]:
        try:
            record = services.documents.remove(category, name)
        except NotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        return asdict(record)

    @app.post("/documents/json")
    def attach_json_twin(request: JsonTwinRequest) -> dict[str, Any]:
        try:
            record = services.attach_json(request.md_path, request.json_path)
        except NotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        except ValidationError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        return asdict(record)

    @app.put("/documents/{category}/{name}/dependencies")
    def update_dependencies(
        category: str, name: str, request: DependenciesRequest
    ) -> dict[str, Any]:
        try:
            record = services.documents.set_dependencies(category, name, request.dependencies)
        except NotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        return asdict(record)

    @app.get("/search")
    def search(q: str = "") -> dict[str, Any]:
        try:
            hits = services.search_index.search(q)
        except InvalidSearchError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        return {"items": [_hit_payload(hit) for hit in hits]}

    @app.get("/stats")
    def stats() -> dict[str, Any]:
        return services.documents.stats()

    @app.get("/traces")
    def traces(limit: int = 20) -> dict[str, Any]:
        records = [asdict(record) for record in services.trace_store.list_recent(limit=limit)]
        return {"items": records}

    @app.get("/traces/{trace_id}")
    def trace_detail(trace_id: str) -> dict[str, Any]:
        try:
            record = services.trace_store.get(trace_id)
        except KeyError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        return asdict(record)

    @app.get("/metrics")
    def metrics() -> dict[str, Any]:
        return services.trace_store.summary()

    @app.get("/workflow-state")
    def workflow_state() -> dict[str, Any]:
        return services.workflow_state.load().model_dump()

    @app.put("/workflow-state")
    def update_workflow_state(state: WorkflowState) -> dict[str, Any]:
        return services.workflow_state.save(state).model_dump()

    return app


app = create_app(build_services_from_env(), configure_logging=True)
