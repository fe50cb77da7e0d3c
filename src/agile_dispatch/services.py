"""Wires registries, search index and dispatcher into one service bundle."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from agile_dispatch.commands.binder import ArgumentBinder
from agile_dispatch.commands.loader import CommandLoader
from agile_dispatch.commands.registry import CommandRegistry
from agile_dispatch.config import BinderConfig, DispatchConfig, RegistryConfig
from agile_dispatch.dispatch.collaborator import (
    ArtifactWriter,
    Collaborator,
    DeterministicCollaborator,
    LangChainCollaborator,
)
from agile_dispatch.dispatch.dispatcher import Dispatcher
from agile_dispatch.documents.metadata import count_file_tokens
from agile_dispatch.documents.registry import DocumentRegistry
from agile_dispatch.documents.search import SearchIndex
from agile_dispatch.documents.store import JsonRegistryStore
from agile_dispatch.documents.workflow_state import WorkflowStateStore
from agile_dispatch.errors import ValidationError
from agile_dispatch.obs.tracing import TraceStore
from agile_dispatch.types import DocumentRecord

logger = logging.getLogger(__name__)


def create_llm() -> Any:
    api_key = os.getenv("OPENAI_API_KEY")
    if not api_key:
        return None

    from langchain_openai import ChatOpenAI

    return ChatOpenAI(model=os.getenv("OPENAI_MODEL", "gpt-4o-mini"), temperature=0)


@dataclass(slots=True)
class Services:
    commands: CommandRegistry
    documents: DocumentRegistry
    search_index: SearchIndex
    trace_store: TraceStore
    workflow_state: WorkflowStateStore
    dispatcher: Dispatcher
    llm_configured: bool
    project_root: Path = Path(".")
    registry_config: RegistryConfig = field(default_factory=RegistryConfig)

    def attach_json(self, md_path: str, json_path: str) -> DocumentRecord:
        """Link a JSON twin, counting its tokens from the file under the project root."""
        try:
            tokens = count_file_tokens(
                self.project_root / json_path, self.registry_config.chars_per_token
            )
        except (OSError, UnicodeDecodeError) as exc:
            raise ValidationError(f"Cannot read JSON twin {json_path}: {exc}") from exc
        return self.documents.attach_json(md_path, json_path, json_tokens=tokens)


def build_services(
    *,
    project_root: str | Path = ".",
    commands_dir: str | Path | None = None,
    llm: Any | None = None,
    collaborator: Collaborator | None = None,
    binder_config: BinderConfig | None = None,
    registry_config: RegistryConfig | None = None,
    dispatch_config: DispatchConfig | None = None,
) -> Services:
    """Build the full service graph rooted at `project_root`.

    Commands are loaded once and the command registry is frozen. The document
    registry is backed by the JSON registry file under the project root.
    """

    root = Path(project_root)
    binder_config = binder_config or BinderConfig()
    registry_config = registry_config or RegistryConfig()

    commands = CommandRegistry()
    if commands_dir is not None:
        CommandLoader(binder_config).load_into(commands, commands_dir)
    commands.freeze()

    documents = DocumentRegistry(JsonRegistryStore(root / registry_config.registry_path))
    search_index = SearchIndex(documents)
    trace_store = TraceStore()
    workflow_state = WorkflowStateStore(root / registry_config.workflow_state_path)

    if collaborator is None:
        writer = ArtifactWriter(root, registry_config)
        if llm is not None:
            collaborator = LangChainCollaborator(llm=llm, writer=writer, config=registry_config)
        else:
            logger.info("No LLM configured; using deterministic collaborator")
            collaborator = DeterministicCollaborator(writer=writer, config=registry_config)

    dispatcher = Dispatcher(
        commands=commands,
        documents=documents,
        collaborator=collaborator,
        search_index=search_index,
        binder=ArgumentBinder(binder_config),
        trace_store=trace_store,
        workflow_state=workflow_state,
        project_root=root,
        registry_config=registry_config,
        config=dispatch_config,
    )
    return Services(
        commands=commands,
        documents=documents,
        search_index=search_index,
        trace_store=trace_store,
        workflow_state=workflow_state,
        dispatcher=dispatcher,
        llm_configured=llm is not None,
        project_root=root,
        registry_config=registry_config,
    )


def build_services_from_env() -> Services:
    project_root = os.getenv("AGILE_PROJECT_ROOT", ".")
    commands_dir = os.getenv(
        "AGILE_COMMANDS_DIR", str(Path(project_root) / ".claude" / "commands")
    )
    return build_services(
        project_root=project_root,
        commands_dir=commands_dir,
        llm=create_llm(),
    )
