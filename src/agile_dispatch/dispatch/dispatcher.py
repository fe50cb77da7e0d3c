"""Command-to-artifact orchestration."""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import ValidationError as PydanticValidationError

from agile_dispatch.commands.binder import ArgumentBinder, parse_invocation
from agile_dispatch.commands.registry import (
    CommandDefinition,
    CommandRegistry,
    normalize_command_name,
)
from agile_dispatch.config import DispatchConfig, RegistryConfig
from agile_dispatch.dispatch.collaborator import Collaborator
from agile_dispatch.documents.metadata import (
    count_file_tokens,
    estimate_tokens,
    generate_summary,
    infer_location,
)
from agile_dispatch.documents.registry import DocumentRegistry
from agile_dispatch.documents.search import SearchIndex
from agile_dispatch.documents.workflow_state import WorkflowStateStore
from agile_dispatch.errors import AgileDispatchError, DispatchFailure
from agile_dispatch.obs.tracing import Timer, TraceStore
from agile_dispatch.types import (
    ArtifactDescription,
    DispatchResult,
    DispatchStatus,
    DocumentRecord,
    TokenCounts,
)

logger = logging.getLogger(__name__)


class Dispatcher:
    """Resolves a command, binds its arguments, calls the collaborator and
    records the resulting artifact.

    The dispatcher holds no state between invocations; its only lasting effect
    is on the injected document registry (and, when given, the workflow state
    file). Every failure path returns a `Failed` result and leaves the registry
    untouched. There is no automatic retry: the operator re-invokes.
    """

    def __init__(
        self,
        *,
        commands: CommandRegistry,
        documents: DocumentRegistry,
        collaborator: Collaborator,
        search_index: SearchIndex | None = None,
        binder: ArgumentBinder | None = None,
        trace_store: TraceStore | None = None,
        workflow_state: WorkflowStateStore | None = None,
        project_root: str | Path | None = None,
        registry_config: RegistryConfig | None = None,
        config: DispatchConfig | None = None,
    ) -> None:
        self.commands = commands
        self.documents = documents
        self.collaborator = collaborator
        self.search_index = search_index
        self.binder = binder or ArgumentBinder()
        self.trace_store = trace_store or TraceStore()
        self.workflow_state = workflow_state
        self.project_root = Path(project_root) if project_root is not None else None
        self.registry_config = registry_config or RegistryConfig()
        self.config = config or DispatchConfig()

    def dispatch_line(self, line: str) -> DispatchResult:
        """Dispatch chat-style input such as `/debug null pointer in parser`."""
        name, args = parse_invocation(line)
        return self.dispatch(name, args)

    def dispatch(self, command_name: str, args: str = "") -> DispatchResult:
        name = normalize_command_name(command_name)
        prompt: str | None = None
        failure: AgileDispatchError | None = None

        with Timer() as timer:
            try:
                definition = self.commands.resolve(name)
                prompt = self.binder.bind_command(definition, args)
                prompt_tokens = estimate_tokens(prompt, self.registry_config.chars_per_token)
                if prompt_tokens > self.config.max_prompt_tokens:
                    logger.warning(
                        "Prompt for /%s is ~%d tokens (limit %d)",
                        name,
                        prompt_tokens,
                        self.config.max_prompt_tokens,
                        extra={"command": name},
                    )
                artifact = self._invoke_collaborator(definition, prompt)
                record = self._record_artifact(artifact)
            except AgileDispatchError as exc:
                failure = exc

        if failure is not None:
            return self._failed(name, args, prompt, failure, timer)

        if timer.elapsed_ms > self.config.target_latency_seconds * 1000.0:
            logger.warning(
                "/%s took %.0f ms (target %.0f s)",
                name,
                timer.elapsed_ms,
                self.config.target_latency_seconds,
                extra={"command": name},
            )
        if self.search_index is not None:
            self.search_index.rebuild()
        if self.workflow_state is not None:
            try:
                self.workflow_state.touch(f"/{name} -> {record.path}")
            except (PydanticValidationError, UnicodeDecodeError, OSError) as exc:
                # The record is already committed at this point.
                logger.warning(
                    "Workflow state not updated: %s",
                    exc,
                    extra={"command": name},
                )

        trace = self.trace_store.create_record(
            command=name,
            arguments=args,
            status=DispatchStatus.COMPLETED,
            prompt_tokens=estimate_tokens(prompt or "", self.registry_config.chars_per_token),
            output_tokens=record.token_counts.markdown,
            latency_ms=timer.elapsed_ms,
            document=f"{record.category}/{record.name}",
        )
        logger.info(
            "Dispatched /%s -> %s/%s",
            name,
            record.category,
            record.name,
            extra={"trace_id": trace.trace_id, "command": name},
        )
        return DispatchResult(
            status=DispatchStatus.COMPLETED,
            command=name,
            prompt=prompt,
            record=record,
            trace_id=trace.trace_id,
        )

    def _invoke_collaborator(
        self, definition: CommandDefinition, prompt: str
    ) -> ArtifactDescription:
        try:
            return self.collaborator.invoke(
                prompt,
                command=definition,
                allowed_tools=definition.allowed_tools,
            )
        except AgileDispatchError:
            raise
        except Exception as exc:
            raise DispatchFailure(f"Collaborator failed for /{definition.name}: {exc}") from exc

    def _record_artifact(self, artifact: ArtifactDescription) -> DocumentRecord:
        try:
            return self.documents.upsert(self._build_record(artifact))
        except AgileDispatchError:
            raise
        except (OSError, ValueError) as exc:
            raise DispatchFailure(f"Could not record artifact {artifact.path}: {exc}") from exc

    def _build_record(self, artifact: ArtifactDescription) -> DocumentRecord:
        category, name = infer_location(
            artifact.path,
            documents_root=self.registry_config.documents_root,
            default_category=self.registry_config.default_category,
        )
        if artifact.category and category == self.registry_config.default_category:
            category = artifact.category

        return DocumentRecord(
            category=category,
            name=name,
            path=artifact.path,
            summary=artifact.summary
            or generate_summary(name, self.registry_config.max_summary_words),
            token_counts=TokenCounts(
                markdown=self._count_tokens(artifact.text, artifact.path),
                json=self._count_tokens(None, artifact.json_path) if artifact.json_path else None,
            ),
            agent=(artifact.agent or self.config.default_agent).replace(" Agent", ""),
            dependencies=list(artifact.dependencies),
            json_path=artifact.json_path,
        )

    def _count_tokens(self, text: str | None, path: str) -> int:
        chars_per_token = self.registry_config.chars_per_token
        if text is not None:
            return estimate_tokens(text, chars_per_token)
        if self.project_root is None:
            return 0
        return count_file_tokens(self.project_root / path, chars_per_token)

    def _failed(
        self,
        name: str,
        args: str,
        prompt: str | None,
        exc: AgileDispatchError,
        timer: Timer,
    ) -> DispatchResult:
        trace = self.trace_store.create_record(
            command=name,
            arguments=args,
            status=DispatchStatus.FAILED,
            prompt_tokens=estimate_tokens(prompt or "", self.registry_config.chars_per_token),
            output_tokens=0,
            latency_ms=timer.elapsed_ms,
            reason=str(exc),
        )
        level = logging.ERROR if isinstance(exc, DispatchFailure) else logging.WARNING
        logger.log(
            level,
            "Dispatch of /%s rejected: %s",
            name,
            exc,
            extra={"trace_id": trace.trace_id, "command": name},
        )
        return DispatchResult(
            status=DispatchStatus.FAILED,
            command=name,
            prompt=prompt,
            reason=str(exc),
            error=exc,
            trace_id=trace.trace_id,
        )
