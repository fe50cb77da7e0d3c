"""LLM-invocation collaborators that turn a bound prompt into an artifact."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from pathlib import Path
from typing import Any, Protocol

from langchain_core.prompts import ChatPromptTemplate

from agile_dispatch.commands.registry import CommandDefinition, ToolReference
from agile_dispatch.config import RegistryConfig
from agile_dispatch.documents.metadata import summarize_text
from agile_dispatch.errors import DispatchFailure
from agile_dispatch.types import ArtifactDescription

logger = logging.getLogger(__name__)

_SYSTEM_PROMPT = """
You are an AgileAiAgents role agent executing the `/{command}` command.

Rules:
1) Follow the command instructions exactly; they are the full task definition.
2) You may only rely on these tools: {allowed_tools}.
3) Produce one complete markdown document as your answer; no preamble.
4) Start the document with a level-one heading that summarises it.
5) If the instructions cannot be completed, say so explicitly in the document.
""".strip()


class Collaborator(Protocol):
    """Contract for the external capability that does the intelligent work."""

    def invoke(
        self,
        prompt: str,
        *,
        command: CommandDefinition,
        allowed_tools: frozenset[ToolReference],
    ) -> ArtifactDescription:
        """Return the generated artifact or raise `DispatchFailure`."""


class ArtifactWriter:
    """Writes artifacts under `<project_root>/<documents_root>/<category>/`."""

    def __init__(self, project_root: str | Path, config: RegistryConfig | None = None) -> None:
        self.project_root = Path(project_root)
        self.config = config or RegistryConfig()

    def write(self, command: CommandDefinition, text: str) -> str:
        """Write `text` to the next free `<command>-<n>.md` and return its relative path."""

        relative_dir = Path(self.config.documents_root) / command.category
        target_dir = self.project_root / relative_dir
        target_dir.mkdir(parents=True, exist_ok=True)

        index = _next_index(target_dir, command.name)
        filename = f"{command.name}-{index}.md"
        (target_dir / filename).write_text(text, encoding="utf-8")
        return (relative_dir / filename).as_posix()


class LangChainCollaborator:
    """Invokes a LangChain chat model with the bound command prompt."""

    def __init__(
        self,
        *,
        llm: Any,
        writer: ArtifactWriter,
        config: RegistryConfig | None = None,
    ) -> None:
        self.llm = llm
        self.writer = writer
        self.config = config or RegistryConfig()
        self.prompt = ChatPromptTemplate.from_messages(
            [
                ("system", _SYSTEM_PROMPT),
                ("human", "{prompt}"),
            ]
        )

    def invoke(
        self,
        prompt: str,
        *,
        command: CommandDefinition,
        allowed_tools: frozenset[ToolReference],
    ) -> ArtifactDescription:
        messages = self.prompt.format_messages(
            command=command.name,
            allowed_tools=format_tools(allowed_tools),
            prompt=prompt,
        )
        try:
            response = self.llm.invoke(messages)
        except Exception as exc:
            raise DispatchFailure(f"LLM call failed for /{command.name}: {exc}") from exc

        text = _message_text(response)
        if not text.strip():
            raise DispatchFailure(f"LLM returned an empty document for /{command.name}")

        try:
            path = self.writer.write(command, text)
        except OSError as exc:
            raise DispatchFailure(f"Could not write artifact for /{command.name}: {exc}") from exc

        return ArtifactDescription(
            path=path,
            summary=summarize_text(text, self.config.max_summary_words),
            text=text,
            agent=_primary_agent(allowed_tools),
            category=command.category,
        )


class DeterministicCollaborator:
    """Offline collaborator used when no LLM is configured.

    Keeps the same contract as `LangChainCollaborator`: the bound prompt is
    recorded verbatim as the artifact so the operator can paste it into any
    assistant and the registry still tracks the document.
    """

    def __init__(self, *, writer: ArtifactWriter, config: RegistryConfig | None = None) -> None:
        self.writer = writer
        self.config = config or RegistryConfig()

    def invoke(
        self,
        prompt: str,
        *,
        command: CommandDefinition,
        allowed_tools: frozenset[ToolReference],
    ) -> ArtifactDescription:
        heading = command.description or f"/{command.name}"
        text = f"# {heading}\n\n{prompt.strip()}\n"
        try:
            path = self.writer.write(command, text)
        except OSError as exc:
            raise DispatchFailure(f"Could not write artifact for /{command.name}: {exc}") from exc
        return ArtifactDescription(
            path=path,
            summary=summarize_text(text, self.config.max_summary_words),
            text=text,
            agent=_primary_agent(allowed_tools),
            category=command.category,
        )


def format_tools(tools: Iterable[ToolReference]) -> str:
    names = sorted(str(tool) for tool in tools)
    return ", ".join(names) if names else "none"


def _primary_agent(tools: Iterable[ToolReference]) -> str | None:
    subagents = sorted(tool.subagent_type for tool in tools if tool.subagent_type)
    return subagents[0] if subagents else None


def _next_index(directory: Path, stem: str) -> int:
    pattern = re.compile(rf"^{re.escape(stem)}-(\d+)\.md$")
    taken = [
        int(match.group(1))
        for match in (pattern.match(path.name) for path in directory.iterdir())
        if match
    ]
    return max(taken, default=0) + 1


def _message_text(response: Any) -> str:
    content = getattr(response, "content", response)
    if isinstance(content, list):
        parts: list[str] = []
        for item in content:
            if isinstance(item, dict) and "text" in item:
                parts.append(str(item["text"]))
            else:
                parts.append(str(item))
        return "\n".join(parts).strip()
    return str(content)
