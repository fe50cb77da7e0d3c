"""Command registry built on Pydantic v2 models."""

from __future__ import annotations

import logging

from pydantic import BaseModel, ConfigDict, Field

from agile_dispatch.errors import (
    DuplicateCommandError,
    RegistryFrozenError,
    UnknownCommandError,
)

logger = logging.getLogger(__name__)


class ToolReference(BaseModel):
    """An external capability a command may invoke, e.g. `Task(research_agent)`."""

    model_config = ConfigDict(frozen=True)

    tool_name: str = Field(min_length=1)
    subagent_type: str | None = None

    def __str__(self) -> str:
        if self.subagent_type:
            return f"{self.tool_name}({self.subagent_type})"
        return self.tool_name


class CommandDefinition(BaseModel):
    """Declarative command loaded from a markdown command file."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    template_path: str
    template: str = ""
    argument_hint: str = ""
    allowed_tools: frozenset[ToolReference] = Field(default_factory=frozenset)
    requires_argument: bool = False
    default_argument: str | None = None
    description: str = ""
    category: str = "general"
    aliases: tuple[str, ...] = ()


class _Alias(BaseModel):
    target: str
    deprecation_message: str | None = None


def normalize_command_name(name: str) -> str:
    return name.strip().lstrip("/").strip()


class CommandRegistry:
    """Stores command definitions; load-then-serve, immutable once frozen."""

    def __init__(self) -> None:
        self._commands: dict[str, CommandDefinition] = {}
        self._aliases: dict[str, _Alias] = {}
        self._frozen = False

    def register(self, definition: CommandDefinition) -> None:
        self._ensure_mutable()
        name = normalize_command_name(definition.name)
        if self.has(name):
            raise DuplicateCommandError(name)
        for alias in definition.aliases:
            if self.has(alias):
                raise DuplicateCommandError(normalize_command_name(alias))
        self._commands[name] = definition
        for alias in definition.aliases:
            self._aliases[normalize_command_name(alias)] = _Alias(target=name)

    def register_alias(
        self, alias: str, target: str, deprecation_message: str | None = None
    ) -> None:
        self._ensure_mutable()
        alias_name = normalize_command_name(alias)
        target_name = normalize_command_name(target)
        if target_name not in self._commands:
            raise UnknownCommandError(target_name)
        if self.has(alias_name):
            raise DuplicateCommandError(alias_name)
        self._aliases[alias_name] = _Alias(
            target=target_name, deprecation_message=deprecation_message
        )

    def freeze(self) -> None:
        """Stop accepting registrations."""
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def has(self, name: str) -> bool:
        key = normalize_command_name(name)
        return key in self._commands or key in self._aliases

    def resolve(self, name: str) -> CommandDefinition:
        key = normalize_command_name(name)
        definition = self._commands.get(key)
        if definition is not None:
            return definition

        alias = self._aliases.get(key)
        if alias is None:
            raise UnknownCommandError(key)
        if alias.deprecation_message:
            logger.warning("%s", alias.deprecation_message, extra={"command": key})
        return self._commands[alias.target]

    def definitions(self) -> list[CommandDefinition]:
        return list(self._commands.values())

    def by_category(self) -> dict[str, list[CommandDefinition]]:
        grouped: dict[str, list[CommandDefinition]] = {}
        for definition in self._commands.values():
            grouped.setdefault(definition.category, []).append(definition)
        return grouped

    def __len__(self) -> int:
        return len(self._commands)

    def _ensure_mutable(self) -> None:
        if self._frozen:
            raise RegistryFrozenError("Command registry is frozen; restart to load new commands")
