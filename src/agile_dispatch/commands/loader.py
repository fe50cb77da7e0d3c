"""Load command definitions from markdown files with YAML front matter."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any

import yaml

from agile_dispatch.commands.registry import (
    CommandDefinition,
    CommandRegistry,
    ToolReference,
)
from agile_dispatch.config import BinderConfig

logger = logging.getLogger(__name__)

# Matches `Read`, `Task(research_agent)` and `Task(subagent_type="research_agent")`.
_TOOL_PATTERN = re.compile(
    r"(?P<tool>[A-Za-z_][\w\-.]*)\s*(?:\(\s*(?:subagent_type\s*=\s*)?[\"']?(?P<sub>[^\"')]*)[\"']?\s*\))?"
)
_TRUTHY = {"true", "yes", "1", "on"}


def split_frontmatter(text: str) -> tuple[dict[str, Any], str]:
    lines = text.splitlines()
    if not lines or lines[0].strip() != "---":
        return {}, text

    end_idx = None
    for i in range(1, len(lines)):
        if lines[i].strip() == "---":
            end_idx = i
            break

    if end_idx is None:
        return {}, text

    yaml_text = "\n".join(lines[1:end_idx])
    body = "\n".join(lines[end_idx + 1 :])

    data = yaml.safe_load(yaml_text) or {}
    if not isinstance(data, dict):
        return {}, body

    return data, body


def parse_allowed_tools(raw: Any) -> frozenset[ToolReference]:
    """Parse the `allowed-tools` front matter value (list or comma string)."""

    if raw is None:
        return frozenset()
    items = raw if isinstance(raw, list) else [raw]

    tools: set[ToolReference] = set()
    for item in items:
        for match in _TOOL_PATTERN.finditer(str(item)):
            subagent = (match.group("sub") or "").strip() or None
            tools.add(ToolReference(tool_name=match.group("tool"), subagent_type=subagent))
    return frozenset(tools)


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in _TRUTHY


def _as_hint(value: Any) -> str:
    # `argument-hint: [focus area]` parses as a YAML flow list.
    if isinstance(value, list):
        return " ".join(f"[{item}]" for item in value)
    return str(value or "")


def _as_aliases(value: Any) -> tuple[str, ...]:
    if not value:
        return ()
    if isinstance(value, str):
        value = value.split(",")
    return tuple(str(alias).strip() for alias in value if str(alias).strip())


class CommandLoader:
    """Builds `CommandDefinition` objects from a directory of `*.md` files."""

    def __init__(self, config: BinderConfig | None = None) -> None:
        self.config = config or BinderConfig()

    def parse_file(self, path: Path) -> CommandDefinition:
        text = path.read_text(encoding="utf-8")
        frontmatter, body = split_frontmatter(text)

        requires_argument = _as_bool(frontmatter.get("requires-argument", False))
        default_argument = frontmatter.get("default-argument")
        if default_argument is not None:
            default_argument = str(default_argument)
        elif not requires_argument:
            default_argument = self.config.default_argument

        return CommandDefinition(
            name=path.stem,
            template_path=str(path),
            template=body.strip(),
            argument_hint=_as_hint(frontmatter.get("argument-hint")),
            allowed_tools=parse_allowed_tools(frontmatter.get("allowed-tools")),
            requires_argument=requires_argument,
            default_argument=default_argument,
            description=str(frontmatter.get("description", "") or ""),
            category=str(frontmatter.get("category", "general") or "general"),
            aliases=_as_aliases(frontmatter.get("aliases")),
        )

    def load_directory(self, commands_dir: str | Path) -> list[CommandDefinition]:
        directory = Path(commands_dir)
        if not directory.is_dir():
            logger.warning("Commands directory not found: %s", directory)
            return []

        definitions: list[CommandDefinition] = []
        for path in sorted(directory.glob("*.md")):
            try:
                definitions.append(self.parse_file(path))
            except (yaml.YAMLError, ValueError) as exc:
                logger.warning("Skipping malformed command file %s: %s", path, exc)
        return definitions

    def load_into(self, registry: CommandRegistry, commands_dir: str | Path) -> int:
        """Register every command found in `commands_dir` and return the count."""

        definitions = self.load_directory(commands_dir)
        for definition in definitions:
            registry.register(definition)
        logger.info("Loaded %d commands from %s", len(definitions), commands_dir)
        return len(definitions)
