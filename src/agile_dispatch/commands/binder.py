"""Argument binding for command templates."""

from __future__ import annotations

from agile_dispatch.commands.registry import CommandDefinition
from agile_dispatch.config import BinderConfig
from agile_dispatch.errors import MissingDefaultError

PLACEHOLDER = "$ARGUMENTS"


def bind(
    template: str,
    args: str,
    *,
    default: str | None = None,
    requires_argument: bool = False,
    placeholder: str = PLACEHOLDER,
    command: str | None = None,
) -> str:
    """Substitute operator arguments into every placeholder occurrence.

    Blank `args` fall back to `default`. A command that requires an argument
    and declares no default raises `MissingDefaultError`; any other command
    binds the empty string.
    """

    if not args.strip():
        if default is not None:
            args = default
        elif requires_argument:
            raise MissingDefaultError(command)
        else:
            args = ""

    if placeholder in template:
        return template.replace(placeholder, args)
    if not args:
        return template
    suffix = f"\n\nARGUMENTS: {args}" if template.strip() else f"ARGUMENTS: {args}"
    return f"{template.rstrip()}{suffix}"


def parse_invocation(line: str) -> tuple[str, str]:
    """Split `/command free text` into its name and free-text arguments."""
    stripped = line.strip()
    if stripped.startswith("/"):
        stripped = stripped[1:]
    name, _, rest = stripped.partition(" ")
    return name.strip(), rest.strip()


class ArgumentBinder:
    """Binds arguments using a command definition's declared default."""

    def __init__(self, config: BinderConfig | None = None) -> None:
        self.config = config or BinderConfig()

    def bind_command(self, definition: CommandDefinition, args: str) -> str:
        return bind(
            definition.template,
            args,
            default=definition.default_argument,
            requires_argument=definition.requires_argument,
            placeholder=self.config.placeholder,
            command=definition.name,
        )
