import pytest

from agile_dispatch.commands.registry import (
    CommandDefinition,
    CommandRegistry,
    ToolReference,
)
from agile_dispatch.errors import (
    DuplicateCommandError,
    RegistryFrozenError,
    UnknownCommandError,
)


def _definition(name: str = "debug", **overrides: object) -> CommandDefinition:
    fields: dict[str, object] = {
        "name": name,
        "template_path": f"commands/{name}.md",
        "template": "Help with: $ARGUMENTS",
        "argument_hint": "[problem]",
        "allowed_tools": frozenset({ToolReference(tool_name="Task", subagent_type="coder_agent")}),
    }
    fields.update(overrides)
    return CommandDefinition(**fields)


def test_resolve_returns_registered_definition() -> None:
    registry = CommandRegistry()
    definition = _definition()

    registry.register(definition)

    assert registry.resolve("debug") is definition
    assert registry.resolve("/debug") is definition


def test_resolve_unknown_command_rejected() -> None:
    registry = CommandRegistry()
    registry.register(_definition())

    with pytest.raises(UnknownCommandError):
        registry.resolve("nonexistent")


def test_duplicate_command_registration_rejected() -> None:
    registry = CommandRegistry()
    registry.register(_definition())

    with pytest.raises(DuplicateCommandError):
        registry.register(_definition(template="Other body"))


def test_alias_resolves_to_target_and_warns_when_deprecated(
    caplog: pytest.LogCaptureFixture,
) -> None:
    registry = CommandRegistry()
    definition = _definition(aliases=("fix",))
    registry.register(definition)
    registry.register_alias("bugfix", "debug", "Use /debug instead of /bugfix")

    assert registry.resolve("fix") is definition
    with caplog.at_level("WARNING"):
        assert registry.resolve("/bugfix") is definition
    assert "Use /debug instead of /bugfix" in caplog.text


def test_alias_cannot_shadow_existing_command() -> None:
    registry = CommandRegistry()
    registry.register(_definition())
    registry.register(_definition("retro"))

    with pytest.raises(DuplicateCommandError):
        registry.register_alias("retro", "debug")
    with pytest.raises(UnknownCommandError):
        registry.register_alias("dbg", "missing")


def test_frozen_registry_rejects_registration() -> None:
    registry = CommandRegistry()
    registry.register(_definition())
    registry.freeze()

    with pytest.raises(RegistryFrozenError):
        registry.register(_definition("retro"))
    assert registry.resolve("debug").name == "debug"


def test_commands_grouped_by_category() -> None:
    registry = CommandRegistry()
    registry.register(_definition("debug", category="development"))
    registry.register(_definition("sprint-retrospective", category="sprint"))
    registry.register(_definition("sprint-planning", category="sprint"))

    grouped = registry.by_category()

    assert [d.name for d in grouped["sprint"]] == ["sprint-retrospective", "sprint-planning"]
    assert [d.name for d in grouped["development"]] == ["debug"]
    assert len(registry) == 3


def test_tool_reference_requires_name() -> None:
    with pytest.raises(ValueError):
        ToolReference(tool_name="")


def test_deprecation_message_logged_verbatim(caplog: pytest.LogCaptureFixture) -> None:
    registry = CommandRegistry()
    registry.register(_definition())
    registry.register_alias("dbg", "debug", "100% replaced by /debug (%s kept literal)")

    with caplog.at_level("WARNING"):
        registry.resolve("dbg")

    assert "100% replaced by /debug (%s kept literal)" in caplog.messages
