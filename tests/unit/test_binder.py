import pytest

from agile_dispatch.commands.binder import ArgumentBinder, bind, parse_invocation
from agile_dispatch.commands.registry import CommandDefinition
from agile_dispatch.config import BinderConfig
from agile_dispatch.errors import MissingDefaultError


def test_bind_replaces_every_placeholder_and_nothing_else() -> None:
    template = "Analyze $ARGUMENTS.\n\nScope: $ARGUMENTS (keep $ and ARGUMENTS literal)"

    bound = bind(template, "payment service")

    assert "$ARGUMENTS" not in bound
    assert bound == (
        "Analyze payment service.\n\nScope: payment service (keep $ and ARGUMENTS literal)"
    )


def test_bind_blank_arguments_use_declared_default() -> None:
    assert bind("Review: $ARGUMENTS", "", default="Full scope") == "Review: Full scope"
    assert bind("Review: $ARGUMENTS", "   ", default="Full scope") == "Review: Full scope"


def test_bind_required_argument_without_default_fails() -> None:
    with pytest.raises(MissingDefaultError):
        bind("Help with: $ARGUMENTS", "", requires_argument=True, command="debug")


def test_bind_optional_argument_without_default_binds_empty() -> None:
    assert bind("Status $ARGUMENTS", "") == "Status "


def test_bind_appends_arguments_when_template_has_no_placeholder() -> None:
    assert bind("Run the standup.", "team alpha") == "Run the standup.\n\nARGUMENTS: team alpha"
    assert bind("Run the standup.", "") == "Run the standup."


def test_argument_binder_uses_definition_and_custom_placeholder() -> None:
    definition = CommandDefinition(
        name="retro",
        template_path="commands/retro.md",
        template="Retro for {{args}}",
        default_argument="current sprint",
    )
    binder = ArgumentBinder(BinderConfig(placeholder="{{args}}"))

    assert binder.bind_command(definition, "") == "Retro for current sprint"
    assert binder.bind_command(definition, "sprint 4") == "Retro for sprint 4"


def test_parse_invocation_splits_command_and_free_text() -> None:
    assert parse_invocation("/debug null pointer in parser") == ("debug", "null pointer in parser")
    assert parse_invocation("  /status  ") == ("status", "")
    assert parse_invocation("/rebuild --dry-run --resume") == ("rebuild", "--dry-run --resume")
