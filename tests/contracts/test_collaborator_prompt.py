from agile_dispatch.commands.registry import CommandDefinition, ToolReference
from agile_dispatch.dispatch.collaborator import (
    _SYSTEM_PROMPT,
    ArtifactWriter,
    LangChainCollaborator,
    format_tools,
)


class MockLLM:
    pass


def test_system_prompt_constrains_tools_and_document_shape() -> None:
    assert "{allowed_tools}" in _SYSTEM_PROMPT
    assert "only rely on these tools" in _SYSTEM_PROMPT
    assert "level-one heading" in _SYSTEM_PROMPT
    assert "{command}" in _SYSTEM_PROMPT


def test_rendered_messages_carry_command_tools_and_prompt(tmp_path) -> None:
    collaborator = LangChainCollaborator(llm=MockLLM(), writer=ArtifactWriter(tmp_path))
    command = CommandDefinition(
        name="sprint-retrospective",
        template_path="commands/sprint-retrospective.md",
        allowed_tools=frozenset(
            {
                ToolReference(tool_name="Task", subagent_type="project_manager_agent"),
                ToolReference(tool_name="Read"),
            }
        ),
    )

    messages = collaborator.prompt.format_messages(
        command=command.name,
        allowed_tools=format_tools(command.allowed_tools),
        prompt="Run the retrospective for sprint 4",
    )

    assert "`/sprint-retrospective`" in messages[0].content
    assert "Read, Task(project_manager_agent)" in messages[0].content
    assert messages[1].content == "Run the retrospective for sprint 4"


def test_format_tools_without_tools() -> None:
    assert format_tools(frozenset()) == "none"
