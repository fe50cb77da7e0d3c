import pytest
from pydantic import ValidationError

from agile_dispatch.documents.workflow_state import WorkflowState, WorkflowStateStore


def test_missing_state_file_yields_defaults(tmp_path) -> None:
    state = WorkflowStateStore(tmp_path / "project-state" / "workflow-state.json").load()

    assert state.current_phase == "setup"
    assert state.progress_percentage == 0
    assert state.blockers == []


def test_touch_records_activity_and_keeps_other_fields(tmp_path) -> None:
    store = WorkflowStateStore(tmp_path / "workflow-state.json")
    store.save(WorkflowState(current_phase="implementation", active_sprint="sprint-3"))

    store.touch("/debug -> project-documents/development/debug-1.md", next_action="/code-review")

    state = store.load()
    assert state.current_phase == "implementation"
    assert state.active_sprint == "sprint-3"
    assert state.last_activity.endswith("/debug -> project-documents/development/debug-1.md")
    assert state.next_action == "/code-review"


def test_progress_percentage_bounded() -> None:
    with pytest.raises(ValidationError):
        WorkflowState(progress_percentage=120)
