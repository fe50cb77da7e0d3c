"""Project workflow state persisted at `project-state/workflow-state.json`."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class WorkflowState(BaseModel):
    """Snapshot of where the project workflow stands."""

    current_phase: str = "setup"
    progress_percentage: int = Field(default=0, ge=0, le=100)
    active_sprint: str | None = None
    status: str = "idle"
    blockers: list[str] = Field(default_factory=list)
    last_activity: str | None = None
    next_action: str | None = None


class WorkflowStateStore:
    """Reads and writes the workflow state file."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def load(self) -> WorkflowState:
        if not self.path.exists():
            return WorkflowState()
        return WorkflowState.model_validate_json(self.path.read_text(encoding="utf-8"))

    def save(self, state: WorkflowState) -> WorkflowState:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(state.model_dump(), handle, ensure_ascii=False, indent=2)
            os.replace(tmp_name, self.path)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        return state

    def touch(self, activity: str, *, next_action: str | None = None) -> WorkflowState:
        """Record the latest operator activity, keeping everything else."""

        state = self.load()
        stamp = datetime.now(timezone.utc).isoformat()
        update: dict[str, object] = {"last_activity": f"{stamp} {activity}"}
        if next_action is not None:
            update["next_action"] = next_action
        updated = state.model_copy(update=update)
        logger.debug("Workflow activity: %s", activity)
        return self.save(updated)
