"""
JSON file persistence for workflows.

One `<workflow_id>.json` file per workflow. Saves always carry the full
snapshot (last write wins) and are written atomically through a temp file.
"""

from datetime import datetime, timezone
from pathlib import Path
from typing import Optional
import json
import logging
import os
import uuid

from workflow_core.errors import WorkflowError
from workflow_core.models import TriggerEventConfig, Workflow
from workflow_core.triggers import sorted_trigger_events

logger = logging.getLogger(__name__)


class PersistenceError(WorkflowError):
    """Raised when a workflow cannot be read from or written to the store."""


class WorkflowNotFoundError(PersistenceError):
    def __init__(self, workflow_id: str):
        super().__init__(f"Workflow not found: {workflow_id}")
        self.workflow_id = workflow_id


def generate_workflow_id() -> str:
    return f"wf-{uuid.uuid4().hex[:8]}"


class JsonWorkflowStore:
    """Stores workflows as JSON files in a directory."""

    def __init__(self, directory: str | Path):
        self._directory = Path(directory)

    @property
    def directory(self) -> Path:
        return self._directory

    def _path(self, workflow_id: str) -> Path:
        if not workflow_id or "/" in workflow_id or "\\" in workflow_id or workflow_id.startswith("."):
            raise PersistenceError(f"Invalid workflow id: {workflow_id!r}")
        return self._directory / f"{workflow_id}.json"

    def save(self, workflow_id: Optional[str], workflow: Workflow) -> str:
        """
        Write the full workflow snapshot.

        Returns the workflow id, generating one on first save.
        """
        workflow_id = workflow_id or workflow.id or generate_workflow_id()
        path = self._path(workflow_id)

        data = workflow.model_copy(update={
            "id": workflow_id,
            "updated_at": datetime.now(timezone.utc),
        }).to_json_dict()

        tmp_path = path.with_suffix(".json.tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp_path, path)
        except OSError as e:
            raise PersistenceError(f"Failed to save workflow {workflow_id}: {e}") from e

        logger.info("Saved workflow %s", workflow_id, extra={"path": str(path)})
        return workflow_id

    def load(self, workflow_id: str) -> Workflow:
        path = self._path(workflow_id)
        if not path.exists():
            raise WorkflowNotFoundError(workflow_id)
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise PersistenceError(f"Failed to read workflow {workflow_id}: {e}") from e

        workflow = Workflow.from_json_dict(data)
        workflow.id = workflow_id
        return workflow

    def load_trigger_events(self, workflow_id: str) -> list[TriggerEventConfig]:
        """Trigger events of the workflow's start node, in seq order."""
        start = self.load(workflow_id).start_node()
        if start is None:
            return []
        return sorted_trigger_events(start.data.trigger_events)

    def delete(self, workflow_id: str) -> bool:
        path = self._path(workflow_id)
        if not path.exists():
            return False
        try:
            path.unlink()
        except OSError as e:
            raise PersistenceError(f"Failed to delete workflow {workflow_id}: {e}") from e
        logger.info("Deleted workflow %s", workflow_id)
        return True

    def list_workflows(self) -> list[dict]:
        """Short descriptions of every readable workflow file."""
        if not self._directory.exists():
            return []

        workflows = []
        for f in sorted(self._directory.glob("*.json")):
            try:
                with open(f, "r", encoding="utf-8") as file:
                    data = json.load(file)
            except (OSError, json.JSONDecodeError):
                logger.warning("Skipping unreadable workflow file %s", f)
                continue
            workflows.append({
                "id": f.stem,
                "name": data.get("name", f.stem),
                "nodes": len(data.get("nodes", [])),
                "connections": len(data.get("connections", [])),
                "isActive": data.get("isActive", True),
            })
        return workflows
