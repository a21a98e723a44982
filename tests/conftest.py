"""Test configuration and fixtures."""

from pathlib import Path

import pytest

from workflow_core.models import BranchHandle, Workflow
from workflow_backend.persistence import JsonWorkflowStore

from helpers import activity, condition, end, link, start


@pytest.fixture
def linear_chain():
    """start -> A -> B -> end"""
    nodes = [start(), activity("A"), activity("B"), end()]
    connections = [link("start", "A"), link("A", "B"), link("B", "end")]
    return nodes, connections


@pytest.fixture
def condition_branch():
    """start -> cond; cond --yes--> A -> end; cond --no--> end"""
    nodes = [start(), condition("cond"), activity("A"), end()]
    connections = [
        link("start", "cond"),
        link("cond", "A", BranchHandle.YES),
        link("A", "end"),
        link("cond", "end", BranchHandle.NO),
    ]
    return nodes, connections


@pytest.fixture
def welcome_scenario():
    """start(event/view) -> 'Welcome' (no actions, no routes) -> end"""
    nodes = [start(), activity("welcome", label="Welcome", actions=[]), end()]
    connections = [link("start", "welcome"), link("welcome", "end")]
    return nodes, connections


@pytest.fixture
def welcome_workflow(welcome_scenario) -> Workflow:
    nodes, connections = welcome_scenario
    return Workflow(name="Onboarding", nodes=nodes, connections=connections)


@pytest.fixture
def store(tmp_path: Path) -> JsonWorkflowStore:
    """Provide a workflow store in a temporary directory."""
    return JsonWorkflowStore(tmp_path / "workflows")
