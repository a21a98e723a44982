"""Tests for workflow summaries and cycle detection."""

from workflow_core.analysis import find_cycles, summarize_workflow
from workflow_core.models import Workflow

from helpers import activity, end, link, route, start


def test_find_cycles_none_in_chain(linear_chain):
    _, connections = linear_chain
    assert find_cycles(connections) == []


def test_find_cycles_reports_each_cycle_once():
    connections = [link("A", "B"), link("B", "C"), link("C", "A"), link("C", "end")]
    cycles = find_cycles(connections)
    assert len(cycles) == 1
    assert set(cycles[0]) == {"A", "B", "C"}
    assert cycles[0][0] == cycles[0][-1]


def test_self_loop_is_a_cycle():
    assert find_cycles([link("A", "A")]) == [["A", "A"]]


def test_summary_counts():
    workflow = Workflow(
        name="Checkout",
        nodes=[
            start(),
            activity("A", routes=[route("B"), route("end", is_default=True)]),
            activity("B"),
            activity("orphan"),
            end(),
        ],
        connections=[link("start", "A"), link("A", "B"), link("B", "end")],
    )
    summary = summarize_workflow(workflow)

    assert summary.total_nodes == 5
    assert summary.total_connections == 3
    assert summary.nodes_by_type == {"start": 1, "activity": 3, "end": 1}
    assert summary.trigger_count == 1
    assert summary.action_count == 3
    assert summary.route_count == 2
    assert summary.orphan_count == 1
    assert summary.has_cycles is False
    assert summary.to_dict()["nodesByType"]["activity"] == 3
