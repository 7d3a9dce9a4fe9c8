"""Tests for the node / edge data models."""

import pytest
from pydantic import ValidationError

from flowbuilder.graph.graph_model import (
    AgentNodeData,
    FlowEdge,
    FlowNode,
    NodeKind,
    SubGraph,
    ToolNodeData,
    WorkflowNodeData,
    default_data,
    edges_touching,
    find_node,
)


class TestNodePayloads:
    """Payloads are discriminated by ``type``."""

    def test_agent_payload_from_dict(self):
        node = FlowNode(
            id="a1",
            type="agent",
            data={"name": "Planner", "node_id": "n1", "instructions": ["plan"]},
        )
        assert isinstance(node.data, AgentNodeData)
        assert node.kind == NodeKind.AGENT
        assert node.data.instructions == ["plan"]
        assert node.data.top_level_node is False

    def test_kind_inferred_from_payload(self):
        node = FlowNode(id="t1", data={"type": "tool", "name": "Search"})
        assert node.type == NodeKind.TOOL
        assert isinstance(node.data, ToolNodeData)
        assert node.data.connected_to == ""

    def test_mismatched_kind_rejected(self):
        with pytest.raises(ValidationError):
            FlowNode(id="x", type="agent", data={"type": "tool", "name": "Search"})

    def test_unknown_kind_rejected(self):
        with pytest.raises(ValidationError):
            FlowNode(id="x", type="router", data={"type": "router"})

    def test_workflow_graph_is_recursive(self):
        inner = FlowNode(id="a1", data={"type": "agent", "name": "Inner"})
        node = FlowNode(
            id="w1",
            data={
                "type": "workflow",
                "name": "Outer",
                "graph": {"nodes": [inner], "edges": []},
            },
        )
        assert isinstance(node.data, WorkflowNodeData)
        assert isinstance(node.data.graph, SubGraph)
        assert node.data.graph.get_node("a1").data.name == "Inner"

    def test_node_ids_are_generated(self):
        first = FlowNode(data={"type": "tool"})
        second = FlowNode(data={"type": "tool"})
        assert first.id != second.id
        assert first.data.node_id != second.data.node_id

    def test_renderer_extras_are_kept(self):
        node = FlowNode(id="a1", data={"type": "agent"}, className="highlight")
        assert node.model_extra == {"className": "highlight"}

    def test_payload_extras_are_kept(self):
        node = FlowNode(id="t1", data={"type": "tool", "icon": "search", "color": "#fff"})
        assert node.data.model_extra == {"icon": "search", "color": "#fff"}


class TestFlowEdge:

    def test_marker_end_alias(self):
        edge = FlowEdge(id="e1", source="a", target="b", markerEnd={"type": "arrowclosed"})
        assert edge.marker_end == {"type": "arrowclosed"}
        assert "markerEnd" in edge.model_dump(by_alias=True)

    def test_edge_id_prefix(self):
        assert FlowEdge(source="a", target="b").id.startswith("e-")

    def test_joins_either_direction(self):
        edge = FlowEdge(id="e1", source="a", target="b")
        assert edge.joins("a", "b")
        assert edge.joins("b", "a")
        assert not edge.joins("a", "c")
        assert edge.other_end("a") == "b"
        assert edge.other_end("b") == "a"


class TestHelpers:

    def test_default_data_per_kind(self):
        assert default_data(NodeKind.AGENT)["instructions"] == []
        assert default_data(NodeKind.TOOL)["connected_to"] == ""
        assert default_data(NodeKind.WORKFLOW)["graph"] == {"nodes": [], "edges": []}
        assert default_data(NodeKind.TOOL)["name"] == "New tool"

    def test_find_node_and_edges_touching(self):
        nodes = [
            FlowNode(id="a", data={"type": "agent"}),
            FlowNode(id="b", data={"type": "tool"}),
        ]
        edges = [
            FlowEdge(id="e1", source="b", target="a"),
            FlowEdge(id="e2", source="a", target="c"),
            FlowEdge(id="e3", source="c", target="d"),
        ]
        assert find_node(nodes, "b") is nodes[1]
        assert find_node(nodes, "zzz") is None
        assert [e.id for e in edges_touching(edges, "a")] == ["e1", "e2"]
