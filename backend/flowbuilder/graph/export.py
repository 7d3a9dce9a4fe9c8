"""
Export Adapter — turn a live graph into transport and storage formats.

``to_payload`` builds the API payload (one top-level agent plus the
tools, workflows and connections of the graph). ``to_storage`` /
``from_storage`` round-trip the raw ``(nodes, edges)`` pair as JSON.
"""

from __future__ import annotations

from typing import List, Sequence, Tuple

from pydantic import BaseModel, Field

from flowbuilder.graph.errors import MissingTopLevelNodeError
from flowbuilder.graph.graph_model import FlowEdge, FlowNode, SubGraph


class TopLevelNodePayload(BaseModel):
    node_id: str
    name: str
    instructions: List[str]


class ToolPayload(BaseModel):
    node_id: str
    name: str
    connected_to: str


class WorkflowPayload(BaseModel):
    node_id: str
    name: str
    graph: SubGraph


class ConnectionPayload(BaseModel):
    source: str
    target: str


class ExportPayload(BaseModel):
    """The exported pipeline; this shape is the file-format contract."""

    top_level_node: TopLevelNodePayload
    tools: List[ToolPayload] = Field(default_factory=list)
    workflows: List[WorkflowPayload] = Field(default_factory=list)
    connections: List[ConnectionPayload] = Field(default_factory=list)


class StoredFlow(BaseModel):
    nodes: List[FlowNode] = Field(default_factory=list)
    edges: List[FlowEdge] = Field(default_factory=list)


def to_payload(nodes: Sequence[FlowNode], edges: Sequence[FlowEdge]) -> ExportPayload:
    """Project the graph onto the export payload.

    Raises:
        MissingTopLevelNodeError: no agent has ``top_level_node`` set.
    """
    top = next(
        (n for n in nodes if n.is_agent() and n.data.top_level_node),
        None,
    )
    if top is None:
        raise MissingTopLevelNodeError()

    return ExportPayload(
        top_level_node=TopLevelNodePayload(
            node_id=top.data.node_id,
            name=top.data.name,
            instructions=list(top.data.instructions),
        ),
        tools=[
            ToolPayload(
                node_id=n.data.node_id,
                name=n.data.name,
                connected_to=n.data.connected_to,
            )
            for n in nodes if n.is_tool()
        ],
        workflows=[
            WorkflowPayload(
                node_id=n.data.node_id,
                name=n.data.name,
                graph=n.data.graph,
            )
            for n in nodes if n.is_workflow()
        ],
        connections=[
            ConnectionPayload(source=e.source, target=e.target) for e in edges
        ],
    )


def payload_to_json(payload: ExportPayload, indent: int = 2) -> str:
    return payload.model_dump_json(indent=indent, by_alias=True)


def to_storage(
    nodes: Sequence[FlowNode],
    edges: Sequence[FlowEdge],
    indent: int = 2,
) -> str:
    """Serialize the raw graph to JSON without dropping any field."""
    flow = StoredFlow(nodes=list(nodes), edges=list(edges))
    return flow.model_dump_json(indent=indent, by_alias=True)


def from_storage(text: str) -> Tuple[List[FlowNode], List[FlowEdge]]:
    """Inverse of ``to_storage``. Raises ``ValidationError`` on bad input."""
    flow = StoredFlow.model_validate_json(text)
    return flow.nodes, flow.edges
