"""
Graph Data Models — nodes, per-kind payloads, and edges.

These are the serializable data structures that describe
a user-assembled flow graph. They are owned by ``GraphStore``,
persisted by ``FlowStore`` and projected by the export adapter.

A ``workflow`` node embeds a ``SubGraph`` made of the very same
``FlowNode`` / ``FlowEdge`` types, so the model is recursive.
"""

from __future__ import annotations

import uuid
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator


class NodeKind(str, Enum):
    """Kind of a node; fixed for the node's lifetime."""
    AGENT = "agent"
    TOOL = "tool"
    WORKFLOW = "workflow"


def new_node_id() -> str:
    """Generate a fresh node identifier (UUID4)."""
    return str(uuid.uuid4())


def new_edge_id() -> str:
    """Generate a fresh edge identifier."""
    return f"e-{uuid.uuid4()}"


class Position(BaseModel):
    x: float = 0
    y: float = 0

    def translated(self, offset: "Position") -> "Position":
        return Position(x=self.x + offset.x, y=self.y + offset.y)


# ============================================================================
# Node payloads (discriminated by ``type``)
# ============================================================================


class BaseNodeData(BaseModel):
    """Fields shared by every node payload.

    ``node_id`` is distinct from ``FlowNode.id``: it is the identifier
    that shows up in exported payloads. Keys the renderer adds to
    ``data`` are kept as extra fields.
    """

    model_config = ConfigDict(extra="allow")

    name: str = ""
    node_id: str = Field(default_factory=new_node_id)


class AgentNodeData(BaseNodeData):
    type: Literal["agent"] = "agent"
    instructions: List[str] = Field(default_factory=list)
    top_level_node: bool = False


class ToolNodeData(BaseNodeData):
    type: Literal["tool"] = "tool"
    connected_to: str = ""  # id of the node this tool is wired to


class WorkflowNodeData(BaseNodeData):
    type: Literal["workflow"] = "workflow"
    graph: "SubGraph" = Field(default_factory=lambda: SubGraph())


NodeData = Annotated[
    Union[AgentNodeData, ToolNodeData, WorkflowNodeData],
    Field(discriminator="type"),
]


# ============================================================================
# Nodes, edges, and embedded graphs
# ============================================================================


class FlowNode(BaseModel):
    """A single node placed on the canvas.

    Rendering attributes (``width``, ``selected`` …) are carried
    along untouched; anything else the renderer attaches is kept
    as an extra field.
    """

    model_config = ConfigDict(extra="allow")

    id: str = Field(default_factory=new_node_id)
    type: NodeKind
    position: Position = Field(default_factory=Position)
    data: NodeData
    width: Optional[float] = None
    height: Optional[float] = None
    selected: bool = False
    dragging: bool = False

    @model_validator(mode="before")
    @classmethod
    def infer_kind(cls, values: Any) -> Any:
        # Either side may carry the kind; copy it to the other.
        if not isinstance(values, dict):
            return values
        data = values.get("data")
        if "type" not in values:
            kind = data.get("type") if isinstance(data, dict) else getattr(data, "type", None)
            if kind is not None:
                values = {**values, "type": kind}
        elif isinstance(data, dict) and "type" not in data:
            kind = values["type"]
            values = {**values, "data": {**data, "type": getattr(kind, "value", kind)}}
        return values

    @model_validator(mode="after")
    def check_kind(self) -> "FlowNode":
        if self.data.type != self.type.value:
            raise ValueError(
                f"node {self.id}: type '{self.type.value}' does not match "
                f"payload type '{self.data.type}'"
            )
        return self

    @property
    def kind(self) -> NodeKind:
        return self.type

    def is_agent(self) -> bool:
        return self.type == NodeKind.AGENT

    def is_tool(self) -> bool:
        return self.type == NodeKind.TOOL

    def is_workflow(self) -> bool:
        return self.type == NodeKind.WORKFLOW


class FlowEdge(BaseModel):
    """A directed edge between two nodes.

    Only ``id``, ``source`` and ``target`` matter to the engine;
    the remaining fields are routing / styling hints for the renderer.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str = Field(default_factory=new_edge_id)
    source: str  # source node id
    target: str  # target node id
    type: str = "smoothstep"
    animated: bool = True
    marker_end: Optional[Dict[str, Any]] = Field(default=None, alias="markerEnd")
    style: Optional[Dict[str, Any]] = None
    selected: bool = False

    def touches(self, node_id: str) -> bool:
        return self.source == node_id or self.target == node_id

    def joins(self, a: str, b: str) -> bool:
        """True when the edge connects ``a`` and ``b`` in either direction."""
        return {self.source, self.target} == {a, b}

    def other_end(self, node_id: str) -> str:
        return self.target if self.source == node_id else self.source


class SubGraph(BaseModel):
    """Node/edge collection embedded in a ``workflow`` node."""

    nodes: List[FlowNode] = Field(default_factory=list)
    edges: List[FlowEdge] = Field(default_factory=list)

    def get_node(self, node_id: str) -> Optional[FlowNode]:
        return find_node(self.nodes, node_id)

    def has_node(self, node_id: str) -> bool:
        return self.get_node(node_id) is not None

    def has_edge(self, edge_id: str) -> bool:
        return any(e.id == edge_id for e in self.edges)


class GraphSnapshot(BaseModel):
    """The ``(nodes, edges, selection)`` triple handed to the renderer."""

    nodes: List[FlowNode] = Field(default_factory=list)
    edges: List[FlowEdge] = Field(default_factory=list)
    selected: Optional[FlowNode] = None


WorkflowNodeData.model_rebuild()
FlowNode.model_rebuild()
SubGraph.model_rebuild()
GraphSnapshot.model_rebuild()


# ============================================================================
# Lookup helpers
# ============================================================================


def find_node(nodes: List[FlowNode], node_id: str) -> Optional[FlowNode]:
    """Find a node by ``id``."""
    for n in nodes:
        if n.id == node_id:
            return n
    return None


def edges_touching(edges: List[FlowEdge], node_id: str) -> List[FlowEdge]:
    """All edges with ``node_id`` as either endpoint."""
    return [e for e in edges if e.touches(node_id)]


def default_data(kind: NodeKind) -> Dict[str, Any]:
    """Kind-default payload fields for a freshly placed node."""
    base: Dict[str, Any] = {"name": f"New {kind.value}", "type": kind.value}
    if kind == NodeKind.AGENT:
        base.update(instructions=[], top_level_node=False)
    elif kind == NodeKind.WORKFLOW:
        base.update(graph={"nodes": [], "edges": []})
    elif kind == NodeKind.TOOL:
        base.update(connected_to="")
    return base
