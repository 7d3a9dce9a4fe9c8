"""
Change deltas sent by the rendering layer.

The renderer reports what the user did on the canvas as small
delta records (``{"type": "remove", "id": ...}`` and friends).
``GraphStore.apply_node_changes`` / ``apply_edge_changes`` accept
either these models or the equivalent plain dicts.
"""

from __future__ import annotations

from typing import Annotated, Any, Dict, List, Literal, Optional, Sequence, Union

from pydantic import BaseModel, Field, TypeAdapter

from flowbuilder.graph.graph_model import FlowEdge, FlowNode, Position


# ── Node changes ──


class NodePositionChange(BaseModel):
    type: Literal["position"] = "position"
    id: str
    position: Optional[Position] = None
    dragging: Optional[bool] = None


class NodeDimensionsChange(BaseModel):
    type: Literal["dimensions"] = "dimensions"
    id: str
    dimensions: Optional[Dict[str, float]] = None


class NodeSelectionChange(BaseModel):
    type: Literal["select"] = "select"
    id: str
    selected: bool


class NodeRemoveChange(BaseModel):
    type: Literal["remove"] = "remove"
    id: str


class NodeAddChange(BaseModel):
    type: Literal["add"] = "add"
    item: FlowNode


class NodeResetChange(BaseModel):
    type: Literal["reset"] = "reset"
    item: FlowNode


NodeChange = Annotated[
    Union[
        NodePositionChange,
        NodeDimensionsChange,
        NodeSelectionChange,
        NodeRemoveChange,
        NodeAddChange,
        NodeResetChange,
    ],
    Field(discriminator="type"),
]


# ── Edge changes ──


class EdgeSelectionChange(BaseModel):
    type: Literal["select"] = "select"
    id: str
    selected: bool


class EdgeRemoveChange(BaseModel):
    type: Literal["remove"] = "remove"
    id: str


class EdgeAddChange(BaseModel):
    type: Literal["add"] = "add"
    item: FlowEdge


class EdgeResetChange(BaseModel):
    type: Literal["reset"] = "reset"
    item: FlowEdge


EdgeChange = Annotated[
    Union[EdgeSelectionChange, EdgeRemoveChange, EdgeAddChange, EdgeResetChange],
    Field(discriminator="type"),
]


_node_changes = TypeAdapter(List[NodeChange])
_edge_changes = TypeAdapter(List[EdgeChange])


def parse_node_changes(changes: Sequence[Union[Dict[str, Any], BaseModel]]) -> List[NodeChange]:
    """Validate a batch of node deltas (dicts or models)."""
    return _node_changes.validate_python(list(changes))


def parse_edge_changes(changes: Sequence[Union[Dict[str, Any], BaseModel]]) -> List[EdgeChange]:
    """Validate a batch of edge deltas (dicts or models)."""
    return _edge_changes.validate_python(list(changes))
