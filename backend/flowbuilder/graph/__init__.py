"""
Graph Engine — consistency engine for the visual flow builder.

Owns the canonical node/edge collections the canvas edits and keeps
their cross-cutting invariants intact, including the graphs embedded
in ``workflow`` nodes.

Architecture:
    graph_model   — Node / edge / payload data models
    changes       — Change deltas sent by the rendering layer
    templates     — Template trees, workflow templates, blueprints
    graph_store   — GraphStore: the mutation API and invariant repair
    export        — API payload and JSON storage adapters
    flow_store    — JSON-file persistence for named flows
"""

from flowbuilder.graph.errors import FlowBuilderError, MissingTopLevelNodeError
from flowbuilder.graph.graph_model import (
    AgentNodeData,
    FlowEdge,
    FlowNode,
    GraphSnapshot,
    NodeKind,
    Position,
    SubGraph,
    ToolNodeData,
    WorkflowNodeData,
)
from flowbuilder.graph.templates import (
    BLUEPRINTS,
    TEMPLATE_TREES,
    WORKFLOW_TEMPLATES,
    TemplateTree,
    instantiate,
    list_templates,
    merge_into_graph,
)
from flowbuilder.graph.graph_store import GraphStore
from flowbuilder.graph.export import (
    ExportPayload,
    from_storage,
    payload_to_json,
    to_payload,
    to_storage,
)
from flowbuilder.graph.flow_store import FlowSnapshot, FlowStore, get_flow_store

__all__ = [
    "FlowBuilderError",
    "MissingTopLevelNodeError",
    "AgentNodeData",
    "FlowEdge",
    "FlowNode",
    "GraphSnapshot",
    "NodeKind",
    "Position",
    "SubGraph",
    "ToolNodeData",
    "WorkflowNodeData",
    "BLUEPRINTS",
    "TEMPLATE_TREES",
    "WORKFLOW_TEMPLATES",
    "TemplateTree",
    "instantiate",
    "list_templates",
    "merge_into_graph",
    "GraphStore",
    "ExportPayload",
    "from_storage",
    "payload_to_json",
    "to_payload",
    "to_storage",
    "FlowSnapshot",
    "FlowStore",
    "get_flow_store",
]
