"""
Pre-built Templates.

Three static libraries live here:

* **Template trees** (``TEMPLATE_TREES``) — named node/edge subgraphs
  that can be merged into any graph. ``instantiate`` clones one with
  fresh identifiers so it never collides with what is already there.
* **Workflow templates** (``WORKFLOW_TEMPLATES``) — starting points for
  the graph embedded in a ``workflow`` node.
* **Blueprints** (``BLUEPRINTS``) — node recipes with index-based
  connections. They are realised through ``GraphStore.add_node`` and
  ``GraphStore.on_connect`` so the usual wiring side effects apply.

Everything in this module is pure: callers always get new objects.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from typing import Any, Dict, List, Optional, Tuple

from flowbuilder.graph.graph_model import (
    FlowEdge,
    FlowNode,
    NodeKind,
    Position,
    new_edge_id,
    new_node_id,
)

logger = getLogger(__name__)

DEFAULT_MERGE_OFFSET = Position(x=100, y=100)


@dataclass(frozen=True)
class TemplateTree:
    """A named, reusable node/edge subgraph."""
    id: str
    name: str
    description: str
    nodes: Tuple[FlowNode, ...]
    edges: Tuple[FlowEdge, ...]


def _tree(
    tid: str,
    name: str,
    description: str,
    build,
) -> TemplateTree:
    nodes: List[FlowNode] = []
    edges: List[FlowEdge] = []

    def _agent(nid: str, node_id: str, label: str, x: float, y: float,
               instructions: List[str], top_level: bool = False):
        nodes.append(FlowNode(
            id=nid, type=NodeKind.AGENT, position=Position(x=x, y=y),
            data={
                "type": "agent", "name": label, "node_id": node_id,
                "instructions": instructions, "top_level_node": top_level,
            },
        ))

    def _tool(nid: str, node_id: str, label: str, x: float, y: float,
              connected_to: str = ""):
        nodes.append(FlowNode(
            id=nid, type=NodeKind.TOOL, position=Position(x=x, y=y),
            data={
                "type": "tool", "name": label, "node_id": node_id,
                "connected_to": connected_to,
            },
        ))

    def _edge(eid: str, src: str, tgt: str):
        edges.append(FlowEdge(id=eid, source=src, target=tgt))

    build(_agent, _tool, _edge)
    return TemplateTree(
        id=tid,
        name=name,
        description=description,
        nodes=tuple(nodes),
        edges=tuple(edges),
    )


# ============================================================================
# Template Trees
# ============================================================================


def _content_moderation(agent, tool, edge) -> None:
    agent("agent-1", "cf-1", "Content Filter", 250, 100, [
        "Filter incoming content for inappropriate material",
        "Flag content that violates community guidelines",
        "Route approved content to the publishing agent",
    ])
    agent("agent-2", "pa-1", "Publishing Agent", 250, 300, [
        "Publish approved content to the appropriate channels",
        "Add metadata and categorization",
    ])
    tool("tool-1", "ta-1", "Text Analyzer", 50, 150, connected_to="agent-1")
    tool("tool-2", "is-1", "Image Scanner", 450, 150, connected_to="agent-1")
    tool("tool-3", "api-1", "Publishing API", 450, 350, connected_to="agent-2")

    edge("e1", "tool-1", "agent-1")
    edge("e2", "tool-2", "agent-1")
    edge("e3", "agent-1", "agent-2")
    edge("e4", "tool-3", "agent-2")


def _customer_support(agent, tool, edge) -> None:
    agent("agent-1", "ic-1", "Inquiry Classifier", 250, 100, [
        "Classify incoming customer inquiries by type",
        "Route to the appropriate department agent",
        "Prioritize urgent requests",
    ])
    agent("agent-2", "ts-1", "Technical Support", 100, 300, [
        "Handle technical product issues",
        "Provide troubleshooting guidance",
        "Escalate to engineering when needed",
    ])
    agent("agent-3", "bs-1", "Billing Support", 400, 300, [
        "Handle billing and payment inquiries",
        "Process refund requests",
        "Update customer billing information",
    ])
    tool("tool-1", "ld-1", "Language Detector", 50, 100, connected_to="agent-1")
    tool("tool-2", "kb-1", "Knowledge Base", 50, 400, connected_to="agent-2")
    tool("tool-3", "bs-t-1", "Billing System", 400, 400, connected_to="agent-3")

    edge("e1", "tool-1", "agent-1")
    edge("e2", "agent-1", "agent-2")
    edge("e3", "agent-1", "agent-3")
    edge("e4", "tool-2", "agent-2")
    edge("e5", "tool-3", "agent-3")


TEMPLATE_TREES: Dict[str, TemplateTree] = {
    t.id: t
    for t in (
        _tree(
            "content-moderation",
            "Content Moderation Flow",
            "A template for moderating user-generated content with agents and tools",
            _content_moderation,
        ),
        _tree(
            "customer-support",
            "Customer Support Pipeline",
            "A template for handling customer inquiries and routing them "
            "to the right departments",
            _customer_support,
        ),
    )
}


# ============================================================================
# Workflow Templates (seed the graph embedded in a workflow node)
# ============================================================================


def _basic_workflow(agent, tool, edge) -> None:
    agent("template-agent-1", "template-agent-1", "Primary Agent", 250, 100,
          ["Handle user requests", "Delegate to tools when needed"], top_level=True)
    tool("template-tool-1", "template-tool-1", "Helper Tool", 250, 250)

    edge("template-e1", "template-agent-1", "template-tool-1")


def _complex_workflow(agent, tool, edge) -> None:
    agent("template-agent-1", "template-agent-1", "Coordinator Agent", 250, 50,
          ["Coordinate between specialized agents", "Provide final responses"],
          top_level=True)
    agent("template-agent-2", "template-agent-2", "Research Agent", 100, 200,
          ["Perform in-depth research", "Extract key information"])
    agent("template-agent-3", "template-agent-3", "Writing Agent", 400, 200,
          ["Format information clearly", "Create coherent responses"])
    tool("template-tool-1", "template-tool-1", "Search Tool", 100, 350)
    tool("template-tool-2", "template-tool-2", "Formatting Tool", 400, 350)

    edge("template-e1", "template-agent-1", "template-agent-2")
    edge("template-e2", "template-agent-1", "template-agent-3")
    edge("template-e3", "template-agent-2", "template-tool-1")
    edge("template-e4", "template-agent-3", "template-tool-2")


WORKFLOW_TEMPLATES: Dict[str, TemplateTree] = {
    "empty": _tree("empty", "Empty Workflow", "No nodes", lambda *_: None),
    "basic": _tree(
        "basic", "Basic Agent + Tool",
        "One agent wired to one helper tool", _basic_workflow,
    ),
    "complex": _tree(
        "complex", "Multi-Agent Workflow",
        "A coordinator delegating to research and writing agents", _complex_workflow,
    ),
}


# ============================================================================
# Blueprints (realised through GraphStore operations)
# ============================================================================


@dataclass(frozen=True)
class BlueprintNode:
    kind: NodeKind
    position: Position
    data: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Blueprint:
    key: str
    name: str
    nodes: Tuple[BlueprintNode, ...]
    connections: Tuple[Tuple[int, int], ...]  # (source index, target index)


BLUEPRINTS: Dict[str, Blueprint] = {
    "basic": Blueprint(
        key="basic",
        name="Basic Agent + Tool",
        nodes=(
            BlueprintNode(NodeKind.AGENT, Position(x=250, y=100), {
                "name": "Primary Agent",
                "instructions": ["Handle user requests", "Delegate to tools when needed"],
                "top_level_node": False,
            }),
            BlueprintNode(NodeKind.TOOL, Position(x=250, y=250), {"name": "Helper Tool"}),
        ),
        connections=((0, 1),),
    ),
    "multi_agent": Blueprint(
        key="multi_agent",
        name="Multi-Agent System",
        nodes=(
            BlueprintNode(NodeKind.AGENT, Position(x=250, y=50), {
                "name": "Coordinator Agent",
                "instructions": [
                    "Coordinate between specialized agents", "Provide final responses",
                ],
                "top_level_node": False,
            }),
            BlueprintNode(NodeKind.AGENT, Position(x=100, y=200), {
                "name": "Research Agent",
                "instructions": ["Perform in-depth research", "Extract key information"],
                "top_level_node": False,
            }),
            BlueprintNode(NodeKind.AGENT, Position(x=400, y=200), {
                "name": "Writing Agent",
                "instructions": ["Format information clearly", "Create coherent responses"],
                "top_level_node": False,
            }),
            BlueprintNode(NodeKind.TOOL, Position(x=100, y=350), {"name": "Search Tool"}),
            BlueprintNode(NodeKind.TOOL, Position(x=400, y=350), {"name": "Formatting Tool"}),
        ),
        connections=((0, 1), (0, 2), (1, 3), (2, 4)),
    ),
}


# ============================================================================
# Cloning
# ============================================================================


def clone_with_fresh_ids(
    nodes,
    edges,
) -> Tuple[List[FlowNode], List[FlowEdge]]:
    """Deep-clone a node/edge set, replacing every identifier.

    Node ``id`` and ``data.node_id`` and edge ``id`` are regenerated.
    Edge endpoints and tool ``connected_to`` references are rewritten
    through the old→new id map built while cloning the nodes.
    """
    id_map: Dict[str, str] = {}
    new_nodes: List[FlowNode] = []
    for node in nodes:
        new_id = new_node_id()
        id_map[node.id] = new_id
        new_nodes.append(node.model_copy(
            update={
                "id": new_id,
                "data": node.data.model_copy(update={"node_id": new_node_id()}, deep=True),
            },
            deep=True,
        ))

    for i, node in enumerate(new_nodes):
        if node.is_tool() and node.data.connected_to:
            new_nodes[i] = node.model_copy(update={
                "data": node.data.model_copy(update={
                    "connected_to": id_map.get(node.data.connected_to, ""),
                }),
            })

    new_edges = [
        edge.model_copy(
            update={
                "id": new_edge_id(),
                "source": id_map[edge.source],
                "target": id_map[edge.target],
            },
            deep=True,
        )
        for edge in edges
    ]
    return new_nodes, new_edges


def get_template(template_id: str) -> Optional[TemplateTree]:
    return TEMPLATE_TREES.get(template_id)


def list_templates() -> List[TemplateTree]:
    """All template trees, in catalog order."""
    return list(TEMPLATE_TREES.values())


def instantiate(template_id: str) -> Optional[Tuple[List[FlowNode], List[FlowEdge]]]:
    """Clone a template tree with fresh identifiers.

    Returns ``None`` when the template id is unknown.
    """
    template = get_template(template_id)
    if template is None:
        logger.warning(f"Template not found: {template_id}")
        return None
    return clone_with_fresh_ids(template.nodes, template.edges)


def merge_into_graph(
    template_id: str,
    existing_nodes: List[FlowNode],
    existing_edges: List[FlowEdge],
    offset: Optional[Position] = None,
) -> Tuple[List[FlowNode], List[FlowEdge]]:
    """Instantiate a template and append it after the existing graph.

    Cloned nodes are shifted by ``offset`` so the template does not
    land on top of what is already on the canvas. An unknown template
    leaves the existing collections as they are.
    """
    cloned = instantiate(template_id)
    if cloned is None:
        return list(existing_nodes), list(existing_edges)

    offset = offset or DEFAULT_MERGE_OFFSET
    nodes, edges = cloned
    moved = [
        n.model_copy(update={"position": n.position.translated(offset)})
        for n in nodes
    ]
    logger.info(
        f"Template '{template_id}' merged: {len(moved)} nodes, {len(edges)} edges"
    )
    return [*existing_nodes, *moved], [*existing_edges, *edges]


def instantiate_workflow_template(key: str) -> Optional[Tuple[List[FlowNode], List[FlowEdge]]]:
    """Clone a workflow template with fresh identifiers (``None`` if unknown)."""
    template = WORKFLOW_TEMPLATES.get(key)
    if template is None:
        logger.warning(f"Workflow template not found: {key}")
        return None
    return clone_with_fresh_ids(template.nodes, template.edges)
