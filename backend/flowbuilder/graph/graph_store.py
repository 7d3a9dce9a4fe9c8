"""
Graph Store — the consistency engine behind the canvas.

``GraphStore`` is the single owner of the live node list, edge list,
and current selection. The rendering layer forwards change batches
and connect requests; the store applies them, repairs every derived
invariant, and publishes one ``GraphSnapshot`` per operation.

Invariants kept after every operation:

* at most one agent per scope has ``top_level_node`` set
* a tool's ``connected_to`` mirrors its most recent outgoing edge
* a workflow's embedded graph mirrors every parent edge touching it
  (opposite endpoint in ``graph.nodes``, edge in ``graph.edges``)
* removing a node removes its edges, cascading into workflow graphs

Collections are never mutated in place: each change swaps in new
lists and new node objects, so snapshots already handed out stay valid.
Embedded graphs are mirrored one level deep only.
"""

from __future__ import annotations

from contextlib import contextmanager
from logging import getLogger
from typing import Any, Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple, Union

from pydantic import BaseModel

from flowbuilder.config import BuilderConfig, get_builder_config
from flowbuilder.graph import export
from flowbuilder.graph.changes import parse_edge_changes, parse_node_changes
from flowbuilder.graph.graph_model import (
    FlowEdge,
    FlowNode,
    GraphSnapshot,
    NodeKind,
    Position,
    SubGraph,
    default_data,
    find_node,
    new_edge_id,
    new_node_id,
)
from flowbuilder.graph.templates import (
    BLUEPRINTS,
    get_template,
    instantiate_workflow_template,
    merge_into_graph,
)

logger = getLogger(__name__)

Listener = Callable[[GraphSnapshot], None]
PositionLike = Union[Position, Mapping[str, float]]

_BLUEPRINT_ANCHOR = Position(x=250, y=150)
_DEFAULT_BLUEPRINT_BASE = Position(x=300, y=200)
_DEFAULT_WORKFLOW_POSITION = Position(x=300, y=200)


def _as_position(value: Optional[PositionLike]) -> Position:
    if value is None:
        return Position()
    return Position.model_validate(value)


def _as_partial(partial: Union[Mapping[str, Any], BaseModel, None]) -> Dict[str, Any]:
    if partial is None:
        return {}
    if isinstance(partial, BaseModel):
        return partial.model_dump(exclude_unset=True)
    return dict(partial)


def _with_data(node: FlowNode, **fields: Any) -> FlowNode:
    return node.model_copy(update={"data": node.data.model_copy(update=fields)})


class GraphStore:
    """Owns ``(nodes, edges, selection)`` for one graph scope.

    The top-level canvas is one scope; ``open_workflow`` hands out a
    separate store for the graph embedded in a workflow node.
    """

    def __init__(
        self,
        nodes: Optional[Iterable[FlowNode]] = None,
        edges: Optional[Iterable[FlowEdge]] = None,
        config: Optional[BuilderConfig] = None,
    ) -> None:
        self._config = config or get_builder_config()
        self._nodes: List[FlowNode] = list(nodes or [])
        self._edges: List[FlowEdge] = list(edges or [])
        self._selected_id: Optional[str] = None
        self._listeners: List[Listener] = []
        self._depth = 0

    # ── State access ──

    @property
    def nodes(self) -> List[FlowNode]:
        return list(self._nodes)

    @property
    def edges(self) -> List[FlowEdge]:
        return list(self._edges)

    @property
    def selected_id(self) -> Optional[str]:
        return self._selected_id

    @property
    def selected_node(self) -> Optional[FlowNode]:
        """The selected node, resolved against the current node list."""
        if self._selected_id is None:
            return None
        return find_node(self._nodes, self._selected_id)

    def get_node(self, node_id: str) -> Optional[FlowNode]:
        return find_node(self._nodes, node_id)

    def get_edge(self, edge_id: str) -> Optional[FlowEdge]:
        for e in self._edges:
            if e.id == edge_id:
                return e
        return None

    def top_level_node(self) -> Optional[FlowNode]:
        for n in self._nodes:
            if n.is_agent() and n.data.top_level_node:
                return n
        return None

    def snapshot(self) -> GraphSnapshot:
        return GraphSnapshot(
            nodes=list(self._nodes),
            edges=list(self._edges),
            selected=self.selected_node,
        )

    # ── Subscribers ──

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a callback that receives a snapshot after every operation.

        Returns a function that removes the listener again.
        """
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    @contextmanager
    def _transaction(self) -> Iterator[None]:
        # Nested operations publish once, when the outermost one finishes.
        self._depth += 1
        try:
            yield
        finally:
            self._depth -= 1
        if self._depth == 0:
            self._publish()

    def _publish(self) -> None:
        snap = self.snapshot()
        for listener in list(self._listeners):
            listener(snap)

    # ── Nodes ──

    def add_node(
        self,
        kind: Union[NodeKind, str],
        position: Optional[PositionLike] = None,
        initial_data: Union[Mapping[str, Any], BaseModel, None] = None,
    ) -> FlowNode:
        """Place a new node and select it.

        The node gets kind-default data overlaid with ``initial_data``.
        An agent placed on an empty canvas becomes the top-level node.
        """
        kind = NodeKind(kind)
        fields = default_data(kind)
        fields["node_id"] = new_node_id()
        if kind == NodeKind.AGENT:
            fields["top_level_node"] = not self._nodes

        overlay = _as_partial(initial_data)
        if overlay.get("type", kind.value) != kind.value:
            logger.warning(
                f"Ignoring payload type '{overlay['type']}' for new {kind.value} node"
            )
        overlay.pop("type", None)
        fields.update(overlay)

        node = FlowNode(
            id=new_node_id(),
            type=kind,
            position=_as_position(position),
            data=fields,
        )
        with self._transaction():
            self._nodes = [*self._nodes, node]
            self._selected_id = node.id
            if node.is_agent() and node.data.top_level_node:
                self._demote_top_level(except_id=node.id)
        logger.info(f"Node added: {node.data.name} ({kind.value}, {node.id})")
        return node

    def update_node_data(
        self,
        node_id: str,
        partial: Union[Mapping[str, Any], BaseModel],
    ) -> Optional[FlowNode]:
        """Shallow-merge ``partial`` into a node's data.

        Unknown ids and attempts to change the node kind are ignored.
        No cascading: this only rewrites the one payload.
        """
        node = self.get_node(node_id)
        if node is None:
            logger.warning(f"update_node_data: unknown node {node_id}")
            return None
        fields = _as_partial(partial)
        if fields.get("type", node.type.value) != node.type.value:
            logger.warning(
                f"update_node_data: node {node_id} cannot change kind "
                f"from '{node.type.value}' to '{fields['type']}'"
            )
            return None

        merged = type(node.data).model_validate({**dict(node.data), **fields})
        updated = node.model_copy(update={"data": merged})
        with self._transaction():
            self._replace_node(updated)
        return updated

    def set_top_level(self, node_id: str) -> Optional[FlowNode]:
        """Make an agent the scope's single top-level node."""
        node = self.get_node(node_id)
        if node is None or not node.is_agent():
            logger.warning(f"set_top_level: {node_id} is not an agent node")
            return None
        with self._transaction():
            self._demote_top_level(except_id=node_id)
            updated = self.update_node_data(node_id, {"top_level_node": True})
        return updated

    def apply_node_changes(self, changes: Iterable[Any]) -> None:
        """Apply a batch of node deltas from the renderer.

        Removals cascade first: the node is stripped from every surviving
        workflow's embedded graph, and each incident edge goes through
        the edge-removal path. The other deltas are then applied as given.
        """
        parsed = parse_node_changes(list(changes))
        with self._transaction():
            removed = {
                c.id for c in parsed
                if c.type == "remove" and self.get_node(c.id) is not None
            }
            if removed:
                self._remove_nodes(removed)

            for change in parsed:
                if change.type == "remove":
                    continue
                if change.type == "add":
                    self._add_node_verbatim(change.item)
                    continue
                if change.type == "reset":
                    current = self.get_node(change.item.id)
                    if current is not None and current.type == change.item.type:
                        self._replace_node(change.item)
                    continue

                node = self.get_node(change.id)
                if node is None:
                    logger.debug(f"Skipping {change.type} change for unknown node {change.id}")
                    continue
                update: Dict[str, Any] = {}
                if change.type == "position":
                    if change.position is not None:
                        update["position"] = change.position
                    if change.dragging is not None:
                        update["dragging"] = change.dragging
                elif change.type == "dimensions":
                    if change.dimensions:
                        update["width"] = change.dimensions.get("width", node.width)
                        update["height"] = change.dimensions.get("height", node.height)
                elif change.type == "select":
                    update["selected"] = change.selected
                if update:
                    self._replace_node(node.model_copy(update=update))

            if self._selected_id is not None and self.get_node(self._selected_id) is None:
                self._selected_id = None

    def set_selection(self, node_id: Optional[str]) -> None:
        if node_id is not None and self.get_node(node_id) is None:
            logger.warning(f"set_selection: unknown node {node_id}")
            return
        with self._transaction():
            self._selected_id = node_id

    # ── Edges ──

    def on_connect(self, source: str, target: str) -> Optional[FlowEdge]:
        """Wire ``source`` → ``target`` and return the new edge.

        Self-loops and unknown endpoints are rejected (``None``, graph
        unchanged).
        """
        if source == target:
            logger.warning(f"on_connect: refusing self-loop on {source}")
            return None
        if self.get_node(source) is None or self.get_node(target) is None:
            logger.warning(f"on_connect: unknown endpoint in {source} -> {target}")
            return None

        edge = FlowEdge(
            id=new_edge_id(),
            source=source,
            target=target,
            type=self._config.edge_type,
            animated=self._config.edge_animated,
            marker_end={"type": "arrowclosed", "width": 20, "height": 20},
            style={"strokeWidth": 2},
        )
        with self._transaction():
            self._wire(edge)
        return edge

    def apply_edge_changes(self, changes: Iterable[Any]) -> None:
        """Apply a batch of edge deltas from the renderer."""
        parsed = parse_edge_changes(list(changes))
        with self._transaction():
            self._remove_edges({c.id for c in parsed if c.type == "remove"})

            for change in parsed:
                if change.type == "remove":
                    continue
                if change.type == "add":
                    edge = change.item
                    if self.get_edge(edge.id) is not None:
                        logger.warning(f"Skipping duplicate edge {edge.id}")
                    elif edge.source == edge.target:
                        logger.warning(f"Skipping self-loop edge {edge.id}")
                    elif self.get_node(edge.source) is None or self.get_node(edge.target) is None:
                        logger.warning(f"Skipping edge {edge.id} with unknown endpoint")
                    else:
                        self._wire(edge)
                    continue
                current = self.get_edge(change.id if change.type == "select" else change.item.id)
                if current is None:
                    continue
                if change.type == "select":
                    replacement = current.model_copy(update={"selected": change.selected})
                else:
                    replacement = change.item.model_copy(update={
                        "source": current.source, "target": current.target,
                    })
                self._edges = [replacement if e.id == current.id else e for e in self._edges]

    # ── Bulk state ──

    def set_nodes(self, nodes: Iterable[FlowNode]) -> None:
        """Replace the node list as-is (no invariant repair)."""
        with self._transaction():
            self._nodes = list(nodes)
            if self._selected_id is not None and self.get_node(self._selected_id) is None:
                self._selected_id = None

    def set_edges(self, edges: Iterable[FlowEdge]) -> None:
        """Replace the edge list as-is (no invariant repair)."""
        with self._transaction():
            self._edges = list(edges)

    def load(self, nodes: Iterable[FlowNode], edges: Iterable[FlowEdge]) -> None:
        with self._transaction():
            self._nodes = list(nodes)
            self._edges = list(edges)
            self._selected_id = None
        logger.info(f"Graph loaded: {len(self._nodes)} nodes, {len(self._edges)} edges")

    def clear(self) -> None:
        with self._transaction():
            self._nodes = []
            self._edges = []
            self._selected_id = None
        logger.info("Graph cleared")

    # ── Templates ──

    def add_template(
        self,
        template_id: str,
        offset: Optional[PositionLike] = None,
    ) -> Optional[Tuple[List[FlowNode], List[FlowEdge]]]:
        """Merge a template tree into the graph with fresh identifiers.

        Returns the added nodes and edges, or ``None`` for an unknown id.
        Cloned agents never steal the top-level flag from an existing one.
        """
        if get_template(template_id) is None:
            logger.warning(f"add_template: unknown template {template_id}")
            return None
        if offset is None:
            offset = Position(
                x=self._config.template_offset_x,
                y=self._config.template_offset_y,
            )
        nodes, edges = merge_into_graph(
            template_id, self._nodes, self._edges, _as_position(offset),
        )
        added_nodes = nodes[len(self._nodes):]
        added_edges = edges[len(self._edges):]

        has_top = self.top_level_node() is not None
        for i, node in enumerate(added_nodes):
            if node.is_agent() and node.data.top_level_node:
                if has_top:
                    added_nodes[i] = _with_data(node, top_level_node=False)
                has_top = True

        with self._transaction():
            self._nodes = [*self._nodes, *added_nodes]
            self._edges = [*self._edges, *added_edges]
        logger.info(
            f"Template '{template_id}' merged: "
            f"{len(added_nodes)} nodes, {len(added_edges)} edges"
        )
        return added_nodes, added_edges

    def add_blueprint(
        self,
        key: str,
        base_position: Optional[PositionLike] = None,
    ) -> Optional[List[FlowNode]]:
        """Build a blueprint node by node through ``add_node``/``on_connect``."""
        blueprint = BLUEPRINTS.get(key)
        if blueprint is None:
            logger.warning(f"add_blueprint: unknown blueprint {key}")
            return None
        base = _as_position(base_position) if base_position is not None else _DEFAULT_BLUEPRINT_BASE

        with self._transaction():
            ids: List[str] = []
            for entry in blueprint.nodes:
                position = Position(
                    x=base.x + entry.position.x - _BLUEPRINT_ANCHOR.x,
                    y=base.y + entry.position.y - _BLUEPRINT_ANCHOR.y,
                )
                ids.append(self.add_node(entry.kind, position, dict(entry.data)).id)
            for src, tgt in blueprint.connections:
                self.on_connect(ids[src], ids[tgt])
        logger.info(f"Blueprint '{key}' added: {len(ids)} nodes")
        return [self.get_node(i) for i in ids]

    # ── Workflow scopes ──

    def create_workflow(
        self,
        name: str = "New Workflow",
        template_key: str = "empty",
        position: Optional[PositionLike] = None,
    ) -> Optional[FlowNode]:
        """Add a workflow node whose embedded graph starts from a template."""
        cloned = instantiate_workflow_template(template_key)
        if cloned is None:
            return None
        nodes, edges = cloned
        return self.add_node(
            NodeKind.WORKFLOW,
            position if position is not None else _DEFAULT_WORKFLOW_POSITION,
            {"name": name.strip() or "New Workflow", "graph": SubGraph(nodes=nodes, edges=edges)},
        )

    def open_workflow(self, node_id: str) -> Optional["GraphStore"]:
        """Return an independent store over a workflow node's embedded graph.

        Edit it like any other scope, then hand it to ``commit_workflow``.
        """
        node = self.get_node(node_id)
        if node is None or not node.is_workflow():
            logger.warning(f"open_workflow: {node_id} is not a workflow node")
            return None
        graph = node.data.graph.model_copy(deep=True)
        return GraphStore(graph.nodes, graph.edges, config=self._config)

    def commit_workflow(self, node_id: str, scope: "GraphStore") -> Optional[FlowNode]:
        """Write an edited scope back into the workflow node.

        Parent-graph connections are mirrored again afterwards, so the
        embedded graph cannot lose a node the parent still wires to it.
        """
        node = self.get_node(node_id)
        if node is None or not node.is_workflow():
            logger.warning(f"commit_workflow: {node_id} is not a workflow node")
            return None
        with self._transaction():
            self.update_node_data(node_id, {"graph": SubGraph(nodes=scope.nodes, edges=scope.edges)})
            self._remirror(node_id)
        return self.get_node(node_id)

    def apply_workflow_template(self, node_id: str, template_key: str) -> Optional[FlowNode]:
        """Replace a workflow's embedded graph with a fresh template clone."""
        node = self.get_node(node_id)
        if node is None or not node.is_workflow():
            logger.warning(f"apply_workflow_template: {node_id} is not a workflow node")
            return None
        cloned = instantiate_workflow_template(template_key)
        if cloned is None:
            return None
        nodes, edges = cloned
        with self._transaction():
            self.update_node_data(node_id, {"graph": SubGraph(nodes=nodes, edges=edges)})
            self._remirror(node_id)
        return self.get_node(node_id)

    # ── Export ──

    def export_payload(self) -> export.ExportPayload:
        return export.to_payload(self._nodes, self._edges)

    def to_storage(self) -> str:
        return export.to_storage(self._nodes, self._edges)

    # ── Internals ──

    def _replace_node(self, node: FlowNode) -> None:
        self._nodes = [node if n.id == node.id else n for n in self._nodes]

    def _set_graph(self, workflow: FlowNode, graph: SubGraph) -> None:
        self._replace_node(_with_data(workflow, graph=graph))

    def _demote_top_level(self, except_id: str) -> None:
        for n in self._nodes:
            if n.id != except_id and n.is_agent() and n.data.top_level_node:
                self.update_node_data(n.id, {"top_level_node": False})

    def _latest_target(self, tool_id: str) -> str:
        outgoing = [e for e in self._edges if e.source == tool_id]
        return outgoing[-1].target if outgoing else ""

    def _add_node_verbatim(self, node: FlowNode) -> None:
        if self.get_node(node.id) is not None:
            logger.warning(f"Skipping duplicate node {node.id}")
            return
        if node.is_tool():
            node = _with_data(node, connected_to=self._latest_target(node.id))
        self._nodes = [*self._nodes, node]
        if node.is_agent() and node.data.top_level_node:
            self._demote_top_level(except_id=node.id)

    def _mirror(self, workflow_id: str, other: FlowNode, edge: FlowEdge) -> None:
        workflow = self.get_node(workflow_id)
        graph = workflow.data.graph
        nodes = graph.nodes if graph.has_node(other.id) else [*graph.nodes, other.model_copy(deep=True)]
        edges = graph.edges if graph.has_edge(edge.id) else [*graph.edges, edge.model_copy(deep=True)]
        self._set_graph(workflow, SubGraph(nodes=nodes, edges=edges))

    def _remirror(self, workflow_id: str) -> None:
        for edge in self._edges:
            if not edge.touches(workflow_id):
                continue
            other = self.get_node(edge.other_end(workflow_id))
            if other is not None:
                self._mirror(workflow_id, other, edge)

    def _wire(self, edge: FlowEdge) -> None:
        source = self.get_node(edge.source)
        if source.is_tool():
            self._replace_node(_with_data(source, connected_to=edge.target))

        self._edges = [*self._edges, edge]

        # Look the endpoints up again: the tool update above swapped objects.
        source = self.get_node(edge.source)
        target = self.get_node(edge.target)
        if target.is_workflow():
            self._mirror(target.id, source, edge)
        if source.is_workflow():
            self._mirror(source.id, self.get_node(target.id), edge)
        logger.debug(f"Connected {edge.source} -> {edge.target} ({edge.id})")

    def _remove_edges(self, edge_ids: Iterable[str]) -> None:
        edge_ids = set(edge_ids)
        doomed = [e for e in self._edges if e.id in edge_ids]
        if not doomed:
            return
        remaining = [e for e in self._edges if e.id not in edge_ids]

        for edge in doomed:
            for workflow_id, other_id in ((edge.source, edge.target), (edge.target, edge.source)):
                workflow = self.get_node(workflow_id)
                if workflow is None or not workflow.is_workflow():
                    continue
                graph = workflow.data.graph
                nodes = graph.nodes
                edges = [e for e in graph.edges if e.id != edge.id]
                if not any(e.joins(workflow_id, other_id) for e in remaining):
                    nodes = [n for n in nodes if n.id != other_id]
                    edges = [e for e in edges if not e.touches(other_id)]
                self._set_graph(workflow, SubGraph(nodes=nodes, edges=edges))

        self._edges = remaining

        for tool_id in {e.source for e in doomed}:
            tool = self.get_node(tool_id)
            if tool is not None and tool.is_tool():
                self._replace_node(_with_data(tool, connected_to=self._latest_target(tool_id)))
        logger.debug(f"Removed {len(doomed)} edge(s)")

    def _remove_nodes(self, node_ids: set) -> None:
        for workflow in [n for n in self._nodes if n.is_workflow() and n.id not in node_ids]:
            graph = workflow.data.graph
            nodes = [n for n in graph.nodes if n.id not in node_ids]
            edges = [e for e in graph.edges if e.source not in node_ids and e.target not in node_ids]
            if len(nodes) != len(graph.nodes) or len(edges) != len(graph.edges):
                self._set_graph(workflow, SubGraph(nodes=nodes, edges=edges))

        self._remove_edges(
            e.id for e in self._edges if e.source in node_ids or e.target in node_ids
        )
        self._nodes = [n for n in self._nodes if n.id not in node_ids]
        logger.info(f"Removed {len(node_ids)} node(s)")
