"""Tests for the template catalog and fresh-id cloning."""

from flowbuilder.graph.graph_model import FlowNode, Position
from flowbuilder.graph.templates import (
    BLUEPRINTS,
    TEMPLATE_TREES,
    WORKFLOW_TEMPLATES,
    clone_with_fresh_ids,
    instantiate,
    instantiate_workflow_template,
    list_templates,
    merge_into_graph,
)


def _all_ids(nodes, edges):
    return (
        {n.id for n in nodes}
        | {n.data.node_id for n in nodes}
        | {e.id for e in edges}
    )


class TestCatalog:

    def test_listing(self):
        ids = [t.id for t in list_templates()]
        assert ids == ["content-moderation", "customer-support"]
        assert list_templates()[0].name == "Content Moderation Flow"

    def test_catalog_is_self_consistent(self):
        for template in list(TEMPLATE_TREES.values()) + list(WORKFLOW_TEMPLATES.values()):
            ids = {n.id for n in template.nodes}
            for edge in template.edges:
                assert edge.source in ids
                assert edge.target in ids

    def test_blueprint_connections_in_range(self):
        for blueprint in BLUEPRINTS.values():
            for src, tgt in blueprint.connections:
                assert 0 <= src < len(blueprint.nodes)
                assert 0 <= tgt < len(blueprint.nodes)


class TestInstantiate:

    def test_unknown_template(self):
        assert instantiate("does-not-exist") is None

    def test_structure_preserved(self):
        template = TEMPLATE_TREES["customer-support"]
        nodes, edges = instantiate("customer-support")
        assert len(nodes) == len(template.nodes)
        assert len(edges) == len(template.edges)
        assert [n.data.name for n in nodes] == [n.data.name for n in template.nodes]

        new_ids = {n.id for n in nodes}
        for edge in edges:
            assert edge.source in new_ids
            assert edge.target in new_ids

    def test_edges_remapped_to_matching_nodes(self):
        template = TEMPLATE_TREES["content-moderation"]
        nodes, edges = instantiate("content-moderation")
        old_to_new = {old.id: new.id for old, new in zip(template.nodes, nodes)}
        for old, new in zip(template.edges, edges):
            assert new.source == old_to_new[old.source]
            assert new.target == old_to_new[old.target]

    def test_tool_references_remapped(self):
        nodes, _ = instantiate("content-moderation")
        ids = {n.id for n in nodes}
        tools = [n for n in nodes if n.is_tool()]
        assert tools
        assert all(t.data.connected_to in ids for t in tools)

    def test_two_instantiations_share_no_ids(self):
        first = _all_ids(*instantiate("content-moderation"))
        second = _all_ids(*instantiate("content-moderation"))
        template = TEMPLATE_TREES["content-moderation"]
        original = _all_ids(template.nodes, template.edges)
        assert first.isdisjoint(second)
        assert first.isdisjoint(original)
        assert second.isdisjoint(original)

    def test_template_left_untouched(self):
        template = TEMPLATE_TREES["content-moderation"]
        before = [n.model_dump() for n in template.nodes]
        nodes, _ = instantiate("content-moderation")
        nodes[0].data.instructions.append("mutated")
        assert [n.model_dump() for n in template.nodes] == before

    def test_dangling_tool_reference_cleared(self):
        tool = FlowNode(id="t", data={"type": "tool", "connected_to": "elsewhere"})
        nodes, _ = clone_with_fresh_ids([tool], [])
        assert nodes[0].data.connected_to == ""


class TestMergeIntoGraph:

    def test_appends_after_existing(self):
        existing = [FlowNode(id="x", data={"type": "agent", "top_level_node": True})]
        nodes, edges = merge_into_graph("customer-support", existing, [])
        assert nodes[0] is existing[0]
        assert len(nodes) == 7
        assert len(edges) == 5

    def test_offset_applied(self):
        template = TEMPLATE_TREES["customer-support"]
        nodes, _ = merge_into_graph("customer-support", [], [], Position(x=10, y=-20))
        for old, new in zip(template.nodes, nodes):
            assert new.position.x == old.position.x + 10
            assert new.position.y == old.position.y - 20

    def test_default_offset(self):
        nodes, _ = merge_into_graph("content-moderation", [], [])
        assert (nodes[0].position.x, nodes[0].position.y) == (350, 200)

    def test_unknown_template_returns_existing(self):
        existing = [FlowNode(id="x", data={"type": "tool"})]
        nodes, edges = merge_into_graph("nope", existing, [])
        assert nodes == existing
        assert edges == []


class TestWorkflowTemplates:

    def test_empty(self):
        assert instantiate_workflow_template("empty") == ([], [])

    def test_complex_has_single_top_level(self):
        nodes, edges = instantiate_workflow_template("complex")
        assert len(nodes) == 5
        assert len(edges) == 4
        assert sum(1 for n in nodes if n.is_agent() and n.data.top_level_node) == 1

    def test_unknown(self):
        assert instantiate_workflow_template("nope") is None
