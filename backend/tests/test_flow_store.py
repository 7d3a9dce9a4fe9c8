"""Tests for JSON-file flow persistence."""

from flowbuilder.config import BuilderConfig
from flowbuilder.graph.flow_store import FlowSnapshot, FlowStore, flow_key, flow_name


class TestFlowStore:

    def test_save_and_load(self, flow_store, wired):
        store, agent, tool, _ = wired
        store.on_connect(tool.id, agent.id)

        flow_store.save(store.nodes, store.edges, "my-flow")
        loaded = flow_store.load("my-flow")

        assert isinstance(loaded, FlowSnapshot)
        assert loaded.name == "my-flow"
        assert loaded.nodes == store.nodes
        assert loaded.edges == store.edges
        assert loaded.saved_at

    def test_load_missing(self, flow_store):
        assert flow_store.load("nothing-here") is None

    def test_overwrite(self, flow_store, store):
        store.add_node("agent")
        flow_store.save(store.nodes, store.edges, "f")
        flow_store.save([], [], "f")
        assert flow_store.load("f").nodes == []

    def test_delete_and_exists(self, flow_store):
        flow_store.save([], [], "gone")
        assert flow_store.exists("gone")
        assert flow_store.delete("gone") is True
        assert not flow_store.exists("gone")
        assert flow_store.delete("gone") is False

    def test_list_names(self, flow_store):
        flow_store.save([], [], "b")
        flow_store.save([], [], "a")
        assert flow_store.list_names() == ["a", "b"]
        assert [f.name for f in flow_store.list_all()] == ["a", "b"]

    def test_malformed_file(self, flow_store, tmp_path):
        (tmp_path / "flows" / "flow-broken.json").write_text("{not json", encoding="utf-8")
        assert flow_store.load("broken") is None
        assert flow_store.list_all() == []

    def test_creates_directory(self, tmp_path):
        target = tmp_path / "nested" / "dir"
        FlowStore(storage_dir=target)
        assert target.is_dir()


class TestFlowNames:
    """Names map to distinct files and come back unchanged."""

    def test_names_differing_in_punctuation_stay_apart(self, flow_store, store):
        agent = store.add_node("agent")
        flow_store.save([agent], [], "my flow")
        flow_store.save([], [], "myflow")

        loaded = flow_store.load("my flow")
        assert loaded.name == "my flow"
        assert loaded.nodes == [agent]
        assert flow_store.load("myflow").nodes == []

    def test_symbol_only_names_stay_apart(self, flow_store):
        flow_store.save([], [], "???")
        flow_store.save([], [], "!!!")
        assert sorted(flow_store.list_names()) == sorted(["???", "!!!"])

    def test_path_separators_are_encoded(self, flow_store, tmp_path):
        flow_store.save([], [], "../escape")
        files = list((tmp_path / "flows").iterdir())
        assert len(files) == 1
        assert files[0].parent == tmp_path / "flows"
        assert flow_store.list_names() == ["../escape"]

    def test_key_round_trip(self):
        for name in ["default-flow", "my flow", "a/b", "50%", "émoji ✓"]:
            assert flow_name(flow_key(name)) == name

    def test_blank_name_rejected(self, flow_store):
        assert flow_store.save([], [], "") is None
        assert flow_store.save([], [], "   ") is None
        assert flow_store.load("") is None
        assert flow_store.exists("  ") is False
        assert flow_store.list_names() == []


class TestDefaultFlowName:

    def test_save_and_load_without_name(self, flow_store, store):
        agent = store.add_node("agent")
        saved = flow_store.save([agent], [])
        assert saved.name == "default-flow"
        assert flow_store.load().nodes == [agent]
        assert flow_store.list_names() == ["default-flow"]

    def test_delete_and_exists_without_name(self, flow_store):
        flow_store.save([], [])
        assert flow_store.exists()
        assert flow_store.delete() is True
        assert flow_store.exists() is False

    def test_name_from_config(self, tmp_path):
        flows = FlowStore(tmp_path, config=BuilderConfig(default_flow_name="scratch"))
        flows.save([], [])
        assert flows.default_name == "scratch"
        assert flows.list_names() == ["scratch"]
        assert flows.load("scratch") is not None
