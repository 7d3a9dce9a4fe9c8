"""Shared fixtures for flow builder tests."""

import pytest

from flowbuilder.config import BuilderConfig
from flowbuilder.graph.flow_store import FlowStore
from flowbuilder.graph.graph_store import GraphStore


@pytest.fixture
def config():
    """Defaults only; never picks up FLOWBUILDER_* from the environment."""
    return BuilderConfig()


@pytest.fixture
def store(config):
    return GraphStore(config=config)


@pytest.fixture
def flow_store(tmp_path, config):
    return FlowStore(storage_dir=tmp_path / "flows", config=config)


@pytest.fixture
def wired(store):
    """agent ← tool, plus an unconnected workflow node."""
    agent = store.add_node("agent", {"x": 0, "y": 0}, {"name": "Planner"})
    tool = store.add_node("tool", {"x": 100, "y": 0}, {"name": "Search"})
    workflow = store.add_node("workflow", {"x": 200, "y": 0}, {"name": "Pipeline"})
    return store, agent, tool, workflow
