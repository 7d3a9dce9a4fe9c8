"""
Flow Store — JSON-file persistence for named graph snapshots.

Every saved canvas is one ``flow-<key>.json`` file under the storage
directory. The key is the flow name percent-encoded, so distinct names
never share a file and the name can always be recovered from the key.
Calls that omit the name use ``BuilderConfig.default_flow_name``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from logging import getLogger
from pathlib import Path
from typing import List, Optional, Sequence, Union
from urllib.parse import quote, unquote

from pydantic import BaseModel, Field, ValidationError

from flowbuilder.config import BuilderConfig, get_builder_config
from flowbuilder.graph.graph_model import FlowEdge, FlowNode

logger = getLogger(__name__)

_PREFIX = "flow-"
_SUFFIX = ".json"


class FlowSnapshot(BaseModel):
    """A saved ``{nodes, edges}`` pair."""

    name: str
    nodes: List[FlowNode] = Field(default_factory=list)
    edges: List[FlowEdge] = Field(default_factory=list)
    saved_at: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )


def flow_key(name: str) -> str:
    """Filesystem-safe, reversible key for a flow name."""
    return quote(name, safe="-_")


def flow_name(key: str) -> str:
    return unquote(key)


class FlowStore:
    """Named flows, one JSON document per flow."""

    def __init__(
        self,
        storage_dir: Union[Path, str, None] = None,
        config: Optional[BuilderConfig] = None,
    ) -> None:
        self._config = config or get_builder_config()
        self._dir = Path(storage_dir) if storage_dir else self._config.storage_path
        self._dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"FlowStore ready at {self._dir}")

    @property
    def default_name(self) -> str:
        return self._config.default_flow_name

    # ── Read / write ──

    def save(
        self,
        nodes: Sequence[FlowNode],
        edges: Sequence[FlowEdge],
        name: Optional[str] = None,
    ) -> Optional[FlowSnapshot]:
        """Write a flow, replacing any earlier save under the same name.

        Blank names are rejected with ``None``.
        """
        path = self._path_for(name)
        if path is None:
            return None
        snapshot = FlowSnapshot(
            name=self._resolve(name), nodes=list(nodes), edges=list(edges),
        )
        path.write_text(snapshot.model_dump_json(indent=2, by_alias=True), encoding="utf-8")
        logger.info(f"Flow '{snapshot.name}' saved ({len(snapshot.nodes)} nodes) to {path.name}")
        return snapshot

    def load(self, name: Optional[str] = None) -> Optional[FlowSnapshot]:
        """Read a flow back; ``None`` when it is missing or unreadable."""
        path = self._path_for(name)
        if path is None or not path.is_file():
            return None
        return self._read(path)

    def delete(self, name: Optional[str] = None) -> bool:
        path = self._path_for(name)
        if path is None or not path.is_file():
            return False
        path.unlink()
        logger.info(f"Flow '{self._resolve(name)}' deleted")
        return True

    def exists(self, name: Optional[str] = None) -> bool:
        path = self._path_for(name)
        return path is not None and path.is_file()

    # ── Listing ──

    def list_names(self) -> List[str]:
        """Names of every saved flow, recovered from the file keys."""
        return sorted(
            flow_name(p.name[len(_PREFIX):-len(_SUFFIX)])
            for p in self._dir.glob(f"{_PREFIX}*{_SUFFIX}")
        )

    def list_all(self) -> List[FlowSnapshot]:
        """Every readable flow, ordered by name. Broken files are skipped."""
        flows = (self.load(n) for n in self.list_names())
        return [f for f in flows if f is not None]

    # ── Internals ──

    def _resolve(self, name: Optional[str]) -> str:
        return self.default_name if name is None else name

    def _path_for(self, name: Optional[str]) -> Optional[Path]:
        resolved = self._resolve(name)
        if not resolved.strip():
            logger.warning(f"Rejecting blank flow name {resolved!r}")
            return None
        return self._dir / f"{_PREFIX}{flow_key(resolved)}{_SUFFIX}"

    def _read(self, path: Path) -> Optional[FlowSnapshot]:
        try:
            return FlowSnapshot.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as e:
            logger.warning(f"Unreadable flow file {path.name}: {e}")
            return None


_flow_store: Optional[FlowStore] = None


def get_flow_store() -> FlowStore:
    """Shared FlowStore over the configured storage directory."""
    global _flow_store
    if _flow_store is None:
        _flow_store = FlowStore()
    return _flow_store
