"""Exceptions raised by the flow builder."""


class FlowBuilderError(Exception):
    """Base class for flow builder errors."""


class MissingTopLevelNodeError(FlowBuilderError):
    """Export was requested but no agent is marked ``top_level_node``."""

    def __init__(self, message: str = "No top level node found in workflow") -> None:
        super().__init__(message)
