from __future__ import annotations


class SourceError(RuntimeError):
    """Base class for failures raised while building or reading a source."""

    def __init__(self, action: str, detail: str) -> None:
        super().__init__(f"{action}: {detail}")
        self.action = action
        self.detail = detail


class ConfigurationError(SourceError):
    """Invalid source configuration."""


class AddressUnavailableError(SourceError):
    """A node selected for publishing has no ExternalIP or InternalIP address."""

    def __init__(self, node_name: str) -> None:
        super().__init__(
            "node.addresses",
            f"node {node_name!r} has neither an ExternalIP nor an InternalIP address",
        )
        self.node_name = node_name


class UpstreamError(SourceError):
    """The node cache could not serve a consistent node listing."""
