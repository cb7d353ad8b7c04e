from __future__ import annotations

from dnssync.config import Settings
from dnssync.logger import get_logger
from dnssync.sources.base import NodeClient, Source
from dnssync.sources.node import NodeSource
from dnssync.sources.selectors import Selector
from dnssync.sources.suppress_ipv6 import SuppressIPv6Source

_logger = get_logger("sources.builder")


def build_node_pipeline(settings: Settings, client: NodeClient) -> Source:
    """Compose the node source with the decorators enabled in settings.

    Raises ConfigurationError for an invalid template or selector.
    """
    with _logger.operation(
        "pipeline.build",
        "Building node endpoint pipeline",
        fqdn_template=settings.fqdn_template,
        annotation_filter=settings.annotation_filter,
        label_filter=settings.label_filter,
    ) as op:
        source: Source = NodeSource(
            client,
            settings.annotation_filter,
            settings.fqdn_template,
            Selector.parse(settings.label_filter),
            controller_identity=settings.controller_identity,
        )
        op.step("source.node", "Configured node source", controller=settings.controller_identity)
        if settings.suppress_ipv6:
            source = SuppressIPv6Source(source)
            op.step("decorator.suppress_ipv6", "Wrapped source with IPv4-only filter")
        return source
