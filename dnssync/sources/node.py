from __future__ import annotations

from typing import List, Optional

from dnssync.config import DEFAULT_CONTROLLER_IDENTITY
from dnssync.errors import AddressUnavailableError, ConfigurationError
from dnssync.logger import get_logger
from dnssync.metrics import record_skipped_node, record_source_endpoints
from dnssync.schemas.endpoints import Endpoint, RecordType
from dnssync.schemas.nodes import NodeAddressType, NodeSnapshot
from dnssync.sources.annotations import owned_by, ttl_from_annotations
from dnssync.sources.base import EventHandler, NodeClient
from dnssync.sources.fqdn import TemplateTarget, parse_template
from dnssync.sources.selectors import Selector

_logger = get_logger("sources.node")


def select_targets(node: NodeSnapshot) -> List[str]:
    """External addresses win over internal ones; order follows the node's list."""
    for address_type in (NodeAddressType.EXTERNAL_IP, NodeAddressType.INTERNAL_IP):
        targets = [item.address for item in node.addresses if item.type == address_type]
        if targets:
            return targets
    raise AddressUnavailableError(node.name)


class NodeSource:
    """Publishes one A record per cluster node.

    Nodes are read from ``client`` on every call and filtered, in order, by
    the controller annotation, ``annotation_filter`` and ``label_selector``.
    """

    def __init__(
        self,
        client: NodeClient,
        annotation_filter: str = "",
        fqdn_template: str = "",
        label_selector: Optional[Selector] = None,
        *,
        controller_identity: str = DEFAULT_CONTROLLER_IDENTITY,
    ) -> None:
        self._client = client
        # An unparseable annotation filter is reported by endpoints(), not here.
        self._annotation_filter = Selector.everything()
        self._annotation_filter_error: Optional[ConfigurationError] = None
        try:
            self._annotation_filter = Selector.parse(annotation_filter)
        except ConfigurationError as exc:
            self._annotation_filter_error = exc
        self._template = parse_template(fqdn_template)
        self._label_selector = label_selector if label_selector is not None else Selector.everything()
        self._controller_identity = controller_identity

    def _included(self, node: NodeSnapshot) -> bool:
        if not owned_by(node.annotations, self._controller_identity):
            reason = "ownership"
        elif not self._annotation_filter.matches(node.annotations):
            reason = "annotation"
        elif not self._label_selector.matches(node.labels):
            reason = "label"
        else:
            return True
        record_skipped_node(reason=reason)
        _logger.debug("node.skip", "Skipping node", node=node.name, reason=reason)
        return False

    def _dns_name(self, node: NodeSnapshot) -> str:
        if self._template is None:
            return node.name
        return self._template.render(TemplateTarget(Name=node.name))

    async def endpoints(self) -> List[Endpoint]:
        error = self._annotation_filter_error
        if error is not None:
            raise ConfigurationError(error.action, error.detail)
        nodes = await self._client.list_nodes()
        endpoints: List[Endpoint] = []
        for node in nodes:
            if not self._included(node):
                continue
            endpoint = Endpoint(
                dns_name=self._dns_name(node),
                record_type=RecordType.A,
                targets=select_targets(node),
                record_ttl=ttl_from_annotations(node.annotations, resource=f"node/{node.name}"),
                labels=dict(node.labels),
            )
            _logger.debug(
                "node.endpoint",
                "Built endpoint for node",
                node=node.name,
                endpoint=str(endpoint),
            )
            endpoints.append(endpoint)

        record_source_endpoints(source="node", count=len(endpoints))
        return endpoints

    def add_event_handler(self, handler: EventHandler) -> None:
        _logger.debug("handler.register", "Registering node change handler")
        self._client.add_event_handler(handler)
