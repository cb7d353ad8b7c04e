from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from dnssync.schemas.endpoints import Endpoint, RecordTTL, RecordType
from dnssync.schemas.nodes import NodeAddress, NodeAddressType, NodeSnapshot
from dnssync.services.node_cache import NodeCache

EXTERNAL = NodeAddressType.EXTERNAL_IP
INTERNAL = NodeAddressType.INTERNAL_IP


def make_node(
    name: str,
    addresses: Sequence[Tuple[NodeAddressType, str]] = ((EXTERNAL, "1.2.3.4"),),
    labels: Optional[Dict[str, str]] = None,
    annotations: Optional[Dict[str, str]] = None,
) -> NodeSnapshot:
    return NodeSnapshot(
        name=name,
        labels=labels,
        annotations=annotations,
        addresses=[NodeAddress(type=kind, address=address) for kind, address in addresses],
    )


def make_endpoint(dns_name: str, *targets: str, ttl: Optional[int] = None) -> Endpoint:
    return Endpoint(
        dns_name=dns_name,
        record_type=RecordType.A,
        targets=list(targets),
        record_ttl=RecordTTL.of(ttl) if ttl is not None else RecordTTL(),
    )


async def synced_cache(nodes: Iterable[NodeSnapshot]) -> NodeCache:
    cache = NodeCache()
    await cache.replace(nodes)
    return cache


def assert_endpoints(actual: List[Endpoint], expected: List[Endpoint]) -> None:
    assert len(actual) == len(expected), f"got {[str(item) for item in actual]}"
    by_name = {item.dns_name: item for item in actual}
    for item in expected:
        assert item.dns_name in by_name, f"missing endpoint {item}"
        got = by_name[item.dns_name]
        assert got.model_dump(exclude={"labels"}) == item.model_dump(exclude={"labels"}), f"{got} != {item}"


class RecordingSource:
    """Fake source returning canned endpoints or raising a canned error."""

    def __init__(self, endpoints: Optional[List[Endpoint]] = None, error: Optional[Exception] = None) -> None:
        self._endpoints = endpoints or []
        self._error = error
        self.handlers: list = []
        self.calls = 0

    async def endpoints(self) -> List[Endpoint]:
        self.calls += 1
        if self._error is not None:
            raise self._error
        return self._endpoints

    def add_event_handler(self, handler) -> None:
        self.handlers.append(handler)
