from __future__ import annotations

import ipaddress
from typing import List

from dnssync.logger import get_logger
from dnssync.metrics import record_suppressed_targets
from dnssync.schemas.endpoints import Endpoint
from dnssync.sources.base import EventHandler, Source

_logger = get_logger("sources.suppress_ipv6")


def _is_ipv4(target: str) -> bool:
    try:
        ipaddress.IPv4Address(target)
    except ValueError:
        return False
    return True


def ipv4_targets(targets: List[str]) -> List[str]:
    result: List[str] = []
    for target in targets:
        if _is_ipv4(target):
            result.append(target)
        else:
            _logger.debug("target.suppress", "Suppressed target, not an IPv4 address", target=target)
    return result


class SuppressIPv6Source:
    """Restricts a wrapped source to IPv4 targets.

    Endpoints left without targets are dropped. Errors from the wrapped
    source propagate as raised.
    """

    def __init__(self, source: Source) -> None:
        self._source = source

    async def endpoints(self) -> List[Endpoint]:
        endpoints = await self._source.endpoints()
        results: List[Endpoint] = []
        for endpoint in endpoints:
            targets = ipv4_targets(endpoint.targets)
            record_suppressed_targets(len(endpoint.targets) - len(targets))
            if not targets:
                _logger.debug(
                    "endpoint.suppress",
                    "Suppressed endpoint, no IPv4 targets",
                    dns_name=endpoint.dns_name,
                )
                continue
            results.append(endpoint.model_copy(update={"targets": targets}, deep=True))
        return results

    def add_event_handler(self, handler: EventHandler) -> None:
        self._source.add_event_handler(handler)
