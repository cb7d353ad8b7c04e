from __future__ import annotations

from typing import Callable, List, Protocol, runtime_checkable

from dnssync.schemas.endpoints import Endpoint
from dnssync.schemas.nodes import NodeSnapshot

EventHandler = Callable[[], None]


@runtime_checkable
class Source(Protocol):
    """Anything that yields endpoints and relays change notifications.

    Wrappers take a ``Source`` and are themselves a ``Source``, so a pipeline
    is built by nesting constructors. ``endpoints`` is re-derived from the
    backing store on every call; ``add_event_handler`` must reach the
    innermost source untouched.
    """

    async def endpoints(self) -> List[Endpoint]:
        ...

    def add_event_handler(self, handler: EventHandler) -> None:
        ...


@runtime_checkable
class NodeClient(Protocol):
    async def list_nodes(self) -> List[NodeSnapshot]:
        ...

    def add_event_handler(self, handler: EventHandler) -> None:
        ...
