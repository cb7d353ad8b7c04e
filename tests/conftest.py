from __future__ import annotations

import pytest

from dnssync.services.node_cache import NodeCache


@pytest.fixture
def node_cache() -> NodeCache:
    return NodeCache()
