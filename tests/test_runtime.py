from __future__ import annotations

import asyncio

import pytest
from prometheus_client import REGISTRY

from dnssync.config import Settings
from dnssync.dependencies import get_engine, get_sessionmaker
from dnssync.models import Base
from dnssync.runtime import RuntimeController
from dnssync.schemas.nodes import NodeAddress, NodeAddressType, NodeCreate
from dnssync.services import nodes as node_service


def _loop_count(result: str) -> float:
    return REGISTRY.get_sample_value(
        "dnssync_runtime_loops_total", {"loop": "node_resync", "result": result}
    ) or 0.0


async def _wait_for(predicate, timeout: float = 2.0) -> None:
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not reached")
        await asyncio.sleep(0.01)


@pytest.mark.asyncio
async def test_loop_syncs_cache_from_inventory(tmp_path, node_cache):
    settings = Settings(database_url=f"sqlite+aiosqlite:///{tmp_path / 'runtime.db'}")
    engine = get_engine(settings.database_url, settings.log_db_queries, settings.log_sql_max_length)
    async with engine.begin() as connection:
        await connection.run_sync(Base.metadata.create_all)
    sessionmaker = get_sessionmaker(settings)
    async with sessionmaker() as session:
        await node_service.create_node(
            session,
            NodeCreate(
                id="n1",
                name="node1",
                addresses=[NodeAddress(type=NodeAddressType.EXTERNAL_IP, address="1.2.3.4")],
            ),
        )

    runtime = RuntimeController(settings, node_cache, sessionmaker)
    await runtime.start()
    try:
        await _wait_for(lambda: node_cache.synced)
    finally:
        await runtime.stop()
        await engine.dispose()

    assert [node.name for node in await node_cache.list_nodes()] == ["node1"]


@pytest.mark.asyncio
async def test_loop_survives_inventory_errors(tmp_path, node_cache):
    settings = Settings(database_url=f"sqlite+aiosqlite:///{tmp_path / 'missing-tables.db'}")
    engine = get_engine(settings.database_url, settings.log_db_queries, settings.log_sql_max_length)
    runtime = RuntimeController(settings, node_cache, get_sessionmaker(settings))
    errors_before = _loop_count("error")

    await runtime.start()
    try:
        await _wait_for(lambda: _loop_count("error") > errors_before)
    finally:
        await runtime.stop()
        await engine.dispose()

    assert not node_cache.synced


@pytest.mark.asyncio
async def test_stop_without_start_is_noop(tmp_path, node_cache):
    settings = Settings(database_url=f"sqlite+aiosqlite:///{tmp_path / 'idle.db'}")

    await RuntimeController(settings, node_cache, get_sessionmaker(settings)).stop()
