from __future__ import annotations

from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dnssync.logger import get_logger
from dnssync.models.node import Node
from dnssync.schemas.nodes import NodeAddress, NodeCreate, NodeSnapshot, NodeUpdate

_logger = get_logger("services.nodes")


def _dump_addresses(addresses: List[NodeAddress]) -> List[Dict[str, str]]:
    return [address.model_dump(mode="json") for address in addresses]


def to_snapshot(node: Node) -> NodeSnapshot:
    return NodeSnapshot.model_validate(node)


async def list_nodes(session: AsyncSession, limit: Optional[int] = 100) -> List[Node]:
    async with _logger.operation("node.list", "Listing nodes", limit=limit) as op:
        query = select(Node).order_by(Node.name.asc())
        if limit is not None:
            query = query.limit(limit)
        result = await session.execute(query)
        rows = list(result.scalars().all())
        op.step("db.select", "Fetched nodes", count=len(rows))
        return rows


async def get_node(session: AsyncSession, node_id: str) -> Optional[Node]:
    result = await session.execute(select(Node).where(Node.id == node_id))
    return result.scalar_one_or_none()


async def get_node_by_name(session: AsyncSession, name: str) -> Optional[Node]:
    result = await session.execute(select(Node).where(Node.name == name))
    return result.scalar_one_or_none()


async def create_node(session: AsyncSession, payload: NodeCreate) -> Node:
    async with _logger.operation(
        "node.create",
        "Creating node",
        node_id=payload.id,
        node_name=payload.name,
    ) as op:
        node = Node(
            id=payload.id,
            name=payload.name,
            labels=dict(payload.labels),
            annotations=dict(payload.annotations),
            addresses=_dump_addresses(payload.addresses),
        )
        session.add(node)
        op.step("db.insert", "Prepared node row", addresses=len(payload.addresses))
        await session.commit()
        await session.refresh(node)
        op.step("db.commit", "Committed node create transaction")
        return node


async def update_node(
    session: AsyncSession,
    node: Node,
    payload: NodeUpdate,
) -> Node:
    async with _logger.operation(
        "node.update",
        "Updating node",
        node_id=node.id,
    ) as op:
        changed = False
        if payload.name is not None:
            node.name = payload.name
            changed = True
            op.step("name.update", "Updated node name", node_name=node.name)
        if payload.labels is not None:
            node.labels = dict(payload.labels)
            changed = True
            op.step("labels.update", "Updated node labels", labels=len(node.labels))
        if payload.annotations is not None:
            node.annotations = dict(payload.annotations)
            changed = True
            op.step("annotations.update", "Updated node annotations", annotations=len(node.annotations))
        if payload.addresses is not None:
            node.addresses = _dump_addresses(payload.addresses)
            changed = True
            op.step("addresses.update", "Updated node addresses", addresses=len(node.addresses))

        if not changed:
            op.step("change.none", "No node fields changed")
            return node

        await session.commit()
        await session.refresh(node)
        op.step("db.commit", "Committed node update transaction")
        return node


async def delete_node(session: AsyncSession, node: Node) -> None:
    async with _logger.operation("node.delete", "Deleting node", node_id=node.id, node_name=node.name):
        await session.delete(node)
        await session.commit()
