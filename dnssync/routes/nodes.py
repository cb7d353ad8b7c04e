from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from dnssync.dependencies import get_db_session, get_node_cache
from dnssync.schemas.nodes import NodeCreate, NodeOut, NodeUpdate
from dnssync.services import nodes as node_service
from dnssync.services.node_cache import NodeCache

router = APIRouter(prefix="/nodes", tags=["nodes"])


@router.get("", response_model=List[NodeOut])
async def list_nodes(
    limit: int = 100,
    name: Optional[str] = None,
    session: AsyncSession = Depends(get_db_session),
) -> List[NodeOut]:
    if name is not None:
        node = await node_service.get_node_by_name(session, name)
        return [NodeOut.model_validate(node)] if node is not None else []
    nodes = await node_service.list_nodes(session, limit=limit)
    return [NodeOut.model_validate(node) for node in nodes]


@router.get("/{node_id}", response_model=NodeOut)
async def get_node(
    node_id: str,
    session: AsyncSession = Depends(get_db_session),
) -> NodeOut:
    node = await node_service.get_node(session, node_id)
    if node is None:
        raise HTTPException(status_code=404, detail="Node not found")
    return NodeOut.model_validate(node)


@router.post("", response_model=NodeOut, status_code=status.HTTP_201_CREATED)
async def create_node(
    payload: NodeCreate,
    session: AsyncSession = Depends(get_db_session),
    cache: NodeCache = Depends(get_node_cache),
) -> NodeOut:
    if await node_service.get_node(session, payload.id):
        raise HTTPException(status_code=409, detail="Node id already exists")
    if await node_service.get_node_by_name(session, payload.name):
        raise HTTPException(status_code=409, detail="Node name already exists")
    node = await node_service.create_node(session, payload)
    await cache.upsert(node_service.to_snapshot(node))
    return NodeOut.model_validate(node)


@router.patch("/{node_id}", response_model=NodeOut)
async def update_node(
    node_id: str,
    payload: NodeUpdate,
    session: AsyncSession = Depends(get_db_session),
    cache: NodeCache = Depends(get_node_cache),
) -> NodeOut:
    node = await node_service.get_node(session, node_id)
    if node is None:
        raise HTTPException(status_code=404, detail="Node not found")
    previous_name = node.name
    if payload.name is not None and payload.name != previous_name:
        if await node_service.get_node_by_name(session, payload.name):
            raise HTTPException(status_code=409, detail="Node name already exists")
    updated = await node_service.update_node(session, node, payload)
    if updated.name != previous_name:
        await cache.delete(previous_name)
    await cache.upsert(node_service.to_snapshot(updated))
    return NodeOut.model_validate(updated)


@router.delete("/{node_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_node(
    node_id: str,
    session: AsyncSession = Depends(get_db_session),
    cache: NodeCache = Depends(get_node_cache),
) -> Response:
    node = await node_service.get_node(session, node_id)
    if node is None:
        raise HTTPException(status_code=404, detail="Node not found")
    name = node.name
    await node_service.delete_node(session, node)
    await cache.delete(name)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
