from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.cabinet.schemas.billing import NodeAccessResponse, NodeInfo, NodeListResponse
from app.database.models import User
from app.services.node_access_service import check_user_node_access, get_node, list_nodes

from ..dependencies import get_cabinet_db, get_current_cabinet_user


router = APIRouter(prefix='/nodes', tags=['Cabinet Nodes'])


@router.get('', response_model=NodeListResponse)
async def get_nodes(
    location: str | None = None,
    protocol: str | None = None,
    user: User = Depends(get_current_cabinet_user),
    db: AsyncSession = Depends(get_cabinet_db),
):
    nodes = await list_nodes(db, location=location, protocol=protocol)
    return NodeListResponse(items=[NodeInfo.model_validate(node) for node in nodes], total=len(nodes))


@router.get('/{node_id}', response_model=NodeInfo)
async def get_node_detail(
    node_id: int,
    user: User = Depends(get_current_cabinet_user),
    db: AsyncSession = Depends(get_cabinet_db),
):
    return NodeInfo.model_validate(await get_node(db, node_id))


@router.get('/{node_id}/access', response_model=NodeAccessResponse)
async def get_node_access(
    node_id: int,
    user: User = Depends(get_current_cabinet_user),
    db: AsyncSession = Depends(get_cabinet_db),
):
    await get_node(db, node_id)
    return NodeAccessResponse(node_id=node_id, has_access=await check_user_node_access(db, user.id, node_id))
