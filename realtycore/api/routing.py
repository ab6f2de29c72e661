"""
Lead routing configuration endpoints - organization policy and per-agent settings.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from realtycore.database import get_db
from realtycore.api.helpers import parse_uuid
from realtycore.schemas.routing import AgentRoutingUpdate, RoutingConfigUpdate, RoutingSettings
from realtycore.services.lead_router import update_agent_routing
from realtycore.services.routing_config import (
    get_effective_routing_config,
    upsert_routing_config,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/organizations", tags=["routing"])


@router.get("/{organization_id}/routing-config", response_model=RoutingSettings)
async def get_routing_config(
    organization_id: str,
    db: AsyncSession = Depends(get_db),
):
    """Effective routing config; organizations without one report the defaults."""
    return await get_effective_routing_config(db, parse_uuid(organization_id, "organization"))


@router.put("/{organization_id}/routing-config", response_model=RoutingSettings)
async def put_routing_config(
    organization_id: str,
    payload: RoutingConfigUpdate,
    actor_id: Optional[str] = Query(default=None),
    db: AsyncSession = Depends(get_db),
):
    """Replace the routing config. Applies to leads routed after this call."""
    return await upsert_routing_config(
        db, parse_uuid(organization_id, "organization"), payload, actor=actor_id,
    )


@router.put("/{organization_id}/agents/{agent_id}/routing")
async def put_agent_routing(
    organization_id: str,
    agent_id: str,
    payload: AgentRoutingUpdate,
    actor_id: Optional[str] = Query(default=None),
    db: AsyncSession = Depends(get_db),
):
    return await update_agent_routing(
        db,
        parse_uuid(organization_id, "organization"),
        parse_uuid(agent_id, "agent"),
        payload,
        actor=actor_id,
    )
