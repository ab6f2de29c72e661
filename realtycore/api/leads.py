"""
Lead endpoints - intake, routing, manual assignment, reassignment and status.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from realtycore.database import get_db
from realtycore.api.helpers import lead_response, parse_uuid
from realtycore.schemas.api_responses import (
    LeadAssignRequest,
    LeadIntakeResponse,
    LeadReassignRequest,
    LeadResponse,
    LeadStatusRequest,
    RoutingDecisionResponse,
)
from realtycore.schemas.lead_envelope import LeadInquiry
from realtycore.services import storage
from realtycore.services.lead_intake import handle_new_lead
from realtycore.services.lead_lifecycle import update_lead_status
from realtycore.services.lead_router import assign_lead, reassign_lead, route_lead

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/leads", tags=["leads"])


@router.post("", response_model=LeadIntakeResponse, status_code=201)
async def create_lead(
    inquiry: LeadInquiry,
    db: AsyncSession = Depends(get_db),
):
    """Accept an inquiry, score it and route it."""
    return LeadIntakeResponse(**await handle_new_lead(db, inquiry))


@router.get("/{lead_id}", response_model=LeadResponse)
async def get_lead(
    lead_id: str,
    db: AsyncSession = Depends(get_db),
):
    lead = await storage.get_lead(db, parse_uuid(lead_id, "lead"))
    if not lead:
        raise HTTPException(status_code=404, detail="Lead not found")
    return lead_response(lead)


@router.post("/{lead_id}/route", response_model=RoutingDecisionResponse)
async def route_unassigned_lead(
    lead_id: str,
    db: AsyncSession = Depends(get_db),
):
    """Retry routing for a lead that is still waiting for an agent."""
    decision = await route_lead(db, parse_uuid(lead_id, "lead"))
    return RoutingDecisionResponse(
        status=decision.status,
        agent_id=str(decision.agent_id) if decision.agent_id else None,
        policy=decision.policy,
        reason=decision.reason,
    )


@router.post("/{lead_id}/assign", response_model=LeadResponse)
async def assign(
    lead_id: str,
    payload: LeadAssignRequest,
    db: AsyncSession = Depends(get_db),
):
    lead = await assign_lead(
        db,
        parse_uuid(lead_id, "lead"),
        parse_uuid(payload.agent_id, "agent"),
        payload.assigned_by,
    )
    return lead_response(lead)


@router.post("/{lead_id}/reassign", response_model=LeadResponse)
async def reassign(
    lead_id: str,
    payload: LeadReassignRequest,
    db: AsyncSession = Depends(get_db),
):
    lead = await reassign_lead(
        db,
        parse_uuid(lead_id, "lead"),
        parse_uuid(payload.agent_id, "agent"),
        payload.actor_id,
        reason=payload.reason,
    )
    return lead_response(lead)


@router.put("/{lead_id}/status", response_model=LeadResponse)
async def set_status(
    lead_id: str,
    payload: LeadStatusRequest,
    db: AsyncSession = Depends(get_db),
):
    lead = await update_lead_status(
        db, parse_uuid(lead_id, "lead"), payload.status, actor=payload.actor_id,
    )
    return lead_response(lead)
