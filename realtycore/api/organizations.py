"""
Organization endpoints - provisioning, membership (seat-capped) and usage.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from realtycore.database import get_db
from realtycore.api.helpers import organization_response, parse_uuid
from realtycore.schemas.api_responses import (
    MemberRequest,
    OrganizationCreateRequest,
    OrganizationResponse,
    ReservationResponse,
    UsageResponse,
)
from realtycore.services import storage
from realtycore.services.entitlements import usage_summary
from realtycore.services.organizations import create_organization
from realtycore.services.usage_guard import get_seat_usage, release_seat, try_reserve_seat

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/organizations", tags=["organizations"])


@router.post("", response_model=OrganizationResponse, status_code=201)
async def create_org(
    payload: OrganizationCreateRequest,
    db: AsyncSession = Depends(get_db),
):
    organization = await create_organization(
        db, parse_uuid(payload.owner_id, "owner"), payload.name
    )
    return organization_response(organization)


@router.get("/{organization_id}", response_model=OrganizationResponse)
async def get_org(
    organization_id: str,
    db: AsyncSession = Depends(get_db),
):
    organization = await storage.get_organization(db, parse_uuid(organization_id, "organization"))
    if not organization:
        raise HTTPException(status_code=404, detail="Organization not found")
    return organization_response(organization)


@router.post("/{organization_id}/members", response_model=ReservationResponse)
async def add_member(
    organization_id: str,
    payload: MemberRequest,
    db: AsyncSession = Depends(get_db),
):
    """Add a member. 402 when every seat is taken."""
    result = await try_reserve_seat(
        db,
        parse_uuid(organization_id, "organization"),
        parse_uuid(payload.user_id, "user"),
    )
    result.raise_for_rejection()
    return ReservationResponse(
        status=result.status,
        counter_name=result.counter_name,
        scope=result.scope,
        limit=result.limit,
        current=result.current,
        resource_id=str(result.resource_id) if result.resource_id else None,
    )


@router.delete("/{organization_id}/members/{user_id}")
async def remove_member(
    organization_id: str,
    user_id: str,
    db: AsyncSession = Depends(get_db),
):
    seats_used = await release_seat(
        db,
        parse_uuid(organization_id, "organization"),
        parse_uuid(user_id, "user"),
    )
    return {"status": "removed", "seats_used": seats_used}


@router.get("/{organization_id}/usage")
async def get_org_usage(
    organization_id: str,
    db: AsyncSession = Depends(get_db),
):
    """Seat and listing usage for the organization dashboard."""
    org_id = parse_uuid(organization_id, "organization")
    seats = await get_seat_usage(db, org_id)
    organization = await storage.get_organization(db, org_id)
    listings = usage_summary(
        await storage.count_active_listings(db, organization_id=org_id),
        organization.listing_cap,
    )
    return {
        "seats": UsageResponse(scope="organization", **seats),
        "listings": UsageResponse(scope="organization", **listings),
    }
