"""
Listing endpoints - creation and status changes, both gated by the usage cap guard.
"""
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from realtycore.database import get_db
from realtycore.api.helpers import parse_uuid
from realtycore.schemas.api_responses import (
    ListingCreateRequest,
    ListingStatusRequest,
    ReservationResponse,
)
from realtycore.schemas.reservations import ReservationResult
from realtycore.services.usage_guard import change_listing_status, try_reserve_listing

logger = logging.getLogger(__name__)
router = APIRouter(tags=["listings"])


def _reservation_response(result: ReservationResult) -> ReservationResponse:
    return ReservationResponse(
        status=result.status,
        counter_name=result.counter_name,
        scope=result.scope,
        limit=result.limit,
        current=result.current,
        resource_id=str(result.resource_id) if result.resource_id else None,
    )


@router.post("/api/v1/listings", response_model=ReservationResponse, status_code=201)
async def create_listing(
    payload: ListingCreateRequest,
    db: AsyncSession = Depends(get_db),
):
    """Create an active listing. 402 with the cap details when the cap is reached."""
    agent_id = parse_uuid(payload.agent_id, "agent")
    fields = payload.model_dump(exclude={"agent_id"})
    result = await try_reserve_listing(db, agent_id, **fields)
    return _reservation_response(result.raise_for_rejection())


@router.patch("/api/v1/listings/{listing_id}/status", response_model=ReservationResponse)
async def update_listing_status(
    listing_id: str,
    payload: ListingStatusRequest,
    db: AsyncSession = Depends(get_db),
):
    """Archive, sell or re-activate a listing. Re-activation is checked against the cap."""
    result = await change_listing_status(db, parse_uuid(listing_id, "listing"), payload.status)
    return _reservation_response(result.raise_for_rejection())
