"""
Entitlement endpoints - resolved feature flags and usage for a user.
"""
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from realtycore.database import get_db
from realtycore.api.helpers import parse_uuid
from realtycore.schemas.api_responses import EntitlementsResponse, UsageResponse
from realtycore.services import storage
from realtycore.services.subscription_status import effective_role, is_subscription_valid
from realtycore.services.tier_catalog import resolve
from realtycore.services.usage_guard import get_listing_usage

logger = logging.getLogger(__name__)
router = APIRouter(tags=["entitlements"])


@router.get("/api/v1/users/{user_id}/entitlements", response_model=EntitlementsResponse)
async def get_entitlements(
    user_id: str,
    db: AsyncSession = Depends(get_db),
):
    """Personal flags from the user's effective role, organization flags from the org tier."""
    user = await storage.get_user(db, parse_uuid(user_id, "user"))
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    now = datetime.now(timezone.utc)
    role = effective_role(user, now)
    organization = None
    if user.organization_id:
        organization = await storage.get_organization(db, user.organization_id)

    entitlements = resolve(role, organization.tier if organization else None)
    return EntitlementsResponse(
        user_id=str(user.id),
        role=user.role,
        effective_role=role,
        subscription_valid=is_subscription_valid(
            user.status, user.trial_end, user.current_period_end, now
        ),
        personal=entitlements.personal.model_dump(),
        organization_id=str(organization.id) if organization else None,
        organization_tier=entitlements.organization_tier,
        organization=(
            entitlements.organization.model_dump() if entitlements.organization else None
        ),
    )


@router.get("/api/v1/users/{user_id}/listing-usage", response_model=UsageResponse)
async def get_user_listing_usage(
    user_id: str,
    db: AsyncSession = Depends(get_db),
):
    """Active listings against the cap the user draws on."""
    return UsageResponse(**await get_listing_usage(db, parse_uuid(user_id, "user")))
