"""
Organization provisioning.

The owner's role decides the organization tier. Seat and listing caps are
copied from the tier's organization flags onto the organization row, where
they can later be adjusted per contract without changing the tier catalog.
"""
import logging
import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from realtycore.models.organization import Organization
from realtycore.services import storage
from realtycore.services.entitlements import is_uncapped
from realtycore.services.subscription_status import effective_role
from realtycore.services.tier_catalog import get_feature_flags
from realtycore.utils.errors import FeatureNotAvailable, MembershipConflict, NotFoundError
from realtycore.utils.transactions import run_in_transaction

logger = logging.getLogger(__name__)


async def create_organization(
    db: AsyncSession,
    owner_id: uuid.UUID,
    name: str,
) -> Organization:
    """Create an organization owned by owner_id; the owner takes the first seat."""

    async def _create(session: AsyncSession) -> Organization:
        if not await storage.lock_user(session, owner_id):
            raise NotFoundError("user", owner_id)
        owner = await storage.get_user(session, owner_id)
        if owner.organization_id is not None:
            raise MembershipConflict("User already belongs to an organization")

        tier = effective_role(owner)
        flags = get_feature_flags(tier)
        if not flags.org_team_management:
            raise FeatureNotAvailable("org_team_management", tier)

        organization = Organization(
            name=name,
            tier=tier,
            owner_id=owner.id,
            seat_limit=None if is_uncapped(flags.org_seats) else flags.org_seats,
            listing_cap=(
                None if is_uncapped(flags.org_max_active_listings)
                else flags.org_max_active_listings
            ),
            seats_used=0,
        )
        session.add(organization)
        await session.flush()

        await storage.insert_member(session, organization, owner, 0)
        return organization

    organization = await run_in_transaction(db, _create, label="create_organization")
    logger.info(
        "Organization created: tier=%s seats=%s listings=%s",
        organization.tier, organization.seat_limit, organization.listing_cap,
        extra={"organization_id": organization.id, "user_id": owner_id},
    )
    return organization
