"""
Storage operations used by the usage cap guard and the lead router.

These helpers never commit. Callers wrap them in run_in_transaction so the
lock, the reads and the writes of one decision share a single transaction.
Row locks are taken by bumping lock_version on the subject row: a plain
UPDATE takes the row lock on PostgreSQL and the database write lock on
SQLite, so concurrent check-then-act sequences on the same subject serialize.
When a decision needs both, the organization is locked before the user.
"""
import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select, func, update, and_
from sqlalchemy.ext.asyncio import AsyncSession

from realtycore.models.assignment_tracking import LeadAssignmentTracking
from realtycore.models.lead import Lead, OPEN_LEAD_STATUSES
from realtycore.models.listing import Listing
from realtycore.models.organization import Organization
from realtycore.models.routing_config import LeadRoutingConfig
from realtycore.models.user import User
from realtycore.schemas.routing import AgentCandidate
from realtycore.services.tier_catalog import role_at_least

logger = logging.getLogger(__name__)

# Minimum role that can receive routed leads
MIN_ROUTABLE_ROLE = "agent"


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; everything is stored in UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# ---------------------------------------------------------------------------
# Row locks
# ---------------------------------------------------------------------------

async def lock_user(db: AsyncSession, user_id: uuid.UUID) -> bool:
    """Take the row lock on a user. Returns False if the user does not exist."""
    result = await db.execute(
        update(User)
        .where(User.id == user_id)
        .values(lock_version=User.lock_version + 1)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def lock_organization(db: AsyncSession, organization_id: uuid.UUID) -> bool:
    """Take the row lock on an organization. Returns False if it does not exist."""
    result = await db.execute(
        update(Organization)
        .where(Organization.id == organization_id)
        .values(lock_version=Organization.lock_version + 1)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

async def get_user(db: AsyncSession, user_id: uuid.UUID) -> Optional[User]:
    return await db.get(User, user_id, populate_existing=True)


async def get_organization(db: AsyncSession, organization_id: uuid.UUID) -> Optional[Organization]:
    return await db.get(Organization, organization_id, populate_existing=True)


async def get_user_organization_id(db: AsyncSession, user_id: uuid.UUID) -> Optional[uuid.UUID]:
    """Unlocked read of a user's current organization, used to pick the lock to take first."""
    result = await db.execute(select(User.organization_id).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_listing(db: AsyncSession, listing_id: uuid.UUID) -> Optional[Listing]:
    return await db.get(Listing, listing_id, populate_existing=True)


async def get_lead(db: AsyncSession, lead_id: uuid.UUID) -> Optional[Lead]:
    return await db.get(Lead, lead_id, populate_existing=True)


async def count_active_listings(
    db: AsyncSession,
    agent_id: Optional[uuid.UUID] = None,
    organization_id: Optional[uuid.UUID] = None,
) -> int:
    """
    Count active listings of one agent, or of everyone currently seated in one
    organization. Membership is read from users, not from the listing's
    organization_id stamp, so listings follow their agent in and out.
    """
    if (agent_id is None) == (organization_id is None):
        raise ValueError("Pass exactly one of agent_id or organization_id")

    query = select(func.count(Listing.id)).where(Listing.status == "active")
    if agent_id is not None:
        query = query.where(Listing.agent_id == agent_id)
    else:
        query = query.select_from(Listing).join(User, User.id == Listing.agent_id).where(
            User.organization_id == organization_id
        )
    result = await db.execute(query)
    return result.scalar() or 0


async def count_organization_members(db: AsyncSession, organization_id: uuid.UUID) -> int:
    result = await db.execute(
        select(func.count(User.id)).where(User.organization_id == organization_id)
    )
    return result.scalar() or 0


async def get_routing_config(
    db: AsyncSession, organization_id: uuid.UUID
) -> Optional[LeadRoutingConfig]:
    result = await db.execute(
        select(LeadRoutingConfig)
        .where(LeadRoutingConfig.organization_id == organization_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_assignment_tracking(
    db: AsyncSession, organization_id: uuid.UUID, agent_id: uuid.UUID
) -> Optional[LeadAssignmentTracking]:
    result = await db.execute(
        select(LeadAssignmentTracking)
        .where(
            and_(
                LeadAssignmentTracking.organization_id == organization_id,
                LeadAssignmentTracking.agent_id == agent_id,
            )
        )
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def list_eligible_agents(
    db: AsyncSession,
    organization_id: uuid.UUID,
    day_start: datetime,
) -> list[AgentCandidate]:
    """
    Every routable member of the organization with its ledger state.
    Availability and daily caps are reported, not applied; the routing
    policies do the filtering.
    """
    members = (await db.execute(
        select(User).where(User.organization_id == organization_id).order_by(User.id)
    )).scalars().all()
    agents = [m for m in members if role_at_least(m.role, MIN_ROUTABLE_ROLE)]
    if not agents:
        return []
    agent_ids = [a.id for a in agents]

    tracking_rows = (await db.execute(
        select(LeadAssignmentTracking).where(
            and_(
                LeadAssignmentTracking.organization_id == organization_id,
                LeadAssignmentTracking.agent_id.in_(agent_ids),
            )
        ).execution_options(populate_existing=True)
    )).scalars().all()
    tracking_by_agent = {t.agent_id: t for t in tracking_rows}

    todays = dict((await db.execute(
        select(Lead.assigned_to, func.count(Lead.id))
        .where(
            and_(
                Lead.organization_id == organization_id,
                Lead.assigned_to.in_(agent_ids),
                Lead.assigned_at >= day_start,
            )
        )
        .group_by(Lead.assigned_to)
    )).all())

    open_counts = dict((await db.execute(
        select(Lead.assigned_to, func.count(Lead.id))
        .where(
            and_(
                Lead.organization_id == organization_id,
                Lead.assigned_to.in_(agent_ids),
                Lead.status.in_(OPEN_LEAD_STATUSES),
            )
        )
        .group_by(Lead.assigned_to)
    )).all())

    candidates = []
    for agent in agents:
        tracking = tracking_by_agent.get(agent.id)
        candidates.append(AgentCandidate(
            agent_id=agent.id,
            is_available=tracking.is_available if tracking else True,
            max_leads_per_day=tracking.max_leads_per_day if tracking else None,
            todays_assigned_count=todays.get(agent.id, 0),
            last_assigned_at=as_utc(tracking.last_assigned_at) if tracking else None,
            total_assigned=tracking.total_assigned if tracking else 0,
            open_leads=open_counts.get(agent.id, 0),
            weight=tracking.weight if tracking else 1,
        ))
    return candidates


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------

async def insert_listing(
    db: AsyncSession,
    agent_id: uuid.UUID,
    organization_id: Optional[uuid.UUID],
    **fields,
) -> Listing:
    """Insert an active listing. Only called after a successful reservation."""
    listing = Listing(
        agent_id=agent_id,
        organization_id=organization_id,
        status="active",
        **fields,
    )
    db.add(listing)
    await db.flush()
    return listing


async def get_or_create_tracking(
    db: AsyncSession, organization_id: uuid.UUID, agent_id: uuid.UUID
) -> LeadAssignmentTracking:
    tracking = await get_assignment_tracking(db, organization_id, agent_id)
    if tracking is None:
        tracking = LeadAssignmentTracking(
            organization_id=organization_id,
            agent_id=agent_id,
            total_assigned=0,
            is_available=True,
            weight=1,
        )
        db.add(tracking)
        await db.flush()
    return tracking


async def insert_member(
    db: AsyncSession,
    organization: Organization,
    user: User,
    current_members: int,
) -> None:
    """Attach a user to an organization and take one seat."""
    user.organization_id = organization.id
    organization.seats_used = current_members + 1
    await db.flush()
    if role_at_least(user.role, MIN_ROUTABLE_ROLE):
        tracking = await get_or_create_tracking(db, organization.id, user.id)
        tracking.is_available = True


async def remove_member(
    db: AsyncSession,
    organization: Organization,
    user: User,
    current_members: int,
) -> None:
    """Detach a user and free the seat. Their ledger row is kept but parked."""
    user.organization_id = None
    organization.seats_used = max(0, current_members - 1)
    tracking = await get_assignment_tracking(db, organization.id, user.id)
    if tracking is not None:
        tracking.is_available = False
    await db.flush()


async def update_assignment_and_lead(
    db: AsyncSession,
    lead: Lead,
    agent_id: uuid.UUID,
    assigned_by: str,
    now: datetime,
) -> Optional[LeadAssignmentTracking]:
    """
    Write the lead's assignee and the agent's ledger row together.
    Leads outside an organization have no ledger; only the lead is written.
    """
    lead.assigned_to = agent_id
    lead.assigned_at = now
    lead.assigned_by = assigned_by

    tracking = None
    if lead.organization_id is not None:
        tracking = await get_or_create_tracking(db, lead.organization_id, agent_id)
        tracking.last_assigned_at = now
        tracking.total_assigned = (tracking.total_assigned or 0) + 1

    await db.flush()
    return tracking
