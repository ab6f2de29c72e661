"""
Usage cap guard - enforces listing and seat caps at the point of mutation.

Every reservation runs as one transaction:
  1. lock the subject rows (the organization before the agent for members)
  2. count current usage
  3. resolve the cap from the tier catalog / organization row
  4. insert the listing or seat, or reject with the cap that was hit

Two concurrent requests at cap - 1 therefore serialize on the row lock and
exactly one of them succeeds. A rejection is final for the request; storage
conflicts are retried by run_in_transaction.
"""
import logging
import uuid
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from realtycore.models.event_log import EventLog
from realtycore.models.listing import LISTING_STATUSES
from realtycore.schemas.reservations import ReservationResult
from realtycore.services import storage
from realtycore.services.entitlements import is_within_cap, usage_summary
from realtycore.services.subscription_status import effective_role
from realtycore.services.tier_catalog import get_feature_flags
from realtycore.utils.errors import (
    InvalidTransition,
    MembershipConflict,
    NotFoundError,
    StorageConflict,
)
from realtycore.utils.transactions import run_in_transaction

logger = logging.getLogger(__name__)

LISTINGS = "listings"
SEATS = "seats"


def _reject(
    db: AsyncSession,
    counter_name: str,
    scope: str,
    limit: Optional[int],
    current: int,
    reason: str,
    role: Optional[str],
    subject_id: uuid.UUID,
    organization_id: Optional[uuid.UUID] = None,
) -> ReservationResult:
    logger.info(
        "Reservation rejected: %s %s=%s/%s (%s)",
        scope, counter_name, current, limit, reason,
        extra={"counter_name": counter_name, "organization_id": organization_id},
    )
    db.add(EventLog(
        organization_id=organization_id,
        agent_id=subject_id if scope == "agent" else None,
        action="cap_rejected",
        status="rejected",
        message=f"{counter_name} reservation rejected: {reason}",
        data={"counter_name": counter_name, "limit": limit, "current": current, "scope": scope},
    ))
    return ReservationResult(
        status="rejected",
        counter_name=counter_name,
        scope=scope,
        limit=limit,
        current=current,
        reason=reason,
        role=role,
    )


# ---------------------------------------------------------------------------
# Listings
# ---------------------------------------------------------------------------

async def _lock_listing_subject(db: AsyncSession, user_id: uuid.UUID):
    """
    Lock the agent, and first their organization if they have one, then
    return the agent read under the locks. Seat changes lock the organization
    and then write the user, so taking the locks in the same order keeps the
    two from deadlocking. A membership change between the unlocked read and
    the locks raises StorageConflict and the transaction is retried.
    """
    organization_id = await storage.get_user_organization_id(db, user_id)
    if organization_id is not None:
        if not await storage.lock_organization(db, organization_id):
            raise NotFoundError("organization", organization_id)
    if not await storage.lock_user(db, user_id):
        raise NotFoundError("user", user_id)
    user = await storage.get_user(db, user_id)
    if user.organization_id != organization_id:
        raise StorageConflict(f"Membership of user {str(user_id)[:8]} changed while locking")
    return user


async def _check_listing_cap(db: AsyncSession, user) -> tuple[str, Optional[int], int]:
    """
    Return (scope, cap, current usage) for a user locked by
    _lock_listing_subject. Members of an organization draw on the
    organization's aggregate cap; everyone else on their personal role cap.
    """
    if user.organization_id is not None:
        organization = await storage.get_organization(db, user.organization_id)
        current = await storage.count_active_listings(db, organization_id=organization.id)
        return "organization", organization.listing_cap, current

    flags = get_feature_flags(effective_role(user))
    current = await storage.count_active_listings(db, agent_id=user.id)
    return "agent", flags.agent_max_active_listings, current


async def try_reserve_listing(
    db: AsyncSession,
    agent_id: uuid.UUID,
    **listing_fields,
) -> ReservationResult:
    """Create an active listing for an agent if their cap allows it."""

    async def _reserve(session: AsyncSession) -> ReservationResult:
        user = await _lock_listing_subject(session, agent_id)

        role = effective_role(user)
        if not get_feature_flags(role).can_create_listings:
            return _reject(
                session, LISTINGS, "agent", 0, 0, "feature_not_available", role, agent_id,
            )

        scope, cap, current = await _check_listing_cap(session, user)
        if not is_within_cap(cap, current):
            return _reject(
                session, LISTINGS, scope, cap, current, "cap_reached", role, agent_id,
                organization_id=user.organization_id,
            )

        listing = await storage.insert_listing(
            session, agent_id, user.organization_id, **listing_fields
        )
        logger.info(
            "Listing reserved (%s %d/%s)", scope, current + 1, cap,
            extra={"user_id": agent_id, "counter_name": LISTINGS},
        )
        return ReservationResult(
            status="reserved",
            counter_name=LISTINGS,
            scope=scope,
            limit=cap,
            current=current + 1,
            resource_id=listing.id,
            role=role,
        )

    return await run_in_transaction(db, _reserve, label="reserve_listing")


async def change_listing_status(
    db: AsyncSession,
    listing_id: uuid.UUID,
    new_status: str,
) -> ReservationResult:
    """
    Move a listing between active/pending/sold/archived.
    Leaving active frees capacity; coming back to active consumes it and is
    checked against the cap like a new listing.
    """
    if new_status not in LISTING_STATUSES:
        raise InvalidTransition(f"Unknown listing status: {new_status}")

    async def _change(session: AsyncSession) -> ReservationResult:
        listing = await storage.get_listing(session, listing_id)
        if listing is None:
            raise NotFoundError("listing", listing_id)

        if new_status != "active" or listing.status == "active":
            listing.status = new_status
            await session.flush()
            organization_id = await storage.get_user_organization_id(session, listing.agent_id)
            return ReservationResult(
                status="reserved", counter_name=LISTINGS,
                scope="organization" if organization_id else "agent",
                resource_id=listing.id,
            )

        user = await _lock_listing_subject(session, listing.agent_id)
        role = effective_role(user)
        if not get_feature_flags(role).can_create_listings:
            return _reject(
                session, LISTINGS, "agent", 0, 0, "feature_not_available", role, user.id,
            )
        scope, cap, current = await _check_listing_cap(session, user)
        if not is_within_cap(cap, current):
            return _reject(
                session, LISTINGS, scope, cap, current, "cap_reached", role, user.id,
                organization_id=user.organization_id,
            )
        listing.status = "active"
        await session.flush()
        return ReservationResult(
            status="reserved", counter_name=LISTINGS, scope=scope,
            limit=cap, current=current + 1, resource_id=listing.id, role=role,
        )

    return await run_in_transaction(db, _change, label="change_listing_status")


async def get_listing_usage(db: AsyncSession, user_id: uuid.UUID) -> dict:
    """Listing usage for the cap the user currently draws on."""
    user = await storage.get_user(db, user_id)
    if user is None:
        raise NotFoundError("user", user_id)

    if user.organization_id is not None:
        organization = await storage.get_organization(db, user.organization_id)
        current = await storage.count_active_listings(db, organization_id=organization.id)
        summary = usage_summary(current, organization.listing_cap)
        summary["scope"] = "organization"
    else:
        role = effective_role(user)
        flags = get_feature_flags(role)
        current = await storage.count_active_listings(db, agent_id=user.id)
        summary = usage_summary(current, flags.agent_max_active_listings)
        summary["can_add_more"] = summary["can_add_more"] and flags.can_create_listings
        summary["scope"] = "agent"
    summary["tier"] = user.role
    return summary


# ---------------------------------------------------------------------------
# Seats
# ---------------------------------------------------------------------------

async def try_reserve_seat(
    db: AsyncSession,
    organization_id: uuid.UUID,
    user_id: uuid.UUID,
) -> ReservationResult:
    """Add a user to an organization if a seat is free."""

    async def _reserve(session: AsyncSession) -> ReservationResult:
        if not await storage.lock_organization(session, organization_id):
            raise NotFoundError("organization", organization_id)
        organization = await storage.get_organization(session, organization_id)
        user = await storage.get_user(session, user_id)
        if user is None:
            raise NotFoundError("user", user_id)

        current = await storage.count_organization_members(session, organization_id)
        if user.organization_id == organization_id:
            return ReservationResult(
                status="reserved", counter_name=SEATS, scope="organization",
                limit=organization.seat_limit, current=current, resource_id=user.id,
            )
        if user.organization_id is not None:
            raise MembershipConflict(
                f"User {str(user_id)[:8]} already belongs to another organization"
            )

        if not is_within_cap(organization.seat_limit, current):
            return _reject(
                session, SEATS, "organization", organization.seat_limit, current,
                "cap_reached", organization.tier, user_id, organization_id=organization_id,
            )

        await storage.insert_member(session, organization, user, current)
        logger.info(
            "Seat reserved (%d/%s)", current + 1, organization.seat_limit,
            extra={"organization_id": organization_id, "user_id": user_id, "counter_name": SEATS},
        )
        return ReservationResult(
            status="reserved", counter_name=SEATS, scope="organization",
            limit=organization.seat_limit, current=current + 1, resource_id=user.id,
        )

    return await run_in_transaction(db, _reserve, label="reserve_seat")


async def release_seat(
    db: AsyncSession,
    organization_id: uuid.UUID,
    user_id: uuid.UUID,
) -> int:
    """Remove a member. Returns the seats still in use."""

    async def _release(session: AsyncSession) -> int:
        if not await storage.lock_organization(session, organization_id):
            raise NotFoundError("organization", organization_id)
        organization = await storage.get_organization(session, organization_id)
        user = await storage.get_user(session, user_id)
        if user is None:
            raise NotFoundError("user", user_id)
        if user.organization_id != organization_id:
            raise MembershipConflict(
                f"User {str(user_id)[:8]} is not a member of this organization"
            )
        if user.id == organization.owner_id:
            raise MembershipConflict("The organization owner cannot give up their seat")

        current = await storage.count_organization_members(session, organization_id)
        await storage.remove_member(session, organization, user, current)
        return organization.seats_used

    return await run_in_transaction(db, _release, label="release_seat")


async def get_seat_usage(db: AsyncSession, organization_id: uuid.UUID) -> dict:
    organization = await storage.get_organization(db, organization_id)
    if organization is None:
        raise NotFoundError("organization", organization_id)
    current = await storage.count_organization_members(db, organization_id)
    return usage_summary(current, organization.seat_limit)


# ---------------------------------------------------------------------------
# Generic entry point
# ---------------------------------------------------------------------------

async def try_reserve(
    db: AsyncSession,
    subject_id: uuid.UUID,
    counter_name: str,
    **payload,
) -> ReservationResult:
    """
    Reserve one unit of counter_name for a subject.

    listings: subject is the agent; payload holds the listing fields.
    seats: subject is the organization; payload must hold user_id.
    """
    if counter_name == LISTINGS:
        return await try_reserve_listing(db, subject_id, **payload)
    if counter_name == SEATS:
        return await try_reserve_seat(db, subject_id, payload["user_id"])
    raise ValueError(f"Unknown counter: {counter_name}")
