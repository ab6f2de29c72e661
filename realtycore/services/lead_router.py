"""
Lead router - assigns leads to organization agents.

Routing runs in one transaction under the organization row lock:
  1. lock the organization (serializes every assignment in the org)
  2. read the effective routing config and the agent ledger snapshot
  3. decide with the pure routing policies
  4. write lead.assigned_to and the agent's ledger row together
The agent is notified after the commit; a failed notification never undoes
the assignment.

Manual assignment and reassignment take the same lock and update the same
ledger, so a manual assignment is visible to the next routed lead.
"""
import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from realtycore.models.event_log import EventLog
from realtycore.models.lead import Lead
from realtycore.schemas.routing import AgentRoutingUpdate, RoutingDecision
from realtycore.services import storage
from realtycore.services.notifications import (
    notify_agent_of_lead,
    notify_agent_of_reassignment,
)
from realtycore.services.routing_config import get_effective_routing_config
from realtycore.services.routing_policies import route
from realtycore.utils.errors import (
    InvalidTransition,
    LeadAlreadyAssigned,
    MembershipConflict,
    NotFoundError,
)
from realtycore.utils.transactions import run_in_transaction

logger = logging.getLogger(__name__)

# assigned_by marker for leads handed to the listing owner
OWNER = "owner"


def start_of_day(now: datetime) -> datetime:
    """UTC midnight of now's day; daily caps count assignments since then."""
    now = now.astimezone(timezone.utc)
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


async def _load_lead(db: AsyncSession, lead_id: uuid.UUID) -> Lead:
    lead = await storage.get_lead(db, lead_id)
    if lead is None:
        raise NotFoundError("lead", lead_id)
    return lead


async def _lock_lead_scope(db: AsyncSession, lead_id: uuid.UUID) -> Lead:
    """
    Lock the lead's organization (if any) and return a fresh copy of the lead
    read after the lock, so assigned_to reflects every committed assignment.
    """
    lead = await _load_lead(db, lead_id)
    if lead.organization_id is not None:
        if not await storage.lock_organization(db, lead.organization_id):
            raise NotFoundError("organization", lead.organization_id)
    else:
        await storage.lock_user(db, lead.agent_id)
    return await _load_lead(db, lead_id)


def _audit(
    db: AsyncSession,
    lead: Lead,
    action: str,
    agent_id: Optional[uuid.UUID],
    actor: Optional[str],
    status: str = "success",
    message: Optional[str] = None,
    data: Optional[dict] = None,
) -> None:
    db.add(EventLog(
        organization_id=lead.organization_id,
        lead_id=lead.id,
        agent_id=agent_id,
        actor=actor,
        action=action,
        status=status,
        message=message,
        data=data,
    ))


async def route_lead(
    db: AsyncSession,
    lead_id: uuid.UUID,
    now: Optional[datetime] = None,
) -> RoutingDecision:
    """
    Route an unassigned lead.

    Leads without an organization, and leads of organizations whose routing
    is switched off, go to the listing owner. When no agent is eligible the
    lead stays unassigned for manual assignment.
    """
    now = now or datetime.now(timezone.utc)

    async def _route(session: AsyncSession) -> RoutingDecision:
        lead = await _lock_lead_scope(session, lead_id)
        if lead.assigned_to is not None:
            raise LeadAlreadyAssigned(
                f"Lead {str(lead_id)[:8]} is already assigned to {str(lead.assigned_to)[:8]}"
            )

        if lead.organization_id is None:
            await storage.update_assignment_and_lead(session, lead, lead.agent_id, OWNER, now)
            _audit(session, lead, "lead_assigned", lead.agent_id, "system", data={"policy": OWNER})
            return RoutingDecision(
                status="assigned", agent_id=lead.agent_id, policy=OWNER, reason="no_organization",
            )

        settings = await get_effective_routing_config(session, lead.organization_id)
        if not settings.is_active:
            await storage.update_assignment_and_lead(session, lead, lead.agent_id, OWNER, now)
            _audit(session, lead, "lead_assigned", lead.agent_id, "system", data={"policy": OWNER})
            return RoutingDecision(
                status="assigned", agent_id=lead.agent_id, policy=OWNER, reason="routing_inactive",
            )

        candidates = await storage.list_eligible_agents(
            session, lead.organization_id, start_of_day(now)
        )
        decision = route(lead, settings, candidates, now)

        if not decision.is_assigned:
            _audit(
                session, lead, "lead_needs_manual_assignment", None, "system", status="skipped",
                message="No eligible agent", data={"policy": decision.policy, "reason": decision.reason},
            )
            return decision

        await storage.update_assignment_and_lead(
            session, lead, decision.agent_id, decision.policy, now
        )
        _audit(
            session, lead, "lead_assigned", decision.agent_id, "system",
            data={"policy": decision.policy},
        )
        return decision

    decision = await run_in_transaction(db, _route, label="route_lead")

    if decision.is_assigned:
        logger.info(
            "Lead routed to %s via %s", str(decision.agent_id)[:8], decision.policy,
            extra={"lead_id": lead_id, "agent_id": decision.agent_id},
        )
        await notify_agent_of_lead(decision.agent_id, lead_id, decision.policy)
    else:
        logger.warning(
            "No eligible agent (%s), lead needs manual assignment", decision.reason,
            extra={"lead_id": lead_id, "error_code": "lead_needs_manual_assignment"},
        )
    return decision


async def _require_assignable_agent(
    db: AsyncSession, lead: Lead, agent_id: uuid.UUID
) -> None:
    agent = await storage.get_user(db, agent_id)
    if agent is None:
        raise NotFoundError("user", agent_id)
    if lead.organization_id is not None and agent.organization_id != lead.organization_id:
        raise MembershipConflict(
            f"Agent {str(agent_id)[:8]} is not a member of the lead's organization"
        )


async def assign_lead(
    db: AsyncSession,
    lead_id: uuid.UUID,
    agent_id: uuid.UUID,
    assigned_by: str,
    now: Optional[datetime] = None,
) -> Lead:
    """
    Manually assign an unassigned lead, bypassing the routing policy.
    The agent's ledger row is updated like a routed assignment.
    """
    now = now or datetime.now(timezone.utc)

    async def _assign(session: AsyncSession) -> Lead:
        lead = await _lock_lead_scope(session, lead_id)
        if lead.assigned_to is not None:
            raise LeadAlreadyAssigned(
                f"Lead {str(lead_id)[:8]} is already assigned; reassign it instead"
            )
        await _require_assignable_agent(session, lead, agent_id)
        await storage.update_assignment_and_lead(session, lead, agent_id, assigned_by, now)
        _audit(session, lead, "lead_assigned", agent_id, assigned_by, data={"policy": "manual"})
        return lead

    lead = await run_in_transaction(db, _assign, label="assign_lead")
    logger.info(
        "Lead manually assigned to %s", str(agent_id)[:8],
        extra={"lead_id": lead_id, "agent_id": agent_id},
    )
    await notify_agent_of_lead(agent_id, lead_id, assigned_by)
    return lead


async def reassign_lead(
    db: AsyncSession,
    lead_id: uuid.UUID,
    agent_id: uuid.UUID,
    actor_id: str,
    reason: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Lead:
    """
    Move an assigned lead to another agent. The previous agent keeps their
    total_assigned; the new agent's ledger advances.
    """
    now = now or datetime.now(timezone.utc)

    async def _reassign(session: AsyncSession) -> tuple[Lead, Optional[uuid.UUID]]:
        lead = await _lock_lead_scope(session, lead_id)
        previous = lead.assigned_to
        if previous is None:
            raise InvalidTransition("Lead is not assigned yet; assign it instead")
        if previous == agent_id:
            raise InvalidTransition("Lead is already assigned to this agent")
        await _require_assignable_agent(session, lead, agent_id)

        await storage.update_assignment_and_lead(session, lead, agent_id, actor_id, now)
        _audit(
            session, lead, "lead_reassigned", agent_id, actor_id,
            message=reason,
            data={"from": str(previous), "to": str(agent_id), "reason": reason},
        )
        return lead, previous

    lead, previous = await run_in_transaction(db, _reassign, label="reassign_lead")
    logger.info(
        "Lead reassigned %s -> %s", str(previous)[:8], str(agent_id)[:8],
        extra={"lead_id": lead_id, "agent_id": agent_id},
    )
    await notify_agent_of_reassignment(agent_id, lead_id, previous)
    return lead


async def update_agent_routing(
    db: AsyncSession,
    organization_id: uuid.UUID,
    agent_id: uuid.UUID,
    update: AgentRoutingUpdate,
    actor: Optional[str] = None,
) -> dict:
    """Change an agent's availability, daily cap or weight within an organization."""

    async def _update(session: AsyncSession) -> dict:
        if not await storage.lock_organization(session, organization_id):
            raise NotFoundError("organization", organization_id)
        agent = await storage.get_user(session, agent_id)
        if agent is None:
            raise NotFoundError("user", agent_id)
        if agent.organization_id != organization_id:
            raise MembershipConflict(
                f"Agent {str(agent_id)[:8]} is not a member of this organization"
            )

        tracking = await storage.get_or_create_tracking(session, organization_id, agent_id)
        if update.is_available is not None:
            tracking.is_available = update.is_available
        if update.clear_max_leads_per_day:
            tracking.max_leads_per_day = None
        elif update.max_leads_per_day is not None:
            tracking.max_leads_per_day = update.max_leads_per_day
        if update.weight is not None:
            tracking.weight = update.weight
        await session.flush()

        state = {
            "agent_id": str(agent_id),
            "is_available": tracking.is_available,
            "max_leads_per_day": tracking.max_leads_per_day,
            "weight": tracking.weight,
            "total_assigned": tracking.total_assigned,
        }
        session.add(EventLog(
            organization_id=organization_id,
            agent_id=agent_id,
            actor=actor,
            action="agent_routing_changed",
            data=state,
        ))
        return state

    state = await run_in_transaction(db, _update, label="update_agent_routing")
    logger.info(
        "Agent routing updated: available=%s cap=%s weight=%s",
        state["is_available"], state["max_leads_per_day"], state["weight"],
        extra={"organization_id": organization_id, "agent_id": agent_id},
    )
    return state
