"""
Lead status lifecycle: new → contacted → qualified → converted, with lost
reachable from every open status. converted and lost are terminal.
"""
import logging
import uuid
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from realtycore.models.event_log import EventLog
from realtycore.models.lead import Lead
from realtycore.services import storage
from realtycore.utils.errors import InvalidTransition, NotFoundError
from realtycore.utils.transactions import run_in_transaction

logger = logging.getLogger(__name__)

VALID_TRANSITIONS = {
    "new": ["contacted", "lost"],
    "contacted": ["qualified", "lost"],
    "qualified": ["converted", "lost"],
    "converted": [],  # Terminal
    "lost": [],  # Terminal
}


def can_transition(current: str, new: str) -> bool:
    return new in VALID_TRANSITIONS.get(current, [])


async def update_lead_status(
    db: AsyncSession,
    lead_id: uuid.UUID,
    new_status: str,
    actor: Optional[str] = None,
) -> Lead:
    """Move a lead to new_status. Raises InvalidTransition for disallowed moves."""
    if new_status not in VALID_TRANSITIONS:
        raise InvalidTransition(f"Unknown lead status: {new_status}")

    async def _update(session: AsyncSession) -> Lead:
        lead = await storage.get_lead(session, lead_id)
        if lead is None:
            raise NotFoundError("lead", lead_id)
        old_status = lead.status
        if not can_transition(old_status, new_status):
            raise InvalidTransition(f"Cannot move lead from {old_status} to {new_status}")

        lead.status = new_status
        session.add(EventLog(
            organization_id=lead.organization_id,
            lead_id=lead.id,
            agent_id=lead.assigned_to,
            actor=actor,
            action="lead_status_changed",
            data={"from": old_status, "to": new_status},
        ))
        await session.flush()
        return lead

    lead = await run_in_transaction(db, _update, label="update_lead_status")
    logger.info("Lead status -> %s", new_status, extra={"lead_id": lead_id})
    return lead
