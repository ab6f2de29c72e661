"""
Notification service - tells agents about leads they were handed.

Delivery is best-effort: it runs after the assignment commits, and a
failure here never undoes an assignment.
"""
import logging
import uuid
from typing import Optional

from realtycore.services.event_bus import publish_event

logger = logging.getLogger(__name__)


async def notify_agent_of_lead(
    agent_id: uuid.UUID,
    lead_id: uuid.UUID,
    assigned_by: Optional[str] = None,
) -> bool:
    """Announce a new assignment to the agent. Returns False on failure."""
    try:
        sent = await publish_event("lead_assigned", {
            "agent_id": str(agent_id),
            "lead_id": str(lead_id),
            "assigned_by": assigned_by,
        })
    except Exception as e:
        logger.error(
            "Exception notifying agent of lead: %s", str(e),
            extra={"lead_id": lead_id, "agent_id": agent_id},
        )
        return False

    if not sent:
        logger.warning(
            "Agent notification not delivered",
            extra={"lead_id": lead_id, "agent_id": agent_id, "error_code": "notify_failed"},
        )
        return False
    logger.info(
        "Agent %s notified of lead %s", str(agent_id)[:8], str(lead_id)[:8],
        extra={"lead_id": lead_id, "agent_id": agent_id},
    )
    return True


async def notify_agent_of_reassignment(
    agent_id: uuid.UUID,
    lead_id: uuid.UUID,
    previous_agent_id: Optional[uuid.UUID],
) -> bool:
    try:
        return await publish_event("lead_reassigned", {
            "agent_id": str(agent_id),
            "lead_id": str(lead_id),
            "previous_agent_id": str(previous_agent_id) if previous_agent_id else None,
        })
    except Exception as e:
        logger.error("Exception notifying reassignment: %s", str(e))
        return False
