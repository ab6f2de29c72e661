"""
Lead intake - entry point for every new inquiry.

  1. dedup (same listing + email within 30 minutes)
  2. load the listing and its owner
  3. score and prioritize
  4. persist the lead (committed before routing, so a routing failure never
     loses the inquiry)
  5. route within the organization, or hand to the listing owner
"""
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from realtycore.models.lead import Lead
from realtycore.schemas.lead_envelope import LeadInquiry
from realtycore.services import storage
from realtycore.services.lead_router import route_lead
from realtycore.services.lead_scoring import calculate_lead_score, priority_for_score
from realtycore.utils.dedup import is_duplicate
from realtycore.utils.errors import LeadAlreadyAssigned, NotFoundError
from realtycore.utils.metrics import Timer
from realtycore.utils.transactions import run_in_transaction

logger = logging.getLogger(__name__)


async def handle_new_lead(db: AsyncSession, inquiry: LeadInquiry) -> dict:
    """
    Create, score and route one lead.

    Returns: {"lead_id", "status", "assigned_to", "score", "priority", "response_ms"}
    status is one of: assigned, unassigned, duplicate, listing_not_available
    """
    timer = Timer().start()

    if await is_duplicate(str(inquiry.listing_id), inquiry.email):
        return {
            "lead_id": None, "status": "duplicate", "assigned_to": None,
            "score": None, "priority": None, "response_ms": timer.elapsed_ms,
        }

    listing = await storage.get_listing(db, inquiry.listing_id)
    if listing is None:
        raise NotFoundError("listing", inquiry.listing_id)
    if listing.status != "active":
        logger.info("Inquiry for inactive listing %s ignored", str(listing.id)[:8])
        return {
            "lead_id": None, "status": "listing_not_available", "assigned_to": None,
            "score": None, "priority": None, "response_ms": timer.elapsed_ms,
        }

    score = calculate_lead_score(inquiry.message, inquiry.phone, listing.price)
    priority = priority_for_score(score["total"])

    async def _create(session: AsyncSession) -> Lead:
        lead = Lead(
            listing_id=listing.id,
            agent_id=listing.agent_id,
            organization_id=listing.organization_id,
            name=inquiry.name,
            email=inquiry.email,
            phone=inquiry.phone,
            message=inquiry.message,
            source=inquiry.source,
            status="new",
            score=score["total"],
            priority=priority,
        )
        session.add(lead)
        await session.flush()
        return lead

    lead = await run_in_transaction(db, _create, label="create_lead")
    logger.info(
        "Lead created: score=%d priority=%s source=%s", score["total"], priority, inquiry.source,
        extra={"lead_id": lead.id, "organization_id": lead.organization_id},
    )

    try:
        decision = await route_lead(db, lead.id)
    except LeadAlreadyAssigned:
        # Assigned manually between commit and routing
        lead = await storage.get_lead(db, lead.id)
        return {
            "lead_id": str(lead.id), "status": "assigned",
            "assigned_to": str(lead.assigned_to), "score": score["total"],
            "priority": priority, "response_ms": timer.elapsed_ms,
        }

    return {
        "lead_id": str(lead.id),
        "status": "assigned" if decision.is_assigned else "unassigned",
        "assigned_to": str(decision.agent_id) if decision.agent_id else None,
        "score": score["total"],
        "priority": priority,
        "response_ms": timer.elapsed_ms,
    }
