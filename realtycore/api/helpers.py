"""
Shared route helpers - id parsing and ORM-to-response conversion.
"""
import uuid

from fastapi import HTTPException

from realtycore.models.lead import Lead
from realtycore.models.organization import Organization
from realtycore.schemas.api_responses import LeadResponse, OrganizationResponse


def parse_uuid(value: str, label: str) -> uuid.UUID:
    try:
        return uuid.UUID(value)
    except (ValueError, TypeError):
        raise HTTPException(status_code=400, detail=f"Invalid {label} ID")


def lead_response(lead: Lead) -> LeadResponse:
    return LeadResponse(
        id=str(lead.id),
        listing_id=str(lead.listing_id),
        organization_id=str(lead.organization_id) if lead.organization_id else None,
        status=lead.status,
        priority=lead.priority,
        score=lead.score or 0,
        assigned_to=str(lead.assigned_to) if lead.assigned_to else None,
        assigned_by=lead.assigned_by,
        assigned_at=lead.assigned_at.isoformat() if lead.assigned_at else None,
    )


def organization_response(organization: Organization) -> OrganizationResponse:
    return OrganizationResponse(
        id=str(organization.id),
        name=organization.name,
        tier=organization.tier,
        owner_id=str(organization.owner_id),
        seat_limit=organization.seat_limit,
        seats_used=organization.seats_used,
        listing_cap=organization.listing_cap,
    )
