"""
Lead inquiry envelope - the input format for leads from any listing page,
referral form or social campaign.
"""
import uuid
from typing import Optional
from pydantic import BaseModel, Field


class LeadMetadata(BaseModel):
    """Source-specific metadata that travels with the lead."""
    landing_page: Optional[str] = None
    referrer: Optional[str] = None
    utm_source: Optional[str] = None
    utm_medium: Optional[str] = None
    utm_campaign: Optional[str] = None


class LeadInquiry(BaseModel):
    """
    A prospect's inquiry about one listing.
    lead_intake turns this into a scored Lead row and routes it.
    """
    listing_id: uuid.UUID
    name: str = Field(..., min_length=1, max_length=200)
    email: str = Field(..., min_length=3, max_length=255)
    phone: Optional[str] = Field(default=None, max_length=30)
    message: Optional[str] = None
    source: str = Field(default="website", description="website, referral, social")
    metadata: LeadMetadata = Field(default_factory=LeadMetadata)
