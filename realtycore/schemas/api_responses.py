"""
Request and response models for the REST API.
"""
from typing import Optional
from pydantic import BaseModel, Field


# === ENTITLEMENTS ===

class EntitlementsResponse(BaseModel):
    user_id: str
    role: str
    effective_role: str
    subscription_valid: bool
    personal: dict
    organization_id: Optional[str] = None
    organization_tier: Optional[str] = None
    organization: Optional[dict] = None


class UsageResponse(BaseModel):
    current: int
    limit: Optional[int] = None
    remaining: Optional[int] = None
    percentage: float = 0.0
    can_add_more: bool
    scope: Optional[str] = None
    tier: Optional[str] = None


# === LISTINGS ===

class ListingCreateRequest(BaseModel):
    agent_id: str
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    price: Optional[float] = Field(default=None, ge=0)
    address: Optional[str] = None
    city: Optional[str] = None
    state_code: Optional[str] = Field(default=None, max_length=2)
    property_type: Optional[str] = None
    bedrooms: Optional[int] = Field(default=None, ge=0)


class ListingStatusRequest(BaseModel):
    status: str


class ReservationResponse(BaseModel):
    status: str
    counter_name: str
    scope: str
    limit: Optional[int] = None
    current: int
    resource_id: Optional[str] = None


# === ORGANIZATIONS ===

class OrganizationCreateRequest(BaseModel):
    owner_id: str
    name: str = Field(..., min_length=1, max_length=255)


class OrganizationResponse(BaseModel):
    id: str
    name: str
    tier: str
    owner_id: str
    seat_limit: Optional[int] = None
    seats_used: int
    listing_cap: Optional[int] = None


class MemberRequest(BaseModel):
    user_id: str


# === LEADS ===

class LeadAssignRequest(BaseModel):
    agent_id: str
    assigned_by: str


class LeadReassignRequest(BaseModel):
    agent_id: str
    actor_id: str
    reason: Optional[str] = Field(default=None, max_length=500)


class LeadStatusRequest(BaseModel):
    status: str
    actor_id: Optional[str] = None


class LeadResponse(BaseModel):
    id: str
    listing_id: str
    organization_id: Optional[str] = None
    status: str
    priority: str
    score: int
    assigned_to: Optional[str] = None
    assigned_by: Optional[str] = None
    assigned_at: Optional[str] = None


class LeadIntakeResponse(BaseModel):
    lead_id: Optional[str] = None
    status: str
    assigned_to: Optional[str] = None
    score: Optional[int] = None
    priority: Optional[str] = None
    response_ms: int = 0


class RoutingDecisionResponse(BaseModel):
    status: str
    agent_id: Optional[str] = None
    policy: str
    reason: Optional[str] = None
