"""
Tier catalog - central source of truth for what each subscription role includes.

Feature flags are derived on demand from (role, organization tier) and never
persisted, so a changed role can never drift from a stale cached copy.
Used by entitlement checks, the usage cap guard (listing and seat caps),
organization provisioning and the entitlements API.
"""
import logging
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)

ROLE_ORDER = ("free", "registered", "premium", "agent", "agency", "expert", "admin")
DEFAULT_ROLE = "free"

# Counter value meaning "no cap". Zero is treated the same way.
UNLIMITED = None

AnalyticsAccess = Literal["none", "limited", "full"]
AgentAnalytics = Literal["none", "basic", "advanced"]


class FeatureFlags(BaseModel):
    """Immutable capability record for one role."""

    model_config = ConfigDict(frozen=True)

    # Browsing and contact
    can_view_listings: bool = False
    can_view_contact_info: bool = False
    can_save_favorites: bool = False
    can_view_analytics: AnalyticsAccess = "none"
    can_contact_via_form: bool = False
    can_advanced_filters: bool = False
    can_virtual_tours: bool = False

    # Agent features
    can_create_listings: bool = False
    agent_max_active_listings: Optional[int] = 0
    agent_featured_credits_monthly: Optional[int] = 0
    agent_analytics: AgentAnalytics = "none"

    # Organization features
    org_team_management: bool = False
    org_max_active_listings: Optional[int] = 0
    org_seats: Optional[int] = 0
    org_crm: bool = False
    org_lead_routing: bool = False
    org_bulk_import: bool = False
    org_branding_page: bool = False

    # AI and automation
    ai_pricing_suggestions: bool = False
    ai_comp_selection: bool = False
    ai_automation: bool = False
    ai_blog_writing: bool = False
    ai_social_media_integration: bool = False
    integrations_api: bool = False
    priority_rank_boost: bool = False
    priority_support: bool = False


class Entitlements(BaseModel):
    """
    Personal flags come from the user's own role; organization flags from the
    organization's negotiated tier. Kept separate so membership never widens
    personal entitlements.
    """

    model_config = ConfigDict(frozen=True)

    role: str
    personal: FeatureFlags
    organization_tier: Optional[str] = None
    organization: Optional[FeatureFlags] = None


_BROWSING = {
    "can_view_listings": True,
    "can_save_favorites": True,
    "can_contact_via_form": True,
    "can_view_contact_info": True,
    "can_advanced_filters": True,
}

_AGENT_BASE = {
    **_BROWSING,
    "can_view_analytics": "full",
    "can_virtual_tours": True,
    "can_create_listings": True,
}

_ORG_BASE = {
    "org_team_management": True,
    "org_crm": True,
    "org_lead_routing": True,
    "org_bulk_import": True,
    "org_branding_page": True,
}

TIER_FEATURES: dict[str, dict] = {
    "free": {
        **_BROWSING,
    },
    "registered": {
        **_BROWSING,
        "can_view_analytics": "limited",
    },
    "premium": {
        **_BROWSING,
        "can_view_analytics": "limited",
        "can_virtual_tours": True,
    },
    "agent": {
        **_AGENT_BASE,
        "agent_max_active_listings": 5,
        "agent_featured_credits_monthly": 5,
        "agent_analytics": "basic",
    },
    "agency": {
        **_AGENT_BASE,
        **_ORG_BASE,
        "agent_max_active_listings": 20,
        "agent_featured_credits_monthly": 10,
        "agent_analytics": "advanced",
        "org_max_active_listings": 20,
        "org_seats": 2,
    },
    "expert": {
        **_AGENT_BASE,
        **_ORG_BASE,
        "agent_max_active_listings": 100,
        "agent_featured_credits_monthly": 50,
        "agent_analytics": "advanced",
        "org_max_active_listings": 100,
        "org_seats": 5,
        "ai_pricing_suggestions": True,
        "ai_comp_selection": True,
        "ai_automation": True,
        "ai_blog_writing": True,
        "ai_social_media_integration": True,
        "integrations_api": True,
        "priority_rank_boost": True,
        "priority_support": True,
    },
    "admin": {
        **_AGENT_BASE,
        **_ORG_BASE,
        "agent_max_active_listings": UNLIMITED,
        "agent_featured_credits_monthly": UNLIMITED,
        "agent_analytics": "advanced",
        "org_max_active_listings": UNLIMITED,
        "org_seats": UNLIMITED,
        "ai_pricing_suggestions": True,
        "ai_comp_selection": True,
        "ai_automation": True,
        "ai_blog_writing": True,
        "ai_social_media_integration": True,
        "integrations_api": True,
        "priority_rank_boost": True,
        "priority_support": True,
    },
}

# Built once; FeatureFlags is frozen so sharing instances is safe
_FLAGS_BY_ROLE: dict[str, FeatureFlags] = {
    role: FeatureFlags(**features) for role, features in TIER_FEATURES.items()
}


def is_known_role(role: Optional[str]) -> bool:
    return role in _FLAGS_BY_ROLE


def normalize_role(role: Optional[str]) -> str:
    """
    Return the role if it is known, else the most restrictive role.
    A corrupt or legacy role string must never grant access by omission.
    """
    if is_known_role(role):
        return role
    logger.warning(
        "Unknown role %r, falling back to %s flags", role, DEFAULT_ROLE,
        extra={"error_code": "unknown_role"},
    )
    return DEFAULT_ROLE


def role_rank(role: Optional[str]) -> int:
    """Position in ROLE_ORDER. Unknown roles rank as the lowest role."""
    return ROLE_ORDER.index(normalize_role(role))


def role_at_least(role: Optional[str], minimum: str) -> bool:
    """Minimum-role gate, e.g. role_at_least(user.role, "agent")."""
    return role_rank(role) >= ROLE_ORDER.index(minimum)


def get_feature_flags(role: Optional[str]) -> FeatureFlags:
    """Get flags for a role. Defaults to free for unknown roles."""
    return _FLAGS_BY_ROLE[normalize_role(role)]


def resolve(role: Optional[str], organization_tier: Optional[str] = None) -> Entitlements:
    """
    Resolve a user's entitlements. Pure and total: never raises, never
    returns None, safe to call on every request.
    """
    normalized = normalize_role(role)
    org_flags = None
    org_tier = None
    if organization_tier is not None:
        org_tier = normalize_role(organization_tier)
        org_flags = _FLAGS_BY_ROLE[org_tier]
    return Entitlements(
        role=normalized,
        personal=_FLAGS_BY_ROLE[normalized],
        organization_tier=org_tier,
        organization=org_flags,
    )
