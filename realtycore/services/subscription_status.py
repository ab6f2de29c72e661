"""
Subscription validity and the effective role used for entitlement resolution.

The payment processor only ever updates role/status/period fields on the user.
When a paid subscription lapses, entitlements drop one step immediately,
without waiting for a webhook to rewrite the stored role.
"""
from datetime import datetime, timezone
from typing import Optional

from realtycore.services.tier_catalog import normalize_role

# Role a lapsed subscription falls back to
EXPIRY_DOWNGRADE = {
    "premium": "registered",
    "agent": "registered",
    "agency": "agent",
    "expert": "agency",
}


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def is_subscription_valid(
    status: Optional[str],
    trial_end: Optional[datetime] = None,
    current_period_end: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> bool:
    """active is valid; trial until trial_end; cancelled until period end."""
    now = now or datetime.now(timezone.utc)
    if status == "active":
        return True
    if status == "trial":
        end = _as_utc(trial_end)
        return end is not None and now < end
    if status == "cancelled":
        end = _as_utc(current_period_end)
        return end is not None and now < end
    return False


def effective_role(user, now: Optional[datetime] = None) -> str:
    """Role to resolve entitlements with, after applying subscription validity."""
    role = normalize_role(user.role)
    if is_subscription_valid(user.status, user.trial_end, user.current_period_end, now):
        return role
    return EXPIRY_DOWNGRADE.get(role, role)
