"""
Entitlement checks over a FeatureFlags record.

- Boolean flags pass through.
- Counters allow an action while current usage is strictly below the cap;
  None (UNLIMITED) and 0 mean no cap. usage == cap is rejected.
- Graded levels compare through LEVEL_ORDER, the only place their ordering
  is defined ("full" implies "limited", "advanced" implies "basic").
"""
import logging
from typing import Optional

from realtycore.services.tier_catalog import FeatureFlags
from realtycore.utils.metrics import usage_percentage

logger = logging.getLogger(__name__)

LEVEL_ORDER: dict[str, tuple[str, ...]] = {
    "can_view_analytics": ("none", "limited", "full"),
    "agent_analytics": ("none", "basic", "advanced"),
}

COUNTER_FLAGS = (
    "agent_max_active_listings",
    "agent_featured_credits_monthly",
    "org_max_active_listings",
    "org_seats",
)


def is_uncapped(cap: Optional[int]) -> bool:
    return cap is None or cap == 0


def is_within_cap(cap: Optional[int], current_usage: int) -> bool:
    """True if one more unit fits under the cap."""
    if is_uncapped(cap):
        return True
    return current_usage < cap


def remaining_for_cap(cap: Optional[int], current_usage: int) -> Optional[int]:
    """Units left before the cap. None means unlimited."""
    if is_uncapped(cap):
        return None
    return max(0, cap - current_usage)


def remaining_quota(flags: FeatureFlags, counter_name: str, current_usage: int) -> Optional[int]:
    """Remaining quota for a named counter flag. None means unlimited."""
    if counter_name not in COUNTER_FLAGS:
        raise ValueError(f"Not a counter flag: {counter_name}")
    return remaining_for_cap(getattr(flags, counter_name), current_usage)


def meets_level(flag_name: str, actual: str, required: str) -> bool:
    """Check a graded flag value against a required level on the same scale."""
    scale = LEVEL_ORDER.get(flag_name)
    if scale is None:
        raise ValueError(f"Not a graded flag: {flag_name}")
    if required not in scale or actual not in scale:
        raise ValueError(
            f"Level {required!r}/{actual!r} is not on the {flag_name} scale {scale}"
        )
    return scale.index(actual) >= scale.index(required)


def access_level(flags: FeatureFlags, flag_name: str) -> str:
    """Current grade of a graded flag, e.g. access_level(flags, "agent_analytics")."""
    if flag_name not in LEVEL_ORDER:
        raise ValueError(f"Not a graded flag: {flag_name}")
    return getattr(flags, flag_name)


def can_perform(
    flags: FeatureFlags,
    action: str,
    required_level: Optional[str] = None,
    current_usage: int = 0,
) -> bool:
    """
    Check whether flags allow an action.

    For graded flags the default requirement is the lowest non-"none" level.
    For counter flags current_usage is compared against the cap.
    Unknown action names are denied.
    """
    if action not in FeatureFlags.model_fields:
        logger.warning("Entitlement check for unknown action %r denied", action)
        return False

    value = getattr(flags, action)

    if action in LEVEL_ORDER:
        required = required_level or LEVEL_ORDER[action][1]
        return meets_level(action, value, required)

    if action in COUNTER_FLAGS:
        return is_within_cap(value, current_usage)

    return bool(value)


def usage_summary(current: int, limit: Optional[int]) -> dict:
    """Usage snapshot for dashboards and upgrade prompts."""
    return {
        "current": current,
        "limit": None if is_uncapped(limit) else limit,
        "remaining": remaining_for_cap(limit, current),
        "percentage": usage_percentage(current, limit),
        "can_add_more": is_within_cap(limit, current),
    }
