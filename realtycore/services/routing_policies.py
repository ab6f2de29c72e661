"""
Lead routing policies - pure functions, no I/O.

Given an organization's routing settings and a snapshot of its agents, pick
who gets the next lead. The snapshot is taken under the organization row lock
by lead_router, so two leads routed concurrently never see the same cursor.

Policies:
- round_robin: least recently assigned first (never-assigned agents lead),
  then fewest total assignments, then agent id.
- weighted: smooth weighted round-robin over the persistent ledger. The agent
  with the smallest (total_assigned + 1) / weight goes next, so over time each
  agent's share converges to weight / sum(weights). Fully deterministic.
- availability: fewest open leads (new, contacted, qualified).
"""
import logging
from datetime import datetime, time, timezone
from fractions import Fraction
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from realtycore.schemas.routing import (
    DAY_NAMES,
    AgentCandidate,
    RoutingDecision,
    RoutingSettings,
    WorkingHours,
)

logger = logging.getLogger(__name__)

# Sorts never-assigned agents ahead of everyone else
_NEVER = datetime.min.replace(tzinfo=timezone.utc)


def is_within_working_hours(working_hours: Optional[WorkingHours], now: datetime) -> bool:
    """
    True if now falls inside the configured window (start inclusive, end
    exclusive) in the configured timezone. No window means always open.
    Windows with end < start span midnight.
    """
    if working_hours is None:
        return True

    try:
        tz = ZoneInfo(working_hours.timezone or "UTC")
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Invalid working hours timezone %r, using UTC", working_hours.timezone)
        tz = timezone.utc

    local = now.astimezone(tz)
    if DAY_NAMES[local.weekday()] not in working_hours.days:
        return False

    start = time.fromisoformat(working_hours.start)
    end = time.fromisoformat(working_hours.end)
    current = local.time().replace(tzinfo=None)
    if start <= end:
        return start <= current < end
    return current >= start or current < end


def daily_cap_for(candidate: AgentCandidate, settings: RoutingSettings) -> Optional[int]:
    """The agent's own daily cap wins over the organization default."""
    if candidate.max_leads_per_day is not None:
        return candidate.max_leads_per_day
    return settings.max_leads_per_agent


def filter_eligible(
    candidates: list[AgentCandidate],
    settings: RoutingSettings,
    now: datetime,
) -> list[AgentCandidate]:
    """Agents that may receive a lead right now."""
    if not is_within_working_hours(settings.working_hours, now):
        return []

    eligible = []
    for candidate in candidates:
        if not candidate.is_available:
            continue
        cap = daily_cap_for(candidate, settings)
        if cap is not None and candidate.todays_assigned_count >= cap:
            continue
        eligible.append(candidate)
    return eligible


def _round_robin_key(candidate: AgentCandidate) -> tuple:
    return (
        candidate.last_assigned_at or _NEVER,
        candidate.total_assigned,
        str(candidate.agent_id),
    )


def select_round_robin(eligible: list[AgentCandidate]) -> AgentCandidate:
    return min(eligible, key=_round_robin_key)


def select_weighted(eligible: list[AgentCandidate]) -> AgentCandidate:
    return min(
        eligible,
        key=lambda c: (Fraction(c.total_assigned + 1, max(c.weight, 1)),) + _round_robin_key(c),
    )


def select_availability(eligible: list[AgentCandidate]) -> AgentCandidate:
    return min(eligible, key=lambda c: (c.open_leads,) + _round_robin_key(c))


POLICIES = {
    "round_robin": select_round_robin,
    "weighted": select_weighted,
    "availability": select_availability,
}


def route(
    lead,
    settings: RoutingSettings,
    candidates: list[AgentCandidate],
    now: Optional[datetime] = None,
) -> RoutingDecision:
    """
    Decide the assignee for one lead. Same inputs always give the same answer.

    Returns status "no_eligible_agent" when nobody qualifies (everyone
    unavailable or at their daily cap, or outside working hours); the lead
    then waits for manual assignment.
    """
    now = now or datetime.now(timezone.utc)
    policy = settings.routing_type

    if not candidates:
        return RoutingDecision(status="no_eligible_agent", policy=policy, reason="no_agents")

    if not is_within_working_hours(settings.working_hours, now):
        return RoutingDecision(
            status="no_eligible_agent", policy=policy, reason="outside_working_hours",
        )

    eligible = filter_eligible(candidates, settings, now)
    if not eligible:
        return RoutingDecision(
            status="no_eligible_agent", policy=policy, reason="all_unavailable_or_capped",
        )

    chosen = POLICIES[policy](eligible)
    logger.debug(
        "Routing %s: %s chosen from %d eligible",
        policy, str(chosen.agent_id)[:8], len(eligible),
        extra={"lead_id": getattr(lead, "id", None), "agent_id": chosen.agent_id},
    )
    return RoutingDecision(status="assigned", agent_id=chosen.agent_id, policy=policy)
