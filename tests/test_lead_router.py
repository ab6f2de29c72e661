"""
Tests for realtycore/services/lead_router.py — transactional routing, manual
assignment and reassignment against the assignment ledger.
"""
import asyncio
import logging
import uuid
from datetime import timedelta

import pytest
from sqlalchemy import select

from realtycore.models.event_log import EventLog
from realtycore.models.routing_config import LeadRoutingConfig
from realtycore.schemas.routing import AgentRoutingUpdate, RoutingConfigUpdate
from realtycore.services import storage
from realtycore.services.lead_router import (
    assign_lead,
    reassign_lead,
    route_lead,
    start_of_day,
    update_agent_routing,
)
from realtycore.services.routing_config import upsert_routing_config
from realtycore.utils.errors import (
    InvalidTransition,
    LeadAlreadyAssigned,
    MembershipConflict,
)

A = uuid.UUID("00000000-0000-0000-0000-00000000000a")
B = uuid.UUID("00000000-0000-0000-0000-00000000000b")
C = uuid.UUID("00000000-0000-0000-0000-00000000000c")


async def _team(factory, agent_ids=(A, B, C), **member_fields):
    """Expert organization with the given agents and one org listing."""
    organization = await factory.organization(tier="expert", seat_limit=10)
    agents = [await factory.member(organization, id=agent_id, **member_fields) for agent_id in agent_ids]
    listing = await factory.listing(agents[0], organization_id=organization.id)
    return organization, agents, listing


# ---------------------------------------------------------------------------
# route_lead
# ---------------------------------------------------------------------------

class TestRouteLead:
    async def test_round_robin_sequence(self, db, factory, mock_redis, fixed_now):
        """Fresh A, B, C get leads in order; with A away the next goes to B."""
        organization, _, listing = await _team(factory)

        order = []
        now = fixed_now
        for _ in range(3):
            lead = await factory.lead(listing)
            decision = await route_lead(db, lead.id, now=now)
            order.append(decision.agent_id)
            now += timedelta(minutes=5)
        assert order == [A, B, C]

        await update_agent_routing(db, organization.id, A, AgentRoutingUpdate(is_available=False))
        lead = await factory.lead(listing)
        decision = await route_lead(db, lead.id, now=now)
        assert decision.agent_id == B

    async def test_lead_and_ledger_written_together(self, db, factory, mock_redis, fixed_now):
        organization, _, listing = await _team(factory)
        lead = await factory.lead(listing)

        decision = await route_lead(db, lead.id, now=fixed_now)

        refreshed = await storage.get_lead(db, lead.id)
        assert refreshed.assigned_to == A
        assert refreshed.assigned_by == "round_robin"
        assert storage.as_utc(refreshed.assigned_at) == fixed_now
        tracking = await storage.get_assignment_tracking(db, organization.id, A)
        assert tracking.total_assigned == 1
        assert storage.as_utc(tracking.last_assigned_at) == fixed_now
        assert decision.policy == "round_robin"

    async def test_agent_notified_after_commit(self, db, factory, mock_redis, fixed_now):
        _, _, listing = await _team(factory)
        lead = await factory.lead(listing)

        await route_lead(db, lead.id, now=fixed_now)

        mock_redis.publish.assert_awaited_once()
        payload = mock_redis.publish.call_args[0][1]
        assert '"lead_assigned"' in payload
        assert str(lead.id) in payload

    async def test_notification_failure_keeps_assignment(self, db, factory, mock_redis, fixed_now):
        _, _, listing = await _team(factory)
        lead = await factory.lead(listing)
        mock_redis.publish.side_effect = ConnectionError("redis down")

        decision = await route_lead(db, lead.id, now=fixed_now)

        assert decision.is_assigned is True
        assert (await storage.get_lead(db, lead.id)).assigned_to == A

    async def test_all_unavailable_needs_manual_assignment(self, db, factory, mock_redis, fixed_now, caplog):
        _, _, listing = await _team(factory, is_available=False)
        lead = await factory.lead(listing)

        with caplog.at_level(logging.WARNING, logger="realtycore.services.lead_router"):
            decision = await route_lead(db, lead.id, now=fixed_now)

        assert decision.status == "no_eligible_agent"
        assert (await storage.get_lead(db, lead.id)).assigned_to is None
        assert any(
            getattr(r, "error_code", None) == "lead_needs_manual_assignment" for r in caplog.records
        )
        events = (await db.execute(
            select(EventLog).where(EventLog.action == "lead_needs_manual_assignment")
        )).scalars().all()
        assert len(events) == 1
        mock_redis.publish.assert_not_awaited()

    async def test_org_daily_cap(self, db, factory, mock_redis, fixed_now):
        organization, _, listing = await _team(factory, agent_ids=(A, B))
        await upsert_routing_config(
            db, organization.id,
            RoutingConfigUpdate(routing_type="round_robin", max_leads_per_agent=1),
        )

        results = []
        for i in range(3):
            lead = await factory.lead(listing)
            results.append(await route_lead(db, lead.id, now=fixed_now + timedelta(minutes=i)))

        assert [r.agent_id for r in results[:2]] == [A, B]
        assert results[2].status == "no_eligible_agent"

    async def test_daily_cap_resets_next_day(self, db, factory, mock_redis, fixed_now):
        _, _, listing = await _team(factory, agent_ids=(A,), max_leads_per_day=1)

        first = await factory.lead(listing)
        assert (await route_lead(db, first.id, now=fixed_now)).agent_id == A
        second = await factory.lead(listing)
        assert (await route_lead(db, second.id, now=fixed_now)).is_assigned is False

        third = await factory.lead(listing)
        tomorrow = start_of_day(fixed_now) + timedelta(days=1, hours=9)
        assert (await route_lead(db, third.id, now=tomorrow)).agent_id == A

    async def test_weighted_policy(self, db, factory, mock_redis, fixed_now):
        organization = await factory.organization(tier="expert", seat_limit=10)
        await factory.member(organization, id=A, weight=3)
        await factory.member(organization, id=B, weight=1)
        listing = await factory.listing(await storage.get_user(db, A), organization_id=organization.id)
        await upsert_routing_config(db, organization.id, RoutingConfigUpdate(routing_type="weighted"))

        assigned = []
        for i in range(4):
            lead = await factory.lead(listing)
            decision = await route_lead(db, lead.id, now=fixed_now + timedelta(minutes=i))
            assigned.append(decision.agent_id)

        assert assigned.count(A) == 3
        assert assigned.count(B) == 1

    async def test_availability_policy(self, db, factory, mock_redis, fixed_now):
        organization, _, listing = await _team(factory, agent_ids=(A, B))
        for _ in range(2):
            await factory.lead(listing, assigned_to=A, status="contacted")
        await factory.lead(listing, assigned_to=B, status="converted")
        await upsert_routing_config(db, organization.id, RoutingConfigUpdate(routing_type="availability"))

        lead = await factory.lead(listing)
        decision = await route_lead(db, lead.id, now=fixed_now)

        assert decision.agent_id == B

    async def test_inactive_routing_goes_to_listing_owner(self, db, factory, mock_redis, fixed_now):
        organization, _, listing = await _team(factory)
        await upsert_routing_config(
            db, organization.id, RoutingConfigUpdate(routing_type="round_robin", is_active=False),
        )
        lead = await factory.lead(listing)

        decision = await route_lead(db, lead.id, now=fixed_now)

        assert decision.agent_id == listing.agent_id
        assert decision.policy == "owner"
        assert (await storage.get_lead(db, lead.id)).assigned_by == "owner"

    async def test_lead_without_organization(self, db, factory, mock_redis, fixed_now):
        agent = await factory.user(role="agent")
        listing = await factory.listing(agent)
        lead = await factory.lead(listing)

        decision = await route_lead(db, lead.id, now=fixed_now)

        assert decision.agent_id == agent.id
        assert decision.reason == "no_organization"

    async def test_missing_config_uses_defaults(self, db, factory, mock_redis, fixed_now, caplog):
        _, _, listing = await _team(factory)
        lead = await factory.lead(listing)

        with caplog.at_level(logging.INFO, logger="realtycore.services.routing_config"):
            decision = await route_lead(db, lead.id, now=fixed_now)

        assert decision.policy == "round_robin"
        assert any(getattr(r, "error_code", None) == "routing_config_missing" for r in caplog.records)

    async def test_malformed_stored_hours_still_route(self, db, factory, mock_redis, fixed_now):
        """Hours written before validation existed route with the defaults."""
        organization, _, listing = await _team(factory)
        db.add(LeadRoutingConfig(
            organization_id=organization.id,
            routing_type="weighted",
            is_active=True,
            settings={"working_hours": {"start": "9am", "end": "5pm"}},
        ))
        await db.commit()
        lead = await factory.lead(listing)

        decision = await route_lead(db, lead.id, now=fixed_now)

        assert decision.is_assigned
        assert decision.policy == "round_robin"
        assert decision.agent_id == A

    async def test_already_assigned(self, db, factory, mock_redis, fixed_now):
        _, _, listing = await _team(factory)
        lead = await factory.lead(listing)
        lead_id = lead.id
        await route_lead(db, lead_id, now=fixed_now)

        with pytest.raises(LeadAlreadyAssigned):
            await route_lead(db, lead_id, now=fixed_now)


# ---------------------------------------------------------------------------
# Manual assignment
# ---------------------------------------------------------------------------

class TestAssignLead:
    async def test_manual_assignment_visible_to_next_route(self, db, factory, mock_redis, fixed_now):
        """A lead manually given to A moves A behind B in the rotation."""
        organization, _, listing = await _team(factory, agent_ids=(A, B))
        manual = await factory.lead(listing)
        await assign_lead(db, manual.id, A, assigned_by="broker", now=fixed_now)

        tracking = await storage.get_assignment_tracking(db, organization.id, A)
        assert tracking.total_assigned == 1

        routed = await factory.lead(listing)
        decision = await route_lead(db, routed.id, now=fixed_now + timedelta(minutes=1))
        assert decision.agent_id == B

    async def test_already_assigned(self, db, factory, mock_redis, fixed_now):
        _, _, listing = await _team(factory, agent_ids=(A, B))
        lead = await factory.lead(listing)
        lead_id = lead.id
        await assign_lead(db, lead_id, A, assigned_by="broker", now=fixed_now)

        with pytest.raises(LeadAlreadyAssigned):
            await assign_lead(db, lead_id, B, assigned_by="broker", now=fixed_now)

    async def test_agent_outside_organization(self, db, factory, mock_redis, fixed_now):
        _, _, listing = await _team(factory, agent_ids=(A,))
        outsider = await factory.user(role="agent")
        lead = await factory.lead(listing)
        lead_id, outsider_id = lead.id, outsider.id

        with pytest.raises(MembershipConflict):
            await assign_lead(db, lead_id, outsider_id, assigned_by="broker", now=fixed_now)


# ---------------------------------------------------------------------------
# Reassignment
# ---------------------------------------------------------------------------

class TestReassignLead:
    async def test_reassign_moves_lead_and_audits(self, db, factory, mock_redis, fixed_now):
        organization, _, listing = await _team(factory, agent_ids=(A, B))
        lead = await factory.lead(listing)
        await route_lead(db, lead.id, now=fixed_now)

        await reassign_lead(db, lead.id, B, actor_id="broker", reason="A on vacation")

        refreshed = await storage.get_lead(db, lead.id)
        assert refreshed.assigned_to == B
        assert refreshed.assigned_by == "broker"
        assert (await storage.get_assignment_tracking(db, organization.id, A)).total_assigned == 1
        assert (await storage.get_assignment_tracking(db, organization.id, B)).total_assigned == 1

        event = (await db.execute(
            select(EventLog).where(EventLog.action == "lead_reassigned")
        )).scalar_one()
        assert event.data["from"] == str(A)
        assert event.data["to"] == str(B)
        assert event.data["reason"] == "A on vacation"

    async def test_unassigned_lead(self, db, factory, mock_redis):
        _, _, listing = await _team(factory, agent_ids=(A,))
        lead = await factory.lead(listing)
        lead_id = lead.id

        with pytest.raises(InvalidTransition):
            await reassign_lead(db, lead_id, A, actor_id="broker")

    async def test_same_agent(self, db, factory, mock_redis, fixed_now):
        _, _, listing = await _team(factory, agent_ids=(A,))
        lead = await factory.lead(listing)
        lead_id = lead.id
        await route_lead(db, lead_id, now=fixed_now)

        with pytest.raises(InvalidTransition):
            await reassign_lead(db, lead_id, A, actor_id="broker")


# ---------------------------------------------------------------------------
# Agent routing settings
# ---------------------------------------------------------------------------

class TestUpdateAgentRouting:
    async def test_updates_ledger_row(self, db, factory):
        organization, _, _ = await _team(factory, agent_ids=(A,))

        state = await update_agent_routing(
            db, organization.id, A, AgentRoutingUpdate(max_leads_per_day=4, weight=2),
        )

        assert state["max_leads_per_day"] == 4
        assert state["weight"] == 2
        assert state["is_available"] is True

    async def test_clear_daily_cap(self, db, factory):
        organization, _, _ = await _team(factory, agent_ids=(A,), max_leads_per_day=3)

        state = await update_agent_routing(
            db, organization.id, A, AgentRoutingUpdate(clear_max_leads_per_day=True),
        )

        assert state["max_leads_per_day"] is None

    async def test_non_member(self, db, factory):
        organization, _, _ = await _team(factory, agent_ids=(A,))
        outsider = await factory.user(role="agent")
        org_id, outsider_id = organization.id, outsider.id

        with pytest.raises(MembershipConflict):
            await update_agent_routing(db, org_id, outsider_id, AgentRoutingUpdate(weight=2))


# ---------------------------------------------------------------------------
# Concurrency (file-backed SQLite, one connection per request)
# ---------------------------------------------------------------------------

class TestConcurrentRouting:
    async def test_simultaneous_leads_go_to_different_agents(
        self, session_factory, make_factory, mock_redis, fixed_now
    ):
        async with session_factory() as session:
            factory = make_factory(session)
            _, _, listing = await _team(factory, agent_ids=(A, B))
            leads = [await factory.lead(listing) for _ in range(2)]
            lead_ids = [lead.id for lead in leads]

        async def attempt(lead_id):
            async with session_factory() as session:
                return await route_lead(session, lead_id, now=fixed_now)

        decisions = await asyncio.gather(*(attempt(lid) for lid in lead_ids))

        assert {d.agent_id for d in decisions} == {A, B}
