"""
Tests for the REST layer — routes, error mapping and correlation IDs, driven
through the ASGI app with the test database injected.
"""
import uuid
from unittest.mock import AsyncMock, patch

import pytest
from httpx import ASGITransport, AsyncClient

from realtycore.database import get_db
from realtycore.main import app
from realtycore.utils.errors import StorageConflict


@pytest.fixture
async def client(db, mock_redis):
    async def _override_db():
        yield db

    app.dependency_overrides[get_db] = _override_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Entitlements
# ---------------------------------------------------------------------------

class TestEntitlementRoutes:
    async def test_resolved_flags(self, client, factory):
        organization = await factory.organization(tier="expert")
        agent = await factory.member(organization)

        resp = await client.get(f"/api/v1/users/{agent.id}/entitlements")

        assert resp.status_code == 200
        data = resp.json()
        assert data["effective_role"] == "agent"
        assert data["personal"]["agent_max_active_listings"] == 5
        assert data["organization_tier"] == "expert"
        assert data["organization"]["org_lead_routing"] is True

    async def test_unknown_user(self, client):
        resp = await client.get(f"/api/v1/users/{uuid.uuid4()}/entitlements")
        assert resp.status_code == 404

    async def test_invalid_user_id(self, client):
        resp = await client.get("/api/v1/users/not-a-uuid/entitlements")
        assert resp.status_code == 400

    async def test_listing_usage(self, client, factory):
        agent = await factory.user(role="agent")
        await factory.listing(agent)

        resp = await client.get(f"/api/v1/users/{agent.id}/listing-usage")

        assert resp.status_code == 200
        assert resp.json()["current"] == 1
        assert resp.json()["remaining"] == 4
        assert resp.json()["scope"] == "agent"


# ---------------------------------------------------------------------------
# Listings
# ---------------------------------------------------------------------------

class TestListingRoutes:
    async def test_create_listing(self, client, factory):
        agent = await factory.user(role="agent")

        resp = await client.post("/api/v1/listings", json={
            "agent_id": str(agent.id), "title": "Bungalow", "price": 325000,
        })

        assert resp.status_code == 201
        assert resp.json()["status"] == "reserved"
        assert resp.json()["resource_id"] is not None

    async def test_cap_reached_prompts_upgrade(self, client, factory):
        agent = await factory.user(role="agent")
        for _ in range(5):
            await factory.listing(agent)

        resp = await client.post("/api/v1/listings", json={
            "agent_id": str(agent.id), "title": "Sixth listing",
        })

        assert resp.status_code == 402
        data = resp.json()
        assert data["error"] == "cap_exceeded"
        assert data["upgrade_required"] is True
        assert data["limit"] == 5
        assert data["current"] == 5

    async def test_role_without_listings(self, client, factory):
        user = await factory.user(role="registered")

        resp = await client.post("/api/v1/listings", json={
            "agent_id": str(user.id), "title": "Not allowed",
        })

        assert resp.status_code == 403
        assert resp.json()["error"] == "feature_not_available"

    async def test_archive_listing(self, client, factory):
        agent = await factory.user(role="agent")
        listing = await factory.listing(agent)

        resp = await client.patch(f"/api/v1/listings/{listing.id}/status", json={"status": "archived"})

        assert resp.status_code == 200
        assert resp.json()["status"] == "reserved"


# ---------------------------------------------------------------------------
# Organizations and routing config
# ---------------------------------------------------------------------------

class TestOrganizationRoutes:
    async def test_create_and_fetch(self, client, factory):
        owner = await factory.user(role="agency")

        created = await client.post("/api/v1/organizations", json={
            "owner_id": str(owner.id), "name": "Bluebonnet Realty",
        })
        assert created.status_code == 201
        org_id = created.json()["id"]

        fetched = await client.get(f"/api/v1/organizations/{org_id}")
        assert fetched.json()["seat_limit"] == 2
        assert fetched.json()["seats_used"] == 1

    async def test_seat_cap(self, client, factory):
        organization = await factory.organization(tier="agency", seat_limit=2)
        await factory.member(organization)
        newcomer = await factory.user(role="agent")

        resp = await client.post(
            f"/api/v1/organizations/{organization.id}/members", json={"user_id": str(newcomer.id)},
        )

        assert resp.status_code == 402
        assert resp.json()["counter_name"] == "seats"

    async def test_usage(self, client, factory):
        organization = await factory.organization(tier="expert", listing_cap=100)
        agent = await factory.member(organization)
        await factory.listing(agent, organization_id=organization.id)

        resp = await client.get(f"/api/v1/organizations/{organization.id}/usage")

        assert resp.status_code == 200
        assert resp.json()["seats"]["current"] == 2
        assert resp.json()["listings"]["current"] == 1
        assert resp.json()["listings"]["remaining"] == 99

    async def test_routing_config_defaults(self, client, factory):
        organization = await factory.organization()

        resp = await client.get(f"/api/v1/organizations/{organization.id}/routing-config")

        assert resp.status_code == 200
        assert resp.json()["routing_type"] == "round_robin"

    async def test_routing_config_requires_tier(self, client, factory):
        organization = await factory.organization(tier="agent")

        resp = await client.put(
            f"/api/v1/organizations/{organization.id}/routing-config",
            json={"routing_type": "weighted"},
        )

        assert resp.status_code == 403

    async def test_invalid_policy_rejected(self, client, factory):
        organization = await factory.organization()

        resp = await client.put(
            f"/api/v1/organizations/{organization.id}/routing-config",
            json={"routing_type": "lottery"},
        )

        assert resp.status_code == 422

    async def test_malformed_working_hours_rejected(self, client, factory):
        organization = await factory.organization()

        resp = await client.put(
            f"/api/v1/organizations/{organization.id}/routing-config",
            json={"routing_type": "round_robin", "working_hours": {"start": "9am", "end": "17:00"}},
        )

        assert resp.status_code == 422
        stored = await client.get(f"/api/v1/organizations/{organization.id}/routing-config")
        assert stored.json()["working_hours"] is None


# ---------------------------------------------------------------------------
# Leads
# ---------------------------------------------------------------------------

class TestLeadRoutes:
    async def test_intake(self, client, factory):
        agent = await factory.user(role="agent")
        listing = await factory.listing(agent)

        resp = await client.post("/api/v1/leads", json={
            "listing_id": str(listing.id), "name": "Sam Buyer", "email": "sam@example.com",
        })

        assert resp.status_code == 201
        assert resp.json()["status"] == "assigned"
        assert resp.json()["assigned_to"] == str(agent.id)

    async def test_double_assignment_conflicts(self, client, factory):
        organization = await factory.organization()
        first = await factory.member(organization)
        second = await factory.member(organization)
        listing = await factory.listing(first, organization_id=organization.id)
        lead = await factory.lead(listing)

        ok = await client.post(f"/api/v1/leads/{lead.id}/assign", json={
            "agent_id": str(first.id), "assigned_by": "broker",
        })
        assert ok.status_code == 200
        assert ok.json()["assigned_to"] == str(first.id)

        conflict = await client.post(f"/api/v1/leads/{lead.id}/assign", json={
            "agent_id": str(second.id), "assigned_by": "broker",
        })
        assert conflict.status_code == 409

    async def test_invalid_status_transition(self, client, factory):
        agent = await factory.user(role="agent")
        lead = await factory.lead(await factory.listing(agent))

        resp = await client.put(f"/api/v1/leads/{lead.id}/status", json={"status": "converted"})

        assert resp.status_code == 409

    async def test_storage_conflict_asks_for_retry(self, client, factory):
        agent = await factory.user(role="agent")
        lead = await factory.lead(await factory.listing(agent))

        with patch(
            "realtycore.api.leads.route_lead",
            new_callable=AsyncMock,
            side_effect=StorageConflict("route_lead failed after 3 attempts"),
        ):
            resp = await client.post(f"/api/v1/leads/{lead.id}/route")

        assert resp.status_code == 503
        assert resp.headers["Retry-After"] == "1"

    async def test_unknown_lead(self, client):
        resp = await client.get(f"/api/v1/leads/{uuid.uuid4()}")
        assert resp.status_code == 404


class TestCorrelationId:
    async def test_echoes_incoming_id(self, client):
        resp = await client.get("/health", headers={"X-Correlation-ID": "abc123"})
        assert resp.headers["X-Correlation-ID"] == "abc123"

    async def test_generates_id(self, client):
        resp = await client.get("/health")
        assert len(resp.headers["X-Correlation-ID"]) == 32
