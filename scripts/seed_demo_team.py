"""
Seed a demo brokerage (Austin Hill Country Realty) into the database:
an expert-tier owner, three agents, a few listings and a round-robin config.

Usage:
    python scripts/seed_demo_team.py
"""
import asyncio
import logging

from sqlalchemy import select

from realtycore.database import dispose_engine, session_scope
from realtycore.models.user import User
from realtycore.schemas.routing import RoutingConfigUpdate, WorkingHours
from realtycore.services.organizations import create_organization
from realtycore.services.routing_config import upsert_routing_config
from realtycore.services.usage_guard import try_reserve_listing, try_reserve_seat

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

OWNER_EMAIL = "dana@hillcountryrealty.com"

AGENTS = [
    {"first_name": "Mike", "last_name": "Rodriguez", "email": "mike@hillcountryrealty.com"},
    {"first_name": "Priya", "last_name": "Shah", "email": "priya@hillcountryrealty.com"},
    {"first_name": "Jake", "last_name": "Thompson", "email": "jake@hillcountryrealty.com"},
]

LISTINGS = [
    {"title": "3BR craftsman near Zilker Park", "price": 689000, "city": "Austin", "state_code": "TX",
     "property_type": "house", "bedrooms": 3},
    {"title": "Downtown condo with lake view", "price": 1150000, "city": "Austin", "state_code": "TX",
     "property_type": "condo", "bedrooms": 2},
    {"title": "Starter townhouse in Round Rock", "price": 289000, "city": "Round Rock", "state_code": "TX",
     "property_type": "townhouse", "bedrooms": 2},
]


async def seed():
    async with session_scope() as session:
        existing = (await session.execute(
            select(User).where(User.email == OWNER_EMAIL)
        )).scalar_one_or_none()
        if existing and existing.organization_id:
            logger.info("Demo team already exists (org=%s). Skipping.", existing.organization_id)
            return

        owner = existing or User(
            email=OWNER_EMAIL, first_name="Dana", last_name="Whitfield",
            role="expert", status="active",
        )
        agents = [User(role="agent", status="active", **a) for a in AGENTS]
        session.add(owner)
        session.add_all(agents)
        await session.commit()

        organization = await create_organization(session, owner.id, "Austin Hill Country Realty")
        logger.info("Seeded organization %s (id=%s)", organization.name, organization.id)

        for agent in agents:
            result = await try_reserve_seat(session, organization.id, agent.id)
            logger.info("Seat for %s: %s (%d/%s)", agent.email, result.status,
                        result.current, result.limit)

        for agent, listing in zip(agents, LISTINGS):
            result = await try_reserve_listing(session, agent.id, **listing)
            logger.info("Listing %r: %s", listing["title"], result.status)

        await upsert_routing_config(
            session,
            organization.id,
            RoutingConfigUpdate(
                routing_type="round_robin",
                max_leads_per_agent=10,
                working_hours=WorkingHours(start="08:00", end="20:00", timezone="America/Chicago"),
            ),
            actor="seed",
        )
        logger.info("Routing config seeded (round_robin, 10 leads/agent/day)")


async def main():
    try:
        await seed()
    finally:
        await dispose_engine()


if __name__ == "__main__":
    asyncio.run(main())
