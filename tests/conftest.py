"""
Test configuration and fixtures.
Uses SQLite in-memory for fast tests and a file-backed SQLite database for
concurrency tests (separate connections, real write locks). Redis is mocked.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import pytest
import uuid
from datetime import datetime, timezone
from typing import Optional
from unittest.mock import AsyncMock, patch
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.dialects.postgresql import JSONB
from realtycore.database import Base
from realtycore.models import (
    LeadAssignmentTracking,
    Lead,
    Listing,
    Organization,
    User,
)


# Register JSONB as JSON for SQLite compatibility in tests
@compiles(JSONB, "sqlite")
def _compile_jsonb_sqlite(type_, compiler, **kw):
    return "JSON"


@pytest.fixture
async def db():
    """In-memory SQLite database for tests."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session
    await engine.dispose()


@pytest.fixture
async def session_factory(tmp_path):
    """File-backed SQLite database; every session gets its own connection."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'concurrency.db'}",
        connect_args={"timeout": 30},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
def mock_redis():
    """Mock for async Redis — prevents real Redis calls in tests."""
    redis_mock = AsyncMock()
    redis_mock.set = AsyncMock(return_value=True)
    redis_mock.ping = AsyncMock(return_value=True)
    redis_mock.publish = AsyncMock(return_value=1)
    redis_mock.lpush = AsyncMock(return_value=1)
    redis_mock.ltrim = AsyncMock(return_value=True)
    with patch("realtycore.utils.dedup.get_redis") as dedup_mock, \
            patch("realtycore.services.event_bus.get_redis") as bus_mock:
        dedup_mock.return_value = redis_mock
        bus_mock.return_value = redis_mock
        yield redis_mock


class Factory:
    """Creates committed rows in one session."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def user(self, role: str = "agent", status: str = "active", **fields) -> User:
        user = User(role=role, status=status, **fields)
        self.session.add(user)
        await self.session.commit()
        return user

    async def organization(
        self,
        owner: Optional[User] = None,
        tier: str = "expert",
        seat_limit: Optional[int] = 5,
        listing_cap: Optional[int] = 100,
        owner_available: bool = False,
    ) -> Organization:
        """
        Organization with its owner already seated. The owner is parked
        (is_available=False) unless owner_available is set, so routing tests
        only see the agents they add.
        """
        owner = owner or await self.user(role=tier)
        organization = Organization(
            name="Hill Country Realty",
            tier=tier,
            owner_id=owner.id,
            seat_limit=seat_limit,
            listing_cap=listing_cap,
            seats_used=1,
        )
        self.session.add(organization)
        await self.session.flush()
        owner.organization_id = organization.id
        self.session.add(LeadAssignmentTracking(
            organization_id=organization.id,
            agent_id=owner.id,
            is_available=owner_available,
        ))
        await self.session.commit()
        return organization

    async def member(
        self,
        organization: Organization,
        role: str = "agent",
        is_available: bool = True,
        max_leads_per_day: Optional[int] = None,
        weight: int = 1,
        total_assigned: int = 0,
        last_assigned_at: Optional[datetime] = None,
        **fields,
    ) -> User:
        """Agent seated in the organization, with a tracking row."""
        user = User(role=role, status="active", organization_id=organization.id, **fields)
        self.session.add(user)
        await self.session.flush()
        self.session.add(LeadAssignmentTracking(
            organization_id=organization.id,
            agent_id=user.id,
            is_available=is_available,
            max_leads_per_day=max_leads_per_day,
            weight=weight,
            total_assigned=total_assigned,
            last_assigned_at=last_assigned_at,
        ))
        organization.seats_used += 1
        await self.session.commit()
        return user

    async def listing(
        self,
        agent: User,
        status: str = "active",
        organization_id: Optional[uuid.UUID] = None,
        price: Optional[float] = 450000,
    ) -> Listing:
        listing = Listing(
            agent_id=agent.id,
            organization_id=organization_id,
            title="3BR house",
            price=price,
            status=status,
        )
        self.session.add(listing)
        await self.session.commit()
        return listing

    async def lead(self, listing: Listing, **fields) -> Lead:
        values = {
            "name": "Jane Buyer",
            "email": f"jane+{uuid.uuid4().hex[:6]}@example.com",
            "status": "new",
        }
        values.update(fields)
        lead = Lead(
            listing_id=listing.id,
            agent_id=listing.agent_id,
            organization_id=listing.organization_id,
            **values,
        )
        self.session.add(lead)
        await self.session.commit()
        return lead


@pytest.fixture
def factory(db):
    return Factory(db)


@pytest.fixture
def make_factory():
    """Factory class, for tests that open their own sessions."""
    return Factory


@pytest.fixture
def fixed_now():
    """A Wednesday, 15:00 UTC (10:00 in America/Chicago)."""
    return datetime(2026, 10, 14, 15, 0, tzinfo=timezone.utc)
