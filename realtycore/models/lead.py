"""
Lead model - an inquiry about one listing.
Lifecycle: new → contacted → qualified → converted | lost.
assigned_to stays null until routed; after that it only changes through
an explicit reassignment.
"""
import uuid
from datetime import datetime, timezone
from typing import Optional
from sqlalchemy import String, Text, Integer, DateTime, ForeignKey, Index
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column
from realtycore.database import Base

OPEN_LEAD_STATUSES = ("new", "contacted", "qualified")


class Lead(Base):
    __tablename__ = "leads"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    listing_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("listings.id"), nullable=False
    )
    agent_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=False
    )  # owner of the listing
    organization_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("organizations.id")
    )

    # Contact info
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(30))
    message: Mapped[Optional[str]] = mapped_column(Text)
    source: Mapped[str] = mapped_column(
        String(50), default="website", nullable=False
    )  # website, referral, social

    # Lifecycle and scoring
    status: Mapped[str] = mapped_column(String(20), default="new", nullable=False)
    priority: Mapped[str] = mapped_column(
        String(10), default="medium", nullable=False
    )  # low, medium, high, urgent
    score: Mapped[int] = mapped_column(Integer, default=0)

    # Assignment
    assigned_to: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id")
    )
    assigned_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    assigned_by: Mapped[Optional[str]] = mapped_column(
        String(64)
    )  # round_robin, weighted, availability, owner, or the assigning user's id

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        Index("ix_leads_organization_id", "organization_id"),
        Index("ix_leads_assigned_to_status", "assigned_to", "status"),
        Index("ix_leads_assigned_at", "assigned_at"),
        Index("ix_leads_listing_id", "listing_id"),
    )

    def __repr__(self) -> str:
        return f"<Lead {str(self.id)[:8]} status={self.status} assigned={self.assigned_to is not None}>"
