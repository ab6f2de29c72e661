"""
Organization model - a brokerage team on an agency/expert plan.
seat_limit and listing_cap hold the negotiated caps; None or 0 means uncapped.
"""
import uuid
from datetime import datetime, timezone
from typing import Optional
from sqlalchemy import String, Integer, DateTime
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship
from realtycore.database import Base


class Organization(Base):
    __tablename__ = "organizations"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    tier: Mapped[str] = mapped_column(String(30), nullable=False)  # agency, expert
    owner_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)

    # Caps
    seat_limit: Mapped[Optional[int]] = mapped_column(Integer)
    seats_used: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    listing_cap: Mapped[Optional[int]] = mapped_column(Integer)

    # Bumped to take the row lock for seat, org-listing and routing mutations
    lock_version: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    members: Mapped[list["User"]] = relationship(back_populates="organization", lazy="select")

    def __repr__(self) -> str:
        return f"<Organization {self.name} ({self.tier})>"
