"""
User model - a marketplace account. The role is the subscription tier that
drives entitlements; feature flags are derived from it on demand and never
stored on the row.
"""
import uuid
from datetime import datetime, timezone
from typing import Optional
from sqlalchemy import String, Integer, DateTime, ForeignKey, Index
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship
from realtycore.database import Base


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    email: Mapped[Optional[str]] = mapped_column(String(255), unique=True)
    first_name: Mapped[Optional[str]] = mapped_column(String(100))
    last_name: Mapped[Optional[str]] = mapped_column(String(100))

    # Subscription
    role: Mapped[str] = mapped_column(
        String(30), default="free", nullable=False
    )  # free, registered, premium, agent, agency, expert, admin
    status: Mapped[str] = mapped_column(
        String(30), default="active", nullable=False
    )  # active, trial, cancelled, expired, suspended
    trial_end: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    current_period_end: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    # Team membership (one organization at most)
    organization_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("organizations.id")
    )

    # Bumped to take the row lock before personal listing-cap checks
    lock_version: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    organization: Mapped[Optional["Organization"]] = relationship(
        back_populates="members", lazy="select"
    )

    __table_args__ = (
        Index("ix_users_organization_id", "organization_id"),
        Index("ix_users_role", "role"),
    )

    def __repr__(self) -> str:
        return f"<User {str(self.id)[:8]} role={self.role}>"
