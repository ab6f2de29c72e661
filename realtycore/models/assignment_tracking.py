"""
Per (organization, agent) fairness ledger read and written by lead routing.
Always updated in the same transaction as the lead's assigned_to.
"""
import uuid
from datetime import datetime, timezone
from typing import Optional
from sqlalchemy import Integer, Boolean, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column
from realtycore.database import Base


class LeadAssignmentTracking(Base):
    __tablename__ = "lead_assignment_tracking"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    organization_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("organizations.id"), nullable=False
    )
    agent_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=False
    )

    last_assigned_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    total_assigned: Mapped[int] = mapped_column(Integer, default=0, nullable=False)  # ever assigned
    is_available: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    max_leads_per_day: Mapped[Optional[int]] = mapped_column(Integer)
    weight: Mapped[int] = mapped_column(Integer, default=1, nullable=False)  # weighted routing

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        UniqueConstraint("organization_id", "agent_id", name="uq_tracking_org_agent"),
    )

    def __repr__(self) -> str:
        return f"<LeadAssignmentTracking agent={str(self.agent_id)[:8]} total={self.total_assigned}>"
