"""
Event log model - audit trail for assignments, reassignments, routing config
changes and cap rejections.
"""
import uuid
from datetime import datetime, timezone
from typing import Optional
from sqlalchemy import String, Text, DateTime, Index
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import Mapped, mapped_column
from realtycore.database import Base


class EventLog(Base):
    __tablename__ = "event_logs"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    organization_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True))
    lead_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True))
    agent_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True))
    actor: Mapped[Optional[str]] = mapped_column(String(64))

    action: Mapped[str] = mapped_column(
        String(100), nullable=False
    )  # lead_assigned, lead_reassigned, routing_config_changed, cap_rejected, ...
    status: Mapped[str] = mapped_column(
        String(20), default="success"
    )  # success, skipped, rejected
    message: Mapped[Optional[str]] = mapped_column(Text)
    data: Mapped[Optional[dict]] = mapped_column(JSONB)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    __table_args__ = (
        Index("ix_events_lead_id", "lead_id"),
        Index("ix_events_organization_id", "organization_id"),
        Index("ix_events_action", "action"),
    )

    def __repr__(self) -> str:
        return f"<EventLog {self.action} status={self.status}>"
