"""
Lead routing schemas - organization routing settings, agent candidates and
routing decisions.
"""
import uuid
from datetime import datetime, time
from typing import Literal, Optional
from pydantic import BaseModel, Field, field_validator

RoutingType = Literal["round_robin", "weighted", "availability"]
ROUTING_TYPES = ("round_robin", "weighted", "availability")


DAY_NAMES = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")
_FULL_DAY_NAMES = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


class WorkingHours(BaseModel):
    """
    Daily routing window. start/end are 24h HH:MM; end before start spans
    midnight. Days accept short or full English names and are stored short.
    """
    start: str = "09:00"
    end: str = "17:00"
    timezone: Optional[str] = None  # falls back to DEFAULT_WORKING_HOURS_TIMEZONE
    days: list[str] = Field(default_factory=lambda: list(DAY_NAMES))

    @field_validator("start", "end")
    @classmethod
    def validate_hhmm(cls, value: str) -> str:
        value = value.strip()
        if len(value) != 5 or value[2] != ":":
            raise ValueError(f"expected HH:MM, got {value!r}")
        try:
            parsed = time.fromisoformat(value)
        except ValueError:
            raise ValueError(f"expected HH:MM, got {value!r}") from None
        return parsed.strftime("%H:%M")

    @field_validator("days")
    @classmethod
    def validate_days(cls, value: list[str]) -> list[str]:
        days = []
        for day in value:
            name = day.strip().lower()
            if name in _FULL_DAY_NAMES:
                name = DAY_NAMES[_FULL_DAY_NAMES.index(name)]
            if name not in DAY_NAMES:
                raise ValueError(f"unknown day {day!r}")
            if name not in days:
                days.append(name)
        return days


class RoutingSettings(BaseModel):
    """Effective routing configuration of one organization."""
    routing_type: RoutingType = "round_robin"
    is_active: bool = True
    max_leads_per_agent: Optional[int] = Field(
        default=None, ge=1, description="Default daily cap for agents without their own"
    )
    working_hours: Optional[WorkingHours] = None


class RoutingConfigUpdate(BaseModel):
    routing_type: RoutingType
    is_active: bool = True
    max_leads_per_agent: Optional[int] = Field(default=None, ge=1)
    working_hours: Optional[WorkingHours] = None


class AgentRoutingUpdate(BaseModel):
    is_available: Optional[bool] = None
    max_leads_per_day: Optional[int] = Field(default=None, ge=1)
    clear_max_leads_per_day: bool = False
    weight: Optional[int] = Field(default=None, ge=1)


class AgentCandidate(BaseModel):
    """An organization member as seen by the routing policies."""
    agent_id: uuid.UUID
    is_available: bool = True
    max_leads_per_day: Optional[int] = None
    todays_assigned_count: int = 0
    last_assigned_at: Optional[datetime] = None
    total_assigned: int = 0
    open_leads: int = 0
    weight: int = 1


class RoutingDecision(BaseModel):
    status: Literal["assigned", "no_eligible_agent"]
    agent_id: Optional[uuid.UUID] = None
    policy: str
    reason: Optional[str] = None

    @property
    def is_assigned(self) -> bool:
        return self.status == "assigned"
