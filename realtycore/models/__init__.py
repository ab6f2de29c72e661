"""
Database models - import all models here so Alembic can discover them.
"""
from realtycore.models.organization import Organization
from realtycore.models.user import User
from realtycore.models.listing import Listing
from realtycore.models.lead import Lead
from realtycore.models.routing_config import LeadRoutingConfig
from realtycore.models.assignment_tracking import LeadAssignmentTracking
from realtycore.models.event_log import EventLog

__all__ = [
    "Organization",
    "User",
    "Listing",
    "Lead",
    "LeadRoutingConfig",
    "LeadAssignmentTracking",
    "EventLog",
]
