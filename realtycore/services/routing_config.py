"""
Organization routing configuration - read with defaults, overwrite in place.

A missing row is not an error: the organization routes round-robin, active,
without daily caps. Changes apply to leads routed after the commit and each
change leaves an audit entry with the before/after settings.
"""
import logging
import uuid
from typing import Optional

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from realtycore.config import get_settings
from realtycore.models.event_log import EventLog
from realtycore.models.routing_config import LeadRoutingConfig
from realtycore.schemas.routing import RoutingConfigUpdate, RoutingSettings
from realtycore.services import storage
from realtycore.services.event_bus import publish_event
from realtycore.services.tier_catalog import get_feature_flags
from realtycore.utils.errors import FeatureNotAvailable, NotFoundError
from realtycore.utils.transactions import run_in_transaction

logger = logging.getLogger(__name__)

DEFAULT_ROUTING = RoutingSettings()


def settings_from_row(row: Optional[LeadRoutingConfig]) -> RoutingSettings:
    """Build effective settings from a stored row. Bad stored JSON falls back to defaults."""
    if row is None:
        return DEFAULT_ROUTING
    extra = row.settings or {}
    working_hours = extra.get("working_hours")
    if working_hours and not working_hours.get("timezone"):
        working_hours = {
            **working_hours,
            "timezone": get_settings().default_working_hours_timezone,
        }
    try:
        return RoutingSettings(
            routing_type=row.routing_type,
            is_active=row.is_active,
            max_leads_per_agent=extra.get("max_leads_per_agent"),
            working_hours=working_hours,
        )
    except ValidationError as e:
        logger.error(
            "Stored routing config is invalid, using defaults: %s", str(e)[:200],
            extra={"organization_id": row.organization_id, "error_code": "routing_config_invalid"},
        )
        return DEFAULT_ROUTING


async def get_effective_routing_config(
    db: AsyncSession, organization_id: uuid.UUID
) -> RoutingSettings:
    row = await storage.get_routing_config(db, organization_id)
    if row is None:
        logger.info(
            "No routing config for organization, using round_robin defaults",
            extra={"organization_id": organization_id, "error_code": "routing_config_missing"},
        )
    return settings_from_row(row)


def _dump(settings: RoutingSettings) -> dict:
    return settings.model_dump(mode="json")


async def upsert_routing_config(
    db: AsyncSession,
    organization_id: uuid.UUID,
    update: RoutingConfigUpdate,
    actor: Optional[str] = None,
) -> RoutingSettings:
    """Overwrite an organization's routing config. Requires the org_lead_routing tier flag."""

    async def _upsert(session: AsyncSession) -> tuple[RoutingSettings, RoutingSettings]:
        if not await storage.lock_organization(session, organization_id):
            raise NotFoundError("organization", organization_id)
        organization = await storage.get_organization(session, organization_id)
        if not get_feature_flags(organization.tier).org_lead_routing:
            raise FeatureNotAvailable("org_lead_routing", organization.tier)

        row = await storage.get_routing_config(session, organization_id)
        before = settings_from_row(row)
        extra = {
            "max_leads_per_agent": update.max_leads_per_agent,
            "working_hours": (
                update.working_hours.model_dump() if update.working_hours else None
            ),
        }
        if row is None:
            row = LeadRoutingConfig(organization_id=organization_id)
            session.add(row)
        row.routing_type = update.routing_type
        row.is_active = update.is_active
        row.settings = extra
        await session.flush()

        after = settings_from_row(row)
        session.add(EventLog(
            organization_id=organization_id,
            actor=actor,
            action="routing_config_changed",
            message=f"Routing {before.routing_type} -> {after.routing_type}",
            data={"before": _dump(before), "after": _dump(after)},
        ))
        return before, after

    before, after = await run_in_transaction(db, _upsert, label="upsert_routing_config")
    logger.info(
        "Routing config changed: %s -> %s (active=%s)",
        before.routing_type, after.routing_type, after.is_active,
        extra={"organization_id": organization_id},
    )
    await publish_event("routing_config_changed", {
        "organization_id": str(organization_id),
        "routing_type": after.routing_type,
    })
    return after
