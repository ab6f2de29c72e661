"""
API router - aggregates all route modules.
"""
from fastapi import APIRouter
from realtycore.api.entitlements import router as entitlements_router
from realtycore.api.listings import router as listings_router
from realtycore.api.organizations import router as organizations_router
from realtycore.api.routing import router as routing_router
from realtycore.api.leads import router as leads_router
from realtycore.api.health import router as health_router

api_router = APIRouter()
api_router.include_router(entitlements_router)
api_router.include_router(listings_router)
api_router.include_router(organizations_router)
api_router.include_router(routing_router)
api_router.include_router(leads_router)
api_router.include_router(health_router)
