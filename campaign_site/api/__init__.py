"""API endpoints."""

from .activities import router as activities_router
from .admin import router as admin_router
from .campaign import router as campaign_router
from .export import router as export_router
from .internal import router as internal_router
from .lessons import router as lessons_router
from .locations import router as locations_router
from .petition import router as petition_router

__all__ = [
    "activities_router",
    "admin_router",
    "campaign_router",
    "export_router",
    "internal_router",
    "lessons_router",
    "locations_router",
    "petition_router",
]
