"""API Routers for the resource catalog."""

from resource_catalog.routers.resources import router as resources_router

__all__ = ["resources_router"]
