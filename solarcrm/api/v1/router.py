"""Root API router for v1 endpoints."""

from __future__ import annotations

from fastapi import APIRouter

from solarcrm.api.v1 import activity, auth, dashboard, documents, health, leads, notifications, steps, timeline, users
from solarcrm.core.config import get_config


def get_api_router(prefix: str | None = None) -> APIRouter:
    api_router = APIRouter(prefix=prefix if prefix is not None else get_config().API_PREFIX)
    api_router.include_router(health.router)
    api_router.include_router(auth.router)
    api_router.include_router(leads.router)
    api_router.include_router(timeline.router)
    api_router.include_router(documents.router)
    api_router.include_router(steps.router)
    api_router.include_router(activity.router)
    api_router.include_router(users.router)
    api_router.include_router(notifications.router)
    api_router.include_router(dashboard.router)
    return api_router
