"""Application entrypoint."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

import uvicorn
from fastapi import FastAPI

from solarcrm.api.errors import register_exception_handlers
from solarcrm.api.pages import router as pages_router
from solarcrm.api.v1.router import get_api_router
from solarcrm.auth.jwt import PrimarySession
from solarcrm.auth.route_guard import RouteGuardMiddleware
from solarcrm.core.config import get_config
from solarcrm.core.startup import bootstrap


def create_app(profile_lookup: Callable[[PrimarySession, Mapping[str, str]], Any] | None = None) -> FastAPI:
    cfg = get_config()
    app = FastAPI(title=cfg.APP_NAME, version=cfg.APP_VERSION)
    register_exception_handlers(app)
    app.add_middleware(RouteGuardMiddleware, profile_lookup=profile_lookup)
    app.include_router(get_api_router(cfg.API_PREFIX))
    app.include_router(pages_router)
    return app


# Expose ASGI app for `uvicorn solarcrm.main:app`.
app = create_app()


if __name__ == "__main__":
    bootstrap()
    cfg = get_config()
    uvicorn.run("solarcrm.main:app", host=cfg.API_HOST, port=cfg.API_PORT)
