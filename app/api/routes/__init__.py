from __future__ import annotations

from app.api.routes.controller import router as controller_router
from app.api.routes.health import router as health_router
from app.api.routes.mobile import router as mobile_router

__all__ = ["controller_router", "health_router", "mobile_router"]
