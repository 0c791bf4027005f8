from __future__ import annotations

from app.api.routes.account import router as account_router
from app.api.routes.admin import router as admin_router
from app.api.routes.health import router as health_router

__all__ = ["account_router", "admin_router", "health_router"]
