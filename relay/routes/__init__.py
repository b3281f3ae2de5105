"""API routes package."""

from relay.routes.auth_routes import router as auth_router
from relay.routes.relay_routes import router as relay_router

__all__ = ["auth_router", "relay_router"]
