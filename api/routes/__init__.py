"""API routes."""

from api.routes.chat import router as chat_router
from api.routes.dashboard import router as dashboard_router
from api.routes.session import router as session_router

__all__ = ["session_router", "chat_router", "dashboard_router"]
