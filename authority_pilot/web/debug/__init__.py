"""Debug routes."""
from authority_pilot.web.debug.routes import debug_router

__all__ = ["debug_router"]
