"""Agent API routes."""
from authority_pilot.web.agents.routes import agents_router

__all__ = ["agents_router"]
