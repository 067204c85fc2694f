"""Content, voice and LinkedIn routes."""
from authority_pilot.web.content.routes import content_router

__all__ = ["content_router"]
