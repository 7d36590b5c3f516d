"""WebSocket gateway for the live registration feed."""

from prereg.ws.gateway import router

__all__ = ["router"]
