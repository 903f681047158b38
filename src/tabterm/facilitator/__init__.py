"""
UI boundary - message contract, routing and the WebSocket service.
"""

from .router import MessageRouter
from .service import TabTermService, create_app

__all__ = ["MessageRouter", "TabTermService", "create_app"]
