"""HTTP surface for the SellLink wizard."""

from .app import build_wizard, create_app
from .websocket import ConnectionManager

__all__ = ["ConnectionManager", "build_wizard", "create_app"]
