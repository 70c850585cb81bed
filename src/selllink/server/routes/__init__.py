"""SellLink API routes."""

from . import functions, public, wizard

__all__ = ["functions", "public", "wizard"]
