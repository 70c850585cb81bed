"""SellLink - turn a product photo into a shareable second-hand listing."""

__version__ = "0.1.0"
