"""Storefront MCP Server - cart and wishlist synchronization for a commerce API."""

__version__ = "0.1.0"
