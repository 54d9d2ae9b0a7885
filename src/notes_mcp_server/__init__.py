"""Offline-first note synchronization engine with an MCP stdio server."""

__version__ = "0.1.0"
