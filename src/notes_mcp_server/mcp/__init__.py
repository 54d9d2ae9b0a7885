"""MCP server exposing the local notes and their synchronization."""
