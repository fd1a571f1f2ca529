"""Configuration synchronization engine for MCP server definitions."""

__version__ = "0.4.0"
