"""Zephyr Scale MCP server: Zephyr Scale test management exposed as MCP tools."""

__version__ = "0.1.0"
