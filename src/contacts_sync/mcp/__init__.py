"""MCP server exposing contact synchronisation tools over stdio."""
