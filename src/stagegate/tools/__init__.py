"""MCP tool surface for the workflow engine."""
