"""Unified MCP tools (one tool, many actions)."""

from stagegate.tools.unified.workflow import (
    dispatch_workflow_action,
    register_unified_workflow_tool,
)

__all__ = ["dispatch_workflow_action", "register_unified_workflow_tool"]
