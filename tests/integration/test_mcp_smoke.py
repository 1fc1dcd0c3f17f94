"""
Smoke tests for MCP server tool registration.

Verifies that FastMCP server registers the workflow tool without schema errors.
"""

from stagegate.server import create_server


class TestMCPServerCreation:
    """Tests for MCP server creation."""

    def test_server_creates_successfully(self, engine_config):
        """Test that server creates without errors."""
        assert create_server(engine_config) is not None

    def test_server_has_name(self, mcp_server):
        """Test that server has correct name."""
        assert mcp_server.name == "stagegate"


class TestWorkflowToolRegistration:
    """Tests for the unified workflow tool."""

    def test_workflow_registered(self, mcp_server):
        """Test that the workflow tool is registered."""
        tools = mcp_server._tool_manager._tools
        assert list(tools) == ["workflow"]

    def test_action_is_required(self, mcp_server):
        """Only ``action`` is a required parameter."""
        schema = mcp_server._tool_manager._tools["workflow"].parameters
        assert schema["required"] == ["action"]
        for name in ("session_id", "document", "diff", "inputs", "signal", "impact"):
            assert name in schema["properties"]

    def test_description_lists_actions(self, mcp_server):
        tool = mcp_server._tool_manager._tools["workflow"]
        assert "run-gates" in tool.description

    def test_tool_function_dispatches(self, mcp_server):
        """Calling the registered function returns a response envelope."""
        tool = mcp_server._tool_manager._tools["workflow"]
        result = tool.fn(action="start")
        assert result["success"] is True
        assert result["data"]["stage"] == "roadmap"
