"""Shared fixtures for integration tests."""

import pytest

from stagegate.core.engine import WorkflowEngine
from stagegate.server import create_server


@pytest.fixture
def mcp_server(engine_config):
    """Create a test MCP server instance."""
    return create_server(engine_config)


@pytest.fixture
def reopen(engine_config):
    """Build a fresh engine over the same state directory, as after a restart."""

    def _reopen():
        return WorkflowEngine(engine_config)

    return _reopen
