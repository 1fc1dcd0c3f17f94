"""Shared fixtures for unified tool dispatch tests."""

import pytest

from stagegate.tools.unified import dispatch_workflow_action


@pytest.fixture
def dispatch(engine):
    """Call the workflow tool's dispatcher against the test engine."""

    def _dispatch(action, **payload):
        return dispatch_workflow_action(action=action, payload=payload, engine=engine)

    return _dispatch
