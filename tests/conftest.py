"""Shared fixtures: an isolated engine per test plus workflow drivers."""

from typing import Any, Callable, Dict, List, Optional

import pytest

from stagegate.config import EngineConfig, GateConfig, StorageConfig
from stagegate.core.engine import WorkflowEngine
from stagegate.core.workflow.models import (
    DependencyImpact,
    RunnerSignal,
    SignalKind,
    Stage,
)

TEST_IDS = ["tests/test_alpha.py::test_new_behavior"]
PASSING_COVERAGE = {"coverage": {"core": 95.0}}


def op(path: str, kind: str, value: Any = None, replace: bool = False) -> Dict[str, Any]:
    operation: Dict[str, Any] = {"path": path, "op": kind}
    if value is not None:
        operation["value"] = value
    if replace:
        operation["replace"] = True
    return operation


@pytest.fixture
def engine_config(tmp_path) -> EngineConfig:
    """Config rooted in a temp dir with a single coverage minimum."""
    config = EngineConfig()
    config.storage = StorageConfig(state_dir=tmp_path / "state", lock_timeout=2)
    config.gates = GateConfig(coverage_minima={"core": 90.0})
    return config


@pytest.fixture
def engine(engine_config) -> WorkflowEngine:
    return WorkflowEngine(engine_config)


@pytest.fixture
def make_diff() -> Callable[..., Dict[str, Any]]:
    """Build a diff payload: ``make_diff(0, ("x", "insert", 1), ...)``."""

    def _make(base_version: int, *operations: tuple) -> Dict[str, Any]:
        return {
            "base_version": base_version,
            "operations": [op(*operation) for operation in operations],
        }

    return _make


@pytest.fixture
def advance_to(engine) -> Callable[[str, Stage], None]:
    """Drive a session forward until it sits at ``target``.

    Each stage's exit evidence is recorded on the way, so gates see a
    session that did real work.
    """
    names = engine.config.documents

    def _submit(session_id: str, document: str, operations: List[dict]) -> None:
        base = engine.store.current_version(document)
        result = engine.submit_diff(
            document,
            {"base_version": base, "operations": operations},
            session_id=session_id,
        )
        assert result.applied, result

    def _exit(session_id: str, stage: Stage, gate_inputs: Optional[dict]) -> None:
        if stage is Stage.CONTEXT:
            engine.attach_impact(
                session_id, DependencyImpact(module="app.core", affected=["app.api"])
            )
        elif stage is Stage.SPEC:
            _submit(
                session_id,
                names.test_knowledge,
                [op("tests", "insert", {TEST_IDS[0]: {"status": "failing"}})],
            )
            engine.record_test_signal(
                session_id, RunnerSignal(kind=SignalKind.FAILING, test_ids=TEST_IDS)
            )
        elif stage is Stage.BUILD:
            engine.record_test_signal(
                session_id, RunnerSignal(kind=SignalKind.PASSING, test_ids=TEST_IDS)
            )
        elif stage is Stage.SYNC:
            _submit(
                session_id,
                names.codebase_index,
                [
                    op(
                        "functions",
                        "insert",
                        [{"name": "app.core.run", "module": "app.core", "complexity": 4}],
                    )
                ],
            )
        elif stage is Stage.AUDIT:
            report = engine.run_gates(session_id, gate_inputs or PASSING_COVERAGE)
            assert report.passed, report

    def _advance_to(
        session_id: str, target: Stage, gate_inputs: Optional[dict] = None
    ) -> None:
        session = engine.get_session(session_id)
        while session.stage is not target:
            _exit(session_id, session.stage, gate_inputs)
            session = engine.advance(session_id)

    return _advance_to
