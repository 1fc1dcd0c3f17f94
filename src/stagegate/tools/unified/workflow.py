"""Unified workflow tool backed by ActionRouter and the workflow engine."""

from __future__ import annotations

import logging
import time
from dataclasses import asdict
from typing import Any, Dict, List, Optional

from mcp.server.fastmcp import FastMCP

from stagegate.core.engine import WorkflowEngine
from stagegate.core.errors.base import REJECTION_ERROR_CODES
from stagegate.core.knowledge import Rejected
from stagegate.core.responses import ErrorCode, ErrorType, error_response, success_response
from stagegate.core.workflow.models import (
    DependencyImpact,
    RunnerSignal,
    SessionStatus,
    StageEvidence,
    WorkflowSession,
)
from stagegate.tools.unified.common import build_request_id, dispatch_with_standard_errors
from stagegate.tools.unified.param_schema import Bool, Dict_, Int, List_, Str, validate_payload
from stagegate.tools.unified.router import ActionDefinition, ActionRouter

logger = logging.getLogger(__name__)

TOOL_NAME = "workflow"

_ACTION_SUMMARY = {
    "start": "Start a session at the roadmap stage",
    "advance": "Advance a session to its next stage (skip=true bypasses roadmap or docs)",
    "abort": "Abort a session with a reason",
    "show": "Show a session and the requirement blocking its next advance",
    "list": "List sessions, newest first",
    "history": "Ordered audit history of a session ('store' for sessionless diffs)",
    "verify-history": "Verify the hash chain of an audit ledger",
    "submit-diff": "Merge a diff into a knowledge document, atomically",
    "read-document": "Read a full document snapshot",
    "document-history": "List the committed versions of a document",
    "validate-document": "Validate the latest version of a document against its schema",
    "run-gates": "Evaluate the quality gates (audit stage only)",
    "attach-impact": "Attach a dependency-impact record (up to the context stage)",
    "signal": "Record a tests_failing (spec) or tests_passing (build) verdict",
}

_SESSION_SCHEMA = {
    "session_id": Str(required=True, remediation='Call workflow(action="list") to find the id'),
}
_DOCUMENT_SCHEMA = {"document": Str(required=True, max_length=128)}

_ADVANCE_SCHEMA = {
    **_SESSION_SCHEMA,
    "skip": Bool(default=False),
    "notes": Str(),
    "references": List_(),
    "evidence": Dict_(),
}
_ABORT_SCHEMA = {**_SESSION_SCHEMA, "reason": Str(required=True)}
_LIST_SCHEMA = {"status": Str(choices=frozenset(s.value for s in SessionStatus))}
_SUBMIT_SCHEMA = {**_DOCUMENT_SCHEMA, "diff": Dict_(required=True), "session_id": Str()}
_READ_SCHEMA = {**_DOCUMENT_SCHEMA, "session_id": Str(), "version": Int(min_val=0)}
_GATES_SCHEMA = {**_SESSION_SCHEMA, "inputs": Dict_()}
_IMPACT_SCHEMA = {**_SESSION_SCHEMA, "impact": Dict_(required=True)}
_SIGNAL_SCHEMA = {**_SESSION_SCHEMA, "signal": Dict_(required=True)}


def _session_data(session: WorkflowSession) -> Dict[str, Any]:
    return {
        "session_id": session.id,
        "stage": session.stage.value,
        "stage_index": session.stage.index,
        "status": session.status.value,
        "skipped": [stage.value for stage in session.skipped],
        "abort_reason": session.abort_reason,
    }


def _ok(request_id: str, started: float, data: Dict[str, Any]) -> dict:
    elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
    return asdict(
        success_response(data, request_id=request_id, meta={"timing_ms": elapsed_ms})
    )


def _validated(payload: Dict[str, Any], schema: Dict[str, Any], action: str) -> Optional[dict]:
    return validate_payload(payload, schema, tool_name=TOOL_NAME, action=action)


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


def _handle_start(*, engine: WorkflowEngine, **payload: Any) -> dict:
    request_id, started = build_request_id(TOOL_NAME), time.perf_counter()
    session_id = engine.start_session()
    return _ok(request_id, started, _session_data(engine.get_session(session_id)))


def _handle_advance(*, engine: WorkflowEngine, **payload: Any) -> dict:
    err = _validated(payload, _ADVANCE_SCHEMA, "advance")
    if err:
        return err
    request_id, started = build_request_id(TOOL_NAME), time.perf_counter()
    evidence_data = dict(payload.get("evidence") or {})
    if payload.get("notes"):
        evidence_data["notes"] = payload["notes"]
    if payload.get("references"):
        evidence_data["references"] = payload["references"]
    session = engine.advance(
        payload["session_id"],
        StageEvidence.model_validate(evidence_data),
        skip=payload["skip"],
    )
    return _ok(request_id, started, _session_data(session))


def _handle_abort(*, engine: WorkflowEngine, **payload: Any) -> dict:
    err = _validated(payload, _ABORT_SCHEMA, "abort")
    if err:
        return err
    request_id, started = build_request_id(TOOL_NAME), time.perf_counter()
    session = engine.abort(payload["session_id"], payload["reason"])
    return _ok(request_id, started, _session_data(session))


def _handle_show(*, engine: WorkflowEngine, **payload: Any) -> dict:
    err = _validated(payload, _SESSION_SCHEMA, "show")
    if err:
        return err
    request_id, started = build_request_id(TOOL_NAME), time.perf_counter()
    session = engine.get_session(payload["session_id"])
    pending = engine.pending_requirement(session.id)
    return _ok(
        request_id,
        started,
        {
            **_session_data(session),
            "session": session.model_dump(mode="json"),
            "pending_requirement": (
                {"code": pending.code, "message": pending.message} if pending else None
            ),
        },
    )


def _handle_list(*, engine: WorkflowEngine, **payload: Any) -> dict:
    err = _validated(payload, _LIST_SCHEMA, "list")
    if err:
        return err
    request_id, started = build_request_id(TOOL_NAME), time.perf_counter()
    status = payload.get("status")
    summaries = engine.list_sessions(SessionStatus(status) if status else None)
    return _ok(
        request_id,
        started,
        {"sessions": [s.model_dump(mode="json") for s in summaries], "count": len(summaries)},
    )


def _handle_history(*, engine: WorkflowEngine, **payload: Any) -> dict:
    err = _validated(payload, _SESSION_SCHEMA, "history")
    if err:
        return err
    request_id, started = build_request_id(TOOL_NAME), time.perf_counter()
    entries = [entry.model_dump(mode="json") for entry in engine.get_history(payload["session_id"])]
    return _ok(
        request_id,
        started,
        {"session_id": payload["session_id"], "entries": entries, "count": len(entries)},
    )


def _handle_verify_history(*, engine: WorkflowEngine, **payload: Any) -> dict:
    err = _validated(payload, _SESSION_SCHEMA, "verify-history")
    if err:
        return err
    request_id, started = build_request_id(TOOL_NAME), time.perf_counter()
    result = engine.verify_history(payload["session_id"])
    if not result.valid:
        return asdict(
            error_response(
                f"Audit chain broken at line {result.divergence_point}: {result.divergence_type}",
                error_code=ErrorCode.AUDIT_CHAIN_BROKEN,
                error_type=ErrorType.INTERNAL,
                remediation=result.divergence_detail,
                details=result.model_dump(mode="json"),
                request_id=request_id,
            )
        )
    return _ok(request_id, started, {"session_id": payload["session_id"], **result.model_dump(mode="json")})


def _handle_submit_diff(*, engine: WorkflowEngine, **payload: Any) -> dict:
    err = _validated(payload, _SUBMIT_SCHEMA, "submit-diff")
    if err:
        return err
    request_id, started = build_request_id(TOOL_NAME), time.perf_counter()
    result = engine.submit_diff(
        payload["document"], payload["diff"], session_id=payload.get("session_id")
    )
    if isinstance(result, Rejected):
        return asdict(
            error_response(
                f"Diff rejected: {result.reason.value}: {result.message}",
                data=result.to_dict(),
                error_code=REJECTION_ERROR_CODES[result.reason],
                error_type=ErrorType.CONFLICT,
                remediation="Re-read the document and resubmit against its current version",
                request_id=request_id,
            )
        )
    return _ok(request_id, started, result.to_dict())


def _handle_read_document(*, engine: WorkflowEngine, **payload: Any) -> dict:
    err = _validated(payload, _READ_SCHEMA, "read-document")
    if err:
        return err
    request_id, started = build_request_id(TOOL_NAME), time.perf_counter()
    document = engine.read_document(
        payload["document"],
        session_id=payload.get("session_id"),
        version=payload.get("version"),
    )
    return _ok(request_id, started, document.model_dump(mode="json"))


def _handle_document_history(*, engine: WorkflowEngine, **payload: Any) -> dict:
    err = _validated(payload, _DOCUMENT_SCHEMA, "document-history")
    if err:
        return err
    request_id, started = build_request_id(TOOL_NAME), time.perf_counter()
    versions: List[Dict[str, Any]] = [
        {
            "version": document.version,
            "checksum": document.checksum,
            "created_at": document.created_at.isoformat() if document.created_at else None,
            "session_id": document.session_id,
        }
        for document in engine.document_history(payload["document"])
    ]
    return _ok(
        request_id,
        started,
        {"document": payload["document"], "versions": versions, "count": len(versions)},
    )


def _handle_validate_document(*, engine: WorkflowEngine, **payload: Any) -> dict:
    err = _validated(payload, _DOCUMENT_SCHEMA, "validate-document")
    if err:
        return err
    request_id, started = build_request_id(TOOL_NAME), time.perf_counter()
    document = engine.validate_document(payload["document"])
    return _ok(
        request_id,
        started,
        {"document": document.name, "version": document.version, "valid": True},
    )


def _handle_run_gates(*, engine: WorkflowEngine, **payload: Any) -> dict:
    err = _validated(payload, _GATES_SCHEMA, "run-gates")
    if err:
        return err
    request_id, started = build_request_id(TOOL_NAME), time.perf_counter()
    report = engine.run_gates(payload["session_id"], payload.get("inputs"))
    data = {"session_id": payload["session_id"], **report.model_dump(mode="json")}
    if not report.passed:
        return asdict(
            error_response(
                "Quality gates failed: " + ", ".join(report.failed_checks),
                data=data,
                error_code=ErrorCode.GATE_FAILURE,
                error_type=ErrorType.GATE,
                remediation="Fix the failing checks and run the gates again",
                request_id=request_id,
            )
        )
    return _ok(request_id, started, data)


def _handle_attach_impact(*, engine: WorkflowEngine, **payload: Any) -> dict:
    err = _validated(payload, _IMPACT_SCHEMA, "attach-impact")
    if err:
        return err
    request_id, started = build_request_id(TOOL_NAME), time.perf_counter()
    impact = DependencyImpact.model_validate(payload["impact"])
    entry = engine.attach_impact(payload["session_id"], impact)
    return _ok(request_id, started, {"session_id": payload["session_id"], "sequence": entry.sequence})


def _handle_signal(*, engine: WorkflowEngine, **payload: Any) -> dict:
    err = _validated(payload, _SIGNAL_SCHEMA, "signal")
    if err:
        return err
    request_id, started = build_request_id(TOOL_NAME), time.perf_counter()
    signal = RunnerSignal.model_validate(payload["signal"])
    entry = engine.record_test_signal(payload["session_id"], signal)
    return _ok(
        request_id,
        started,
        {
            "session_id": payload["session_id"],
            "kind": signal.kind.value,
            "test_ids": signal.test_ids,
            "sequence": entry.sequence,
        },
    )


_WORKFLOW_ROUTER = ActionRouter(
    tool_name=TOOL_NAME,
    actions=[
        ActionDefinition(name="start", handler=_handle_start, summary=_ACTION_SUMMARY["start"]),
        ActionDefinition(
            name="advance", handler=_handle_advance, summary=_ACTION_SUMMARY["advance"]
        ),
        ActionDefinition(name="abort", handler=_handle_abort, summary=_ACTION_SUMMARY["abort"]),
        ActionDefinition(name="show", handler=_handle_show, summary=_ACTION_SUMMARY["show"]),
        ActionDefinition(name="list", handler=_handle_list, summary=_ACTION_SUMMARY["list"]),
        ActionDefinition(
            name="history", handler=_handle_history, summary=_ACTION_SUMMARY["history"]
        ),
        ActionDefinition(
            name="verify-history",
            handler=_handle_verify_history,
            summary=_ACTION_SUMMARY["verify-history"],
        ),
        ActionDefinition(
            name="submit-diff",
            handler=_handle_submit_diff,
            summary=_ACTION_SUMMARY["submit-diff"],
            aliases=("submit_diff",),
        ),
        ActionDefinition(
            name="read-document",
            handler=_handle_read_document,
            summary=_ACTION_SUMMARY["read-document"],
            aliases=("read_document",),
        ),
        ActionDefinition(
            name="document-history",
            handler=_handle_document_history,
            summary=_ACTION_SUMMARY["document-history"],
        ),
        ActionDefinition(
            name="validate-document",
            handler=_handle_validate_document,
            summary=_ACTION_SUMMARY["validate-document"],
        ),
        ActionDefinition(
            name="run-gates",
            handler=_handle_run_gates,
            summary=_ACTION_SUMMARY["run-gates"],
            aliases=("run_gates",),
        ),
        ActionDefinition(
            name="attach-impact",
            handler=_handle_attach_impact,
            summary=_ACTION_SUMMARY["attach-impact"],
        ),
        ActionDefinition(name="signal", handler=_handle_signal, summary=_ACTION_SUMMARY["signal"]),
    ],
)


def dispatch_workflow_action(
    *, action: str, payload: Dict[str, Any], engine: WorkflowEngine
) -> dict:
    return dispatch_with_standard_errors(_WORKFLOW_ROUTER, TOOL_NAME, action, engine=engine, **payload)


def register_unified_workflow_tool(mcp: FastMCP, engine: WorkflowEngine) -> None:
    """Register the consolidated workflow tool."""

    @mcp.tool(name=TOOL_NAME)
    def workflow(
        action: str,
        session_id: Optional[str] = None,
        document: Optional[str] = None,
        diff: Optional[Dict[str, Any]] = None,
        version: Optional[int] = None,
        skip: Optional[bool] = False,
        notes: Optional[str] = None,
        references: Optional[List[str]] = None,
        evidence: Optional[Dict[str, Any]] = None,
        reason: Optional[str] = None,
        impact: Optional[Dict[str, Any]] = None,
        signal: Optional[Dict[str, Any]] = None,
        inputs: Optional[Dict[str, Any]] = None,
        status: Optional[str] = None,
    ) -> dict:
        """Drive a gated development workflow session.

        Actions: start, advance, abort, show, list, history, verify-history,
        submit-diff, read-document, document-history, validate-document,
        run-gates, attach-impact, signal.
        """
        payload = {
            "session_id": session_id,
            "document": document,
            "diff": diff,
            "version": version,
            "skip": skip,
            "notes": notes,
            "references": references,
            "evidence": evidence,
            "reason": reason,
            "impact": impact,
            "signal": signal,
            "inputs": inputs,
            "status": status,
        }
        return dispatch_workflow_action(action=action, payload=payload, engine=engine)

    logger.debug("Registered unified workflow tool")


__all__ = [
    "dispatch_workflow_action",
    "register_unified_workflow_tool",
]
