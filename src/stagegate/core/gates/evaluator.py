"""Quality gate evaluation.

The evaluator collects ``GateInputs`` from the knowledge store (dependency
edges, complexity records, coverage, and every document the session
referenced), lets the driver override the analyzer-derived parts, then runs
every check. It only reads.
"""

import logging
import math
from numbers import Real
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from pydantic import BaseModel, Field

from stagegate.config.domains import DocumentNamesConfig, GateConfig
from stagegate.core.errors.storage import DocumentCorrupted
from stagegate.core.gates.checks import GateCheck, default_checks
from stagegate.core.gates.models import (
    DependencyEdge,
    DocumentSnapshot,
    FunctionRecord,
    GateInputs,
    GateReport,
)
from stagegate.core.knowledge.schemas import SchemaRegistry
from stagegate.core.knowledge.store import KnowledgeStore

logger = logging.getLogger(__name__)


class SuppliedInputs(BaseModel):
    """Analyzer verdicts handed in by the driver instead of read from documents."""

    model_config = {"extra": "forbid"}

    dependency_edges: Optional[List[DependencyEdge]] = Field(
        None, description="Replaces edges from the dependency index"
    )
    functions: Optional[List[FunctionRecord]] = Field(
        None, description="Replaces complexity records from the codebase index"
    )
    coverage: Optional[Dict[str, float]] = Field(
        None, description="Replaces per-layer coverage from the coverage report"
    )


def _is_number(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool)


def extract_edges(content: Mapping[str, Any]) -> Tuple[List[DependencyEdge], List[str]]:
    """Read dependency edges, plus a message for every record that cannot be used."""
    edges = content.get("edges")
    if edges is None:
        return [], []
    if not isinstance(edges, list):
        return [], ["edges: expected a list of records"]

    records, unreadable = [], []
    for index, item in enumerate(edges):
        if (
            isinstance(item, dict)
            and isinstance(item.get("source"), str)
            and isinstance(item.get("target"), str)
        ):
            records.append(DependencyEdge(source=item["source"], target=item["target"]))
        else:
            unreadable.append(f"edges.{index}: needs string 'source' and 'target'")
    return records, unreadable


def extract_functions(content: Mapping[str, Any]) -> Tuple[List[FunctionRecord], List[str]]:
    """Read complexity records, either a list of records or a name-keyed mapping.

    Records without a name or a non-negative numeric complexity are returned
    as messages instead of being dropped.
    """
    functions = content.get("functions")
    if functions is None:
        return [], []
    if isinstance(functions, dict):
        items = []
        for key, record in functions.items():
            if isinstance(record, dict):
                record = {**record, "name": record.get("name", key)}
            items.append((f"functions.{key}", record))
    elif isinstance(functions, list):
        items = [(f"functions.{index}", record) for index, record in enumerate(functions)]
    else:
        return [], ["functions: expected a list or a mapping of records"]

    records, unreadable = [], []
    for label, item in items:
        if not isinstance(item, dict):
            unreadable.append(f"{label}: expected a record")
            continue
        complexity = item.get("complexity")
        if not isinstance(item.get("name"), str):
            unreadable.append(f"{label}: missing function name")
            continue
        if not _is_number(complexity) or not math.isfinite(complexity) or complexity < 0:
            unreadable.append(f"{label}: complexity {complexity!r} is not a non-negative number")
            continue
        module = item.get("module")
        records.append(
            FunctionRecord(
                name=item["name"],
                complexity=complexity,
                module=module if isinstance(module, str) else None,
            )
        )
    return records, unreadable


def extract_coverage(content: Mapping[str, Any]) -> Dict[str, float]:
    layers = content.get("layers")
    if not isinstance(layers, dict):
        return {}
    return {
        str(layer): float(value) for layer, value in layers.items() if _is_number(value)
    }


class QualityGateEvaluator:
    """Runs the fixed battery of gate checks."""

    def __init__(
        self,
        store: KnowledgeStore,
        *,
        gate_config: Optional[GateConfig] = None,
        documents: Optional[DocumentNamesConfig] = None,
        schemas: Optional[SchemaRegistry] = None,
        checks: Optional[Sequence[GateCheck]] = None,
    ) -> None:
        self.store = store
        self.gate_config = gate_config or GateConfig()
        self.documents = documents or DocumentNamesConfig()
        self.schemas = schemas or SchemaRegistry(self.documents)
        self.checks: List[GateCheck] = list(
            checks if checks is not None else default_checks(self.gate_config, self.schemas)
        )

    def _snapshot(self, name: str) -> DocumentSnapshot:
        try:
            document, version = self.store.read(name)
        except DocumentCorrupted as exc:
            return DocumentSnapshot(name=name, version=exc.version, load_error=exc.reason)
        return DocumentSnapshot(
            name=name,
            version=version,
            checksum=document.checksum,
            content=document.content,
        )

    def _content(self, name: str) -> Dict[str, Any]:
        snapshot = self._snapshot(name)
        return snapshot.content or {}

    def collect_inputs(
        self,
        referenced_documents: Iterable[str],
        supplied: Optional[SuppliedInputs] = None,
    ) -> GateInputs:
        """Gather the inputs for one evaluation.

        Supplied edges or functions replace the document-derived ones along
        with any unreadable-record messages for them.
        """
        edges, unreadable_edges = extract_edges(
            self._content(self.documents.dependency_index)
        )
        functions, unreadable_functions = extract_functions(
            self._content(self.documents.codebase_index)
        )
        inputs = GateInputs(
            dependency_edges=edges,
            functions=functions,
            coverage=extract_coverage(self._content(self.documents.coverage)),
            documents=[self._snapshot(name) for name in sorted(set(referenced_documents))],
            unreadable_edges=unreadable_edges,
            unreadable_functions=unreadable_functions,
        )
        if supplied is not None:
            update: Dict[str, Any] = {}
            if supplied.dependency_edges is not None:
                update.update(dependency_edges=supplied.dependency_edges, unreadable_edges=[])
            if supplied.functions is not None:
                update.update(functions=supplied.functions, unreadable_functions=[])
            if supplied.coverage is not None:
                update["coverage"] = supplied.coverage
            inputs = inputs.model_copy(update=update)
        return inputs

    def evaluate(self, inputs: GateInputs) -> GateReport:
        """Run every check against ``inputs``."""
        results = [check.evaluate(inputs) for check in self.checks]
        report = GateReport.from_checks(results, inputs.digest())
        logger.info(
            "Gate evaluation %s (failed: %s)",
            report.outcome.value,
            ", ".join(report.failed_checks) or "none",
        )
        return report

    def run(self, session: Any, supplied: Optional[SuppliedInputs] = None) -> GateReport:
        """Evaluate the gates for ``session``.

        Args:
            session: Anything exposing ``referenced_documents``
            supplied: Optional analyzer verdicts overriding document data
        """
        return self.evaluate(self.collect_inputs(session.referenced_documents, supplied))
