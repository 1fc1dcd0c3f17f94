"""The quality gate checks.

Each check is a small class with a ``name`` and a deterministic
``evaluate(inputs)``. Checks never read storage themselves; the evaluator
collects ``GateInputs`` first.
"""

import fnmatch
import logging
import math
from typing import List, Optional, Sequence

from stagegate.config.domains import GateConfig
from stagegate.core.gates.models import GateCheckResult, GateInputs
from stagegate.core.knowledge.schemas import SchemaRegistry
from stagegate.core.knowledge.tree import iter_wire_problems

logger = logging.getLogger(__name__)


def _format_number(value: float) -> str:
    return f"{value:g}"


def module_matches(module: str, patterns: Sequence[str]) -> bool:
    """True when ``module`` matches any glob; ``pkg.*`` also matches ``pkg``."""
    for pattern in patterns:
        if fnmatch.fnmatchcase(module, pattern):
            return True
        if pattern.endswith(".*") and module == pattern[:-2]:
            return True
    return False


class GateCheck:
    """Base class for a named gate check."""

    name: str = ""

    def __init__(self, config: GateConfig) -> None:
        self.config = config

    def evaluate(self, inputs: GateInputs) -> GateCheckResult:
        return GateCheckResult.from_diagnostics(self.name, self.diagnose(inputs))

    def diagnose(self, inputs: GateInputs) -> List[str]:
        raise NotImplementedError


class LayerBoundaryCheck(GateCheck):
    """Core-logic modules must not depend on presentation modules."""

    name = "LayerBoundary"

    def diagnose(self, inputs: GateInputs) -> List[str]:
        offending = list(inputs.unreadable_edges)
        for edge in inputs.dependency_edges:
            if module_matches(edge.source, self.config.core_modules) and module_matches(
                edge.target, self.config.presentation_modules
            ):
                offending.append(f"{edge.source} -> {edge.target}")
        return offending


class ComplexityCeilingCheck(GateCheck):
    """No recorded function may exceed the complexity threshold."""

    name = "ComplexityCeiling"

    def diagnose(self, inputs: GateInputs) -> List[str]:
        threshold = self.config.complexity_threshold
        diagnostics = list(inputs.unreadable_functions)
        diagnostics.extend(
            f"{record.name}: complexity {_format_number(record.complexity)} "
            f"exceeds {threshold}"
            for record in inputs.functions
            if record.complexity > threshold
        )
        return diagnostics


class CoverageThresholdCheck(GateCheck):
    """Every configured layer must meet its coverage minimum."""

    name = "CoverageThreshold"

    def diagnose(self, inputs: GateInputs) -> List[str]:
        diagnostics = []
        for layer, minimum in sorted(self.config.coverage_minima.items()):
            recorded = inputs.coverage.get(layer)
            if recorded is None:
                diagnostics.append(
                    f"{layer}: no coverage recorded (minimum {_format_number(minimum)}%)"
                )
            elif not math.isfinite(recorded):
                diagnostics.append(f"{layer}: coverage {recorded} is not a finite number")
            elif recorded < minimum:
                diagnostics.append(
                    f"{layer}: {_format_number(recorded)}% below minimum "
                    f"{_format_number(minimum)}%"
                )
        return diagnostics


class DocumentValidityCheck(GateCheck):
    """Referenced documents must be well formed and match their schema."""

    name = "DocumentValidity"

    def __init__(self, config: GateConfig, schemas: Optional[SchemaRegistry] = None) -> None:
        super().__init__(config)
        self.schemas = schemas or SchemaRegistry()

    def diagnose(self, inputs: GateInputs) -> List[str]:
        diagnostics = []
        for snapshot in inputs.documents:
            label = f"{snapshot.name}@{snapshot.version}"
            if snapshot.load_error:
                diagnostics.append(f"{label}: {snapshot.load_error}")
                continue
            content = snapshot.content or {}
            problems = list(iter_wire_problems(content))
            if problems:
                diagnostics.extend(f"{label}: {problem}" for problem in problems)
                continue
            diagnostics.extend(
                f"{label}: {error}" for error in self.schemas.validate(snapshot.name, content)
            )
        return diagnostics


def default_checks(
    config: GateConfig, schemas: Optional[SchemaRegistry] = None
) -> List[GateCheck]:
    """The fixed battery, in report order."""
    return [
        LayerBoundaryCheck(config),
        ComplexityCeilingCheck(config),
        CoverageThresholdCheck(config),
        DocumentValidityCheck(config, schemas),
    ]
