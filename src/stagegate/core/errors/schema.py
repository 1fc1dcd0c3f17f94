"""Document schema error classes."""

from typing import Any, Dict, List, Optional


class SchemaValidationError(Exception):
    """Raised when a document is structurally invalid or violates its schema.

    Attributes:
        document: Name of the offending document.
        errors: One message per violation.
    """

    def __init__(self, document: str, errors: Optional[List[str]] = None) -> None:
        self.document = document
        self.errors = list(errors or [])
        summary = "; ".join(self.errors[:3]) or "invalid structure"
        super().__init__(f"Document '{document}' failed validation: {summary}")

    def to_details(self) -> Dict[str, Any]:
        return {"document": self.document, "errors": list(self.errors)}
