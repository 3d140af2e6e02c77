"""
Error taxonomy for the purchase report pipeline.

Row-local problems (a single unparseable date, an empty payload) degrade to
missing values inside the stages. Everything defined here aborts the batch.
"""

from typing import Optional


class PurchaseReportError(Exception):
    """Base class for all pipeline errors"""

    def __init__(
        self,
        message: str,
        column: Optional[str] = None,
        row: Optional[int] = None,
    ):
        self.message = message
        self.column = column
        self.row = row
        super().__init__(self._format())

    def _format(self) -> str:
        context = []
        if self.column is not None:
            context.append(f"column={self.column!r}")
        if self.row is not None:
            context.append(f"row={self.row}")
        if context:
            return f"{self.message} ({', '.join(context)})"
        return self.message


class RecordIOError(PurchaseReportError, OSError):
    """Input file is missing or unreadable"""


class ParseError(PurchaseReportError):
    """Structural mismatch in raw rows or a malformed structured payload"""


class ValidationError(PurchaseReportError):
    """Value outside its declared domain"""


class SchemaError(PurchaseReportError):
    """Store-type key or column outside the canonical schema"""
