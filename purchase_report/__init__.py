"""
Purchase Report

Batch summaries of user purchase records.
"""
from .errors import (
    PurchaseReportError,
    ParseError,
    RecordIOError,
    SchemaError,
    ValidationError,
)

__version__ = "1.0.0"

__all__ = [
    "PurchaseReportError",
    "ParseError",
    "RecordIOError",
    "SchemaError",
    "ValidationError",
    "__version__",
]
