"""
Report Module
"""
from .pipeline import PurchaseReportPipeline, ReportResult, write_tables

__all__ = [
    "PurchaseReportPipeline",
    "ReportResult",
    "write_tables",
]
