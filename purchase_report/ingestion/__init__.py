"""
Data Ingestion Module
"""
from .loader import RecordLoader, LoaderConfig, load_records

__all__ = [
    "RecordLoader",
    "LoaderConfig",
    "load_records",
]
