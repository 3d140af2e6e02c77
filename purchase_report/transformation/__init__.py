"""
Data Transformation Module
"""
from .normalizers import FieldNormalizer, normalize_records, weekday_name, WEEKDAY_NAMES
from .enrichers import DataEnricher, bucket_days, bucket_labels
from .decomposer import (
    StoreTypeDecomposer,
    StoreTypeSchema,
    decompose_store_types,
    parse_payload,
    sanitize_column_name,
)

__all__ = [
    "FieldNormalizer",
    "normalize_records",
    "weekday_name",
    "WEEKDAY_NAMES",
    "DataEnricher",
    "bucket_days",
    "bucket_labels",
    "StoreTypeDecomposer",
    "StoreTypeSchema",
    "decompose_store_types",
    "parse_payload",
    "sanitize_column_name",
]
