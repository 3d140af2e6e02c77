"""
Analytics Module
"""
from .aggregation import (
    GRAND_TOTAL,
    Measure,
    MeasureKind,
    count,
    count_distinct,
    count_where,
    group_summarize,
    mean_of,
    sum_of,
    unpivot_store_types,
    weighted_mean_of,
)

__all__ = [
    "GRAND_TOTAL",
    "Measure",
    "MeasureKind",
    "count",
    "count_distinct",
    "count_where",
    "group_summarize",
    "mean_of",
    "sum_of",
    "unpivot_store_types",
    "weighted_mean_of",
]
