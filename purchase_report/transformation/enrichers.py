"""
Data Enrichment Module

Adds derived attributes used by the report tables:
- Days between signup and first purchase
- Days-to-first-purchase bucket labels
- Average order value
"""

from typing import List, Optional, Sequence

import numpy as np
import polars as pl
import structlog

from purchase_report.config import ReportSettings, get_settings

logger = structlog.get_logger(__name__)

DEFAULT_BUCKET_BOUNDS = (7, 14, 30, 60, 90)

DAYS_TO_FIRST_PURCHASE = "days_to_first_purchase"
FIRST_PURCHASE_BUCKET = "first_purchase_bucket"
AVERAGE_ORDER_VALUE = "average_order_value"


def bucket_labels(bounds: Sequence[int] = DEFAULT_BUCKET_BOUNDS) -> List[str]:
    """
    Labels for the given inclusive upper bounds, in ascending order.

    (7, 14) -> ["0-7 days", "8-14 days", ">14 days"]
    """
    labels = []
    lower = 0
    for upper in bounds:
        labels.append(f"{lower}-{upper} days")
        lower = upper + 1
    labels.append(f">{bounds[-1]} days")
    return labels


def bucket_days(value: Optional[float], bounds: Sequence[int] = DEFAULT_BUCKET_BOUNDS) -> Optional[str]:
    """Bucket a single day count; upper bounds are inclusive"""
    if value is None or np.isnan(value):
        return None
    # first bound >= value; past the last bound lands on the catch-all label
    return bucket_labels(bounds)[int(np.searchsorted(bounds, value, side="left"))]


class DataEnricher:
    """
    Adds derived report columns to normalized purchase records.
    """

    def __init__(self, report: Optional[ReportSettings] = None):
        self.report = report or get_settings().report

    def add_days_to_first_purchase(self, df: pl.DataFrame) -> pl.DataFrame:
        """Whole days from signup to first purchase, null if either is missing"""
        signup = self.report.signup_column
        first = self.report.first_purchase_column
        return df.with_columns(
            (pl.col(first) - pl.col(signup)).dt.total_days().alias(DAYS_TO_FIRST_PURCHASE)
        )

    def add_first_purchase_bucket(
        self,
        df: pl.DataFrame,
        bounds: Optional[Sequence[int]] = None,
        source_column: str = DAYS_TO_FIRST_PURCHASE,
    ) -> pl.DataFrame:
        """Map day counts to interval labels with a final catch-all bucket"""
        bounds = list(bounds or self.report.bucket_bounds)
        labels = bucket_labels(bounds)

        expr = pl.when(pl.col(source_column).is_null()).then(pl.lit(None, dtype=pl.Utf8))
        for upper, label in zip(bounds, labels):
            expr = expr.when(pl.col(source_column) <= upper).then(pl.lit(label))
        expr = expr.otherwise(pl.lit(labels[-1]))

        return df.with_columns(expr.alias(FIRST_PURCHASE_BUCKET))

    def add_average_order_value(self, df: pl.DataFrame) -> pl.DataFrame:
        """Spend per purchase, null when the purchase count is zero or missing"""
        count = self.report.purchase_count_column
        spend = self.report.spend_column
        return df.with_columns(
            pl.when(pl.col(count) > 0)
            .then(pl.col(spend) / pl.col(count))
            .otherwise(None)
            .cast(pl.Float64)
            .alias(AVERAGE_ORDER_VALUE)
        )

    def enrich(self, df: pl.DataFrame) -> pl.DataFrame:
        """Apply all enrichments"""
        df = self.add_days_to_first_purchase(df)
        df = self.add_first_purchase_bucket(df)
        df = self.add_average_order_value(df)

        logger.info(
            "Enriched records",
            rows=len(df),
            without_first_purchase=df[DAYS_TO_FIRST_PURCHASE].null_count(),
        )
        return df
