"""
Purchase Report Pipeline

Orchestrates loading, normalization, validation, enrichment, store-type
decomposition and aggregation into a set of named summary tables.

The tables are plain Polars DataFrames with deterministic columns and row
order; charting and narration happen downstream.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional, Union

import pandas as pd
import polars as pl
import structlog

from purchase_report.analytics.aggregation import (
    PURCHASES,
    STORE_TYPE,
    count,
    count_distinct,
    count_where,
    group_summarize,
    mean_of,
    sum_of,
    unpivot_store_types,
    weighted_mean_of,
)
from purchase_report.config import Settings, get_settings
from purchase_report.ingestion.loader import LoaderConfig, RecordLoader
from purchase_report.quality.validators import ValidationResult, create_purchases_validator
from purchase_report.transformation.decomposer import StoreTypeDecomposer, StoreTypeSchema
from purchase_report.transformation.enrichers import (
    AVERAGE_ORDER_VALUE,
    DAYS_TO_FIRST_PURCHASE,
    FIRST_PURCHASE_BUCKET,
    DataEnricher,
)
from purchase_report.transformation.normalizers import FieldNormalizer, NormalizationStats

logger = structlog.get_logger(__name__)


@dataclass
class ReportResult:
    """Result of a report run"""
    input_path: str
    input_rows: int
    output_rows: int
    schema: StoreTypeSchema
    records: pl.DataFrame
    tables: Dict[str, pl.DataFrame]
    validation: ValidationResult
    normalization: Optional[NormalizationStats]
    started_at: datetime
    completed_at: datetime
    output_files: Dict[str, str] = field(default_factory=dict)

    @property
    def duration_seconds(self) -> float:
        return (self.completed_at - self.started_at).total_seconds()

    def to_pandas(self) -> Dict[str, pd.DataFrame]:
        """Report tables as pandas DataFrames for plotting libraries"""
        return {name: table.to_pandas() for name, table in self.tables.items()}


class PurchaseReportPipeline:
    """
    Main report pipeline orchestrator.

    Example:
        pipeline = PurchaseReportPipeline()
        result = pipeline.run("data/user_purchases.csv")
        result.tables["device_summary"]
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        schema: Optional[StoreTypeSchema] = None,
    ):
        self.settings = settings or get_settings()
        self.report = self.settings.report
        self.schema = schema
        self.loader = RecordLoader(LoaderConfig.from_settings(self.report))
        self.normalizer = FieldNormalizer(self.report)
        self.enricher = DataEnricher(self.report)
        self.decomposer = StoreTypeDecomposer(self.report)
        self.validator = create_purchases_validator(self.report)

    def prepare(self, raw: pl.DataFrame) -> pl.DataFrame:
        """Normalize and enrich raw records"""
        df = self.normalizer.normalize(raw)
        return self.enricher.enrich(df)

    def device_summary(self, df: pl.DataFrame) -> pl.DataFrame:
        """Users, spend and referral split per device"""
        r = self.report
        return group_summarize(
            df,
            r.device_column,
            [
                count("users"),
                sum_of(r.spend_column, alias="total_spend"),
                mean_of(r.spend_column, alias="mean_spend"),
                mean_of(r.purchase_count_column, alias="mean_purchases"),
                count_where(r.referral_column, True, alias="referred"),
                count_where(r.referral_column, False, alias="not_referred"),
            ],
        )

    def country_summary(self, df: pl.DataFrame) -> pl.DataFrame:
        """Users, spend and average order value per country"""
        r = self.report
        return group_summarize(
            df,
            r.country_column,
            [
                count("users"),
                sum_of(r.spend_column, alias="total_spend"),
                mean_of(r.spend_column, alias="mean_spend"),
                weighted_mean_of(AVERAGE_ORDER_VALUE, r.purchase_count_column, alias="avg_order_value"),
            ],
            sort_by="total_spend",
        )

    def store_type_summary(self, df: pl.DataFrame, schema: StoreTypeSchema) -> pl.DataFrame:
        """
        Buyers and purchases per store type.

        buyers counts distinct users with at least one purchase of the store
        type; in the Grand Total row it is the number of users who bought
        from any store type, so it is not the sum of the group rows.
        """
        long = unpivot_store_types(df, schema, id_columns=[self.report.user_id_column])
        return group_summarize(
            long,
            STORE_TYPE,
            [
                count_distinct(self.report.user_id_column, alias="buyers"),
                sum_of(PURCHASES, alias="total_purchases"),
                mean_of(PURCHASES, alias="mean_purchases"),
            ],
            filter=pl.col(PURCHASES) > 0,
            sort_by="total_purchases",
        )

    def first_purchase_summary(self, df: pl.DataFrame) -> pl.DataFrame:
        """Time to first purchase, for users who purchased"""
        r = self.report
        return group_summarize(
            df,
            FIRST_PURCHASE_BUCKET,
            [
                count("users"),
                mean_of(DAYS_TO_FIRST_PURCHASE, alias="mean_days"),
                mean_of(r.spend_column, alias="mean_spend"),
            ],
            filter=pl.col(FIRST_PURCHASE_BUCKET).is_not_null() & (pl.col(r.purchase_count_column) > 0),
        )

    def weekday_summary(self, df: pl.DataFrame) -> pl.DataFrame:
        """Users and spend per first-purchase weekday"""
        r = self.report
        return group_summarize(
            df,
            r.weekday_column,
            [
                count("users"),
                sum_of(r.spend_column, alias="total_spend"),
            ],
        )

    def build_tables(self, df: pl.DataFrame, schema: StoreTypeSchema) -> Dict[str, pl.DataFrame]:
        """Compute every report table from decomposed records"""
        return {
            "device_summary": self.device_summary(df),
            "country_summary": self.country_summary(df),
            "store_type_summary": self.store_type_summary(df, schema),
            "first_purchase_summary": self.first_purchase_summary(df),
            "weekday_summary": self.weekday_summary(df),
        }

    def run(self, file_path: Optional[Union[str, Path]] = None) -> ReportResult:
        """
        Run the full report.

        Pipeline:
        1. Load raw records
        2. Normalize and enrich
        3. Validate
        4. Decompose store-type payloads
        5. Aggregate report tables
        """
        started_at = datetime.now(timezone.utc)
        path = str(file_path or self.report.input_path)
        logger.info("Starting purchase report", path=path)

        raw = self.loader.load(path)
        df = self.prepare(raw)
        validation = self.validator.validate(df)
        df, schema = self.decomposer.decompose(df, self.schema)

        if len(df) != len(raw):
            raise RuntimeError(f"Row count changed from {len(raw)} to {len(df)}")

        tables = self.build_tables(df, schema)
        completed_at = datetime.now(timezone.utc)

        logger.info(
            "Purchase report complete",
            rows=len(df),
            store_types=len(schema),
            tables=list(tables),
            validation=validation.status.value,
            duration_seconds=(completed_at - started_at).total_seconds(),
        )

        return ReportResult(
            input_path=path,
            input_rows=len(raw),
            output_rows=len(df),
            schema=schema,
            records=df,
            tables=tables,
            validation=validation,
            normalization=self.normalizer.last_stats,
            started_at=started_at,
            completed_at=completed_at,
        )


def write_tables(
    result: ReportResult,
    output_dir: Union[str, Path],
    fmt: str = "csv",
) -> Dict[str, str]:
    """Write each report table to output_dir as CSV or Parquet"""
    if fmt not in ("csv", "parquet"):
        raise ValueError(f"Unsupported output format: {fmt}")

    output_path = Path(output_dir)
    output_path.mkdir(parents=True, exist_ok=True)

    written = {}
    for name, table in result.tables.items():
        target = output_path / f"{name}.{fmt}"
        if fmt == "csv":
            table.write_csv(target)
        else:
            table.write_parquet(target)
        written[name] = str(target)
        logger.info(f"Written {len(table)} rows to {target}")

    result.output_files.update(written)
    return written
