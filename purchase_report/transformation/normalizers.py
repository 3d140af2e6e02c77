"""
Field Normalization Module

Converts raw purchase records into typed columns.
Handles:
- Timestamp parsing with an explicit missing-value policy
- Device label defaulting
- Categorical casting of low-cardinality labels
- Numeric coercion of purchase counts and spend
- Weekday code remapping
- Boolean flag coercion
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

import polars as pl
import structlog

from purchase_report.config import ReportSettings, get_settings
from purchase_report.errors import ParseError, ValidationError

logger = structlog.get_logger(__name__)


WEEKDAY_NAMES: Dict[int, str] = {
    1: "Monday",
    2: "Tuesday",
    3: "Wednesday",
    4: "Thursday",
    5: "Friday",
    6: "Saturday",
    7: "Sunday",
}

DEFAULT_DEVICE = "others"

TRUE_VALUES = ["true", "t", "yes", "y", "1"]
FALSE_VALUES = ["false", "f", "no", "n", "0"]

# Compared case-insensitively against stripped numeric cells
MISSING_NUMBER_MARKERS = ["", "na", "n/a", "null", "none"]


def weekday_name(code) -> str:
    """Map a weekday code 1..7 to its name (Monday = 1)"""
    if isinstance(code, bool) or code not in WEEKDAY_NAMES:
        raise ValidationError(f"Invalid weekday code: {code!r}, expected 1..7")
    return WEEKDAY_NAMES[int(code)]


@dataclass
class NormalizationStats:
    """Statistics from a normalization pass"""
    total_rows: int
    unparseable_dates: Dict[str, int] = field(default_factory=dict)
    unparseable_numbers: Dict[str, int] = field(default_factory=dict)
    devices_defaulted: int = 0


class FieldNormalizer:
    """
    Normalizes raw purchase rows column by column.

    Malformed dates and non-numeric counts or spend become null by default;
    with strict_dates=True or strict_numbers=True the first malformed value
    aborts the batch with ParseError.

    Example:
        normalizer = FieldNormalizer()
        df_norm = normalizer.normalize(df_raw)
    """

    def __init__(
        self,
        report: Optional[ReportSettings] = None,
        strict_dates: Optional[bool] = None,
        strict_numbers: Optional[bool] = None,
    ):
        self.report = report or get_settings().report
        self.strict_dates = self.report.strict_dates if strict_dates is None else strict_dates
        self.strict_numbers = self.report.strict_numbers if strict_numbers is None else strict_numbers
        self.last_stats: Optional[NormalizationStats] = None

    def _parse_dates(
        self,
        df: pl.DataFrame,
        date_columns: List[str],
        stats: NormalizationStats,
    ) -> pl.DataFrame:
        """Parse timestamp columns with the configured format"""
        fmt = self.report.date_format
        for col in date_columns:
            if col not in df.columns:
                continue
            if df[col].dtype == pl.Datetime:
                continue

            raw = df[col].cast(pl.Utf8).str.strip_chars()
            parsed = raw.str.strptime(pl.Datetime, fmt, strict=False)
            failed = (raw.is_not_null() & (raw != "") & parsed.is_null())
            failed_count = int(failed.sum())

            if failed_count:
                first_bad = int(failed.arg_true()[0])
                if self.strict_dates:
                    raise ParseError(
                        f"Unparseable timestamp {raw[first_bad]!r}, expected format {fmt}",
                        column=col,
                        row=first_bad,
                    )
                logger.warning(
                    "Unparseable timestamps set to null",
                    column=col,
                    count=failed_count,
                    first_row=first_bad,
                )
                stats.unparseable_dates[col] = failed_count

            df = df.with_columns(parsed.alias(col))

        return df

    def _coerce_numeric(
        self,
        df: pl.DataFrame,
        column: str,
        dtype: pl.DataType,
        stats: NormalizationStats,
    ) -> pl.DataFrame:
        """
        Cast a raw column to Int64 or Float64.

        Empty cells and the markers in MISSING_NUMBER_MARKERS are missing.
        Any other value that is not a finite number (or not a whole number,
        for an integer target) is unparseable.
        """
        if column not in df.columns:
            return df

        source = df[column]
        if source.dtype.is_numeric():
            raw = source.cast(pl.Utf8)
            present = source.is_not_null()
            as_float = source.cast(pl.Float64)
        else:
            raw = source.cast(pl.Utf8).str.strip_chars()
            present = raw.is_not_null() & ~raw.str.to_lowercase().is_in(MISSING_NUMBER_MARKERS)
            as_float = raw.cast(pl.Float64, strict=False)

        failed = present & (as_float.is_null() | ~as_float.is_finite())
        if dtype.is_integer():
            failed = failed | (present & (as_float != as_float.floor()))
        failed = failed.fill_null(False)
        failed_count = int(failed.sum())

        if failed_count:
            first_bad = int(failed.arg_true()[0])
            if self.strict_numbers:
                raise ParseError(
                    f"Unparseable number {raw[first_bad]!r}, expected {dtype}",
                    column=column,
                    row=first_bad,
                )
            logger.warning(
                "Unparseable numbers set to null",
                column=column,
                count=failed_count,
                first_row=first_bad,
            )
            stats.unparseable_numbers[column] = failed_count

        return df.with_columns(
            pl.when(pl.lit(failed))
            .then(None)
            .otherwise(pl.lit(as_float))
            .cast(dtype)
            .alias(column)
        )

    def _normalize_device(self, df: pl.DataFrame, stats: NormalizationStats) -> pl.DataFrame:
        """Empty or missing device labels become 'others'"""
        col = self.report.device_column
        if col not in df.columns:
            return df

        label = pl.col(col).cast(pl.Utf8)
        is_blank = label.is_null() | (label.str.strip_chars() == "")
        stats.devices_defaulted = int(df.select(is_blank.sum()).item())

        return df.with_columns(
            pl.when(is_blank)
            .then(pl.lit(DEFAULT_DEVICE))
            .otherwise(label)
            .alias(col)
        )

    def _normalize_flag(self, df: pl.DataFrame, column: str) -> pl.DataFrame:
        """Coerce a true/false flag column to Boolean, keeping nulls"""
        if column not in df.columns:
            return df

        dtype = df.schema[column]
        if dtype == pl.Boolean:
            return df
        if dtype.is_numeric():
            return df.with_columns(pl.col(column).cast(pl.Boolean).alias(column))

        text = pl.col(column).cast(pl.Utf8).str.strip_chars().str.to_lowercase()
        known = text.is_in(TRUE_VALUES + FALSE_VALUES)
        unknown = int(df.select((text.is_not_null() & ~known).sum()).item())
        if unknown:
            raise ValidationError(f"{unknown} values are not true/false flags", column=column)

        return df.with_columns(
            pl.when(text.is_null()).then(None)
            .otherwise(text.is_in(TRUE_VALUES))
            .alias(column)
        )

    def _to_categorical(self, df: pl.DataFrame, columns: List[str]) -> pl.DataFrame:
        """Cast low-cardinality labels to categorical"""
        for col in columns:
            if col in df.columns:
                df = df.with_columns(pl.col(col).cast(pl.Utf8).cast(pl.Categorical).alias(col))
        return df

    def _remap_weekday(self, df: pl.DataFrame) -> pl.DataFrame:
        """Replace weekday codes with day names, rejecting anything outside 1..7"""
        col = self.report.weekday_column
        if col not in df.columns:
            return df

        raw = df[col]
        if raw.dtype == pl.Utf8:
            raw = raw.str.strip_chars()
            codes = raw.cast(pl.Float64, strict=False)
        else:
            codes = raw

        for idx, (original, value) in enumerate(zip(raw.to_list(), codes.to_list())):
            if isinstance(value, bool) or value not in WEEKDAY_NAMES:
                raise ValidationError(
                    f"Invalid weekday code: {original!r}, expected 1..7",
                    column=col,
                    row=idx,
                )

        return df.with_columns(
            pl.lit(codes)
            .cast(pl.Int64)
            .replace_strict(WEEKDAY_NAMES, return_dtype=pl.Utf8)
            .alias(col)
        )

    def normalize(self, df: pl.DataFrame) -> pl.DataFrame:
        """
        Normalize raw purchase records.

        Returns a new DataFrame with the same rows in the same order.
        """
        stats = NormalizationStats(total_rows=len(df))

        df = self._parse_dates(df, self.report.date_columns, stats)
        df = self._coerce_numeric(df, self.report.purchase_count_column, pl.Int64, stats)
        df = self._coerce_numeric(df, self.report.spend_column, pl.Float64, stats)
        df = self._normalize_device(df, stats)
        df = self._remap_weekday(df)
        df = self._normalize_flag(df, self.report.referral_column)
        df = self._to_categorical(df, [self.report.country_column, self.report.device_column])

        self.last_stats = stats
        logger.info(
            "Normalized records",
            rows=len(df),
            unparseable_dates=stats.unparseable_dates,
            unparseable_numbers=stats.unparseable_numbers,
            devices_defaulted=stats.devices_defaulted,
        )
        return df


def normalize_records(df: pl.DataFrame, report: Optional[ReportSettings] = None) -> pl.DataFrame:
    """Convenience function to normalize raw purchase records"""
    return FieldNormalizer(report).normalize(df)
