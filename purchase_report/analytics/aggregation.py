"""
Aggregation Pipeline

Declarative group-and-measure summaries over decomposed purchase records.

Each summary has one row per group, ordered by a sort measure descending,
followed by a "Grand Total" row recomputed over the whole filtered
population, so weighted means stay exact.

Missing values:
- sum treats missing as 0
- mean and weighted mean drop missing rows from numerator and denominator
- count always counts every row of the group
- count_distinct ignores missing values
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, List, Optional, Sequence

import polars as pl
import structlog

from purchase_report.errors import SchemaError
from purchase_report.transformation.decomposer import StoreTypeSchema

logger = structlog.get_logger(__name__)

GRAND_TOTAL = "Grand Total"
MISSING_LABEL = "(missing)"

STORE_TYPE = "store_type"
PURCHASES = "purchases"


class MeasureKind(str, Enum):
    """Supported aggregate measures"""
    COUNT = "count"
    COUNT_DISTINCT = "count_distinct"
    SUM = "sum"
    MEAN = "mean"
    WEIGHTED_MEAN = "weighted_mean"
    COUNT_WHERE = "count_where"


@dataclass(frozen=True)
class Measure:
    """A single aggregate measure and its output column name"""
    kind: MeasureKind
    field: Optional[str] = None
    weight_field: Optional[str] = None
    value: Any = None
    skip_missing: bool = True
    alias: Optional[str] = None

    @property
    def name(self) -> str:
        if self.alias:
            return self.alias
        if self.kind == MeasureKind.COUNT:
            return "count"
        if self.kind == MeasureKind.COUNT_WHERE:
            return f"{self.field}_{str(self.value).lower()}"
        if self.kind == MeasureKind.COUNT_DISTINCT:
            return f"distinct_{self.field}"
        return f"{self.kind.value}_{self.field}"

    def as_(self, alias: str) -> "Measure":
        """Copy of this measure with a different output name"""
        return replace(self, alias=alias)

    @property
    def fields(self) -> List[str]:
        """Input columns this measure reads"""
        return [f for f in (self.field, self.weight_field) if f is not None]

    def expr(self) -> pl.Expr:
        """Polars aggregation expression for this measure"""
        if self.kind == MeasureKind.COUNT:
            return pl.len().cast(pl.Int64).alias(self.name)

        col = pl.col(self.field)

        if self.kind == MeasureKind.COUNT_DISTINCT:
            return col.drop_nulls().n_unique().cast(pl.Int64).alias(self.name)

        if self.kind == MeasureKind.SUM:
            return col.fill_null(0).sum().alias(self.name)

        if self.kind == MeasureKind.COUNT_WHERE:
            return (col == self.value).fill_null(False).sum().cast(pl.Int64).alias(self.name)

        if self.kind == MeasureKind.MEAN:
            result = col.cast(pl.Float64).mean()
            if not self.skip_missing:
                result = pl.when(col.null_count() > 0).then(None).otherwise(result)
            return result.alias(self.name)

        if self.kind == MeasureKind.WEIGHTED_MEAN:
            weight = pl.col(self.weight_field).cast(pl.Float64)
            present = col.is_not_null() & weight.is_not_null()
            numerator = pl.when(present).then(col.cast(pl.Float64) * weight).sum()
            denominator = pl.when(present).then(weight).sum()
            result = pl.when(denominator != 0).then(numerator / denominator).otherwise(None)
            if not self.skip_missing:
                result = pl.when(present.not_().any()).then(None).otherwise(result)
            return result.alias(self.name)

        raise ValueError(f"Unsupported measure: {self.kind}")


def count(alias: Optional[str] = None) -> Measure:
    """Number of rows in the group"""
    return Measure(MeasureKind.COUNT, alias=alias)


def count_distinct(field: str, alias: Optional[str] = None) -> Measure:
    """Number of distinct non-missing values of a column in the group"""
    return Measure(MeasureKind.COUNT_DISTINCT, field=field, alias=alias)


def sum_of(field: str, alias: Optional[str] = None) -> Measure:
    """Sum of a column, missing counted as 0"""
    return Measure(MeasureKind.SUM, field=field, alias=alias)


def mean_of(field: str, skip_missing: bool = True, alias: Optional[str] = None) -> Measure:
    """Arithmetic mean of a column"""
    return Measure(MeasureKind.MEAN, field=field, skip_missing=skip_missing, alias=alias)


def weighted_mean_of(
    field: str,
    weight_field: str,
    skip_missing: bool = True,
    alias: Optional[str] = None,
) -> Measure:
    """Mean of a column weighted by another column"""
    return Measure(
        MeasureKind.WEIGHTED_MEAN,
        field=field,
        weight_field=weight_field,
        skip_missing=skip_missing,
        alias=alias,
    )


def count_where(field: str, value: Any, alias: Optional[str] = None) -> Measure:
    """Number of rows where a column equals a value (flag tabulation)"""
    return Measure(MeasureKind.COUNT_WHERE, field=field, value=value, alias=alias)


def _check_columns(df: pl.DataFrame, columns: Sequence[str]) -> None:
    missing = [c for c in columns if c not in df.columns]
    if missing:
        raise SchemaError(f"Columns not found: {missing}")


def group_summarize(
    df: pl.DataFrame,
    group_key: str,
    measures: Sequence[Measure],
    filter: Optional[pl.Expr] = None,
    sort_by: Optional[str] = None,
    grand_total: bool = True,
) -> pl.DataFrame:
    """
    Summarize rows per distinct value of a grouping column.

    Args:
        df: Decomposed records
        group_key: Column to group by; its values are reported as text
        measures: Measures to compute, in output column order
        filter: Optional predicate applied before grouping
        sort_by: Measure name to sort groups by, descending (default: first measure)
        grand_total: Append a "Grand Total" row over the filtered population

    Returns:
        DataFrame with the group key followed by one column per measure
    """
    if not measures:
        raise ValueError("At least one measure is required")

    names = [m.name for m in measures]
    if len(set(names)) != len(names):
        raise ValueError(f"Duplicate measure names: {names}")
    if group_key in names:
        raise ValueError(f"Measure name clashes with group key: {group_key}")

    sort_by = sort_by or names[0]
    if sort_by not in names:
        raise ValueError(f"Sort measure {sort_by!r} is not one of {names}")

    _check_columns(df, [group_key] + [f for m in measures for f in m.fields])

    if filter is not None:
        df = df.filter(filter)

    exprs = [m.expr() for m in measures]

    groups = (
        df.with_columns(pl.col(group_key).cast(pl.Utf8).fill_null(MISSING_LABEL))
        .group_by(group_key)
        .agg(exprs)
        .sort([sort_by, group_key], descending=[True, False], nulls_last=True)
        .select([group_key] + names)
    )

    if grand_total:
        total = df.select(exprs).with_columns(
            pl.lit(GRAND_TOTAL).alias(group_key)
        ).select([group_key] + names)
        groups = pl.concat([groups, total], how="vertical_relaxed")

    logger.debug("Summarized groups", group_key=group_key, groups=len(groups), rows=len(df))
    return groups


def unpivot_store_types(
    df: pl.DataFrame,
    schema: StoreTypeSchema,
    id_columns: Optional[Sequence[str]] = None,
) -> pl.DataFrame:
    """
    Reshape store-type columns into long (store_type, purchases) rows.

    Store types are reported under their original names from the schema.
    """
    id_columns = list(id_columns or [])
    _check_columns(df, id_columns + list(schema.columns))

    if not len(schema):
        return pl.DataFrame(schema={
            **{c: df.schema[c] for c in id_columns},
            STORE_TYPE: pl.Utf8,
            PURCHASES: pl.Int64,
        })

    long = df.unpivot(
        on=list(schema.columns),
        index=id_columns,
        variable_name=STORE_TYPE,
        value_name=PURCHASES,
    )
    return long.with_columns(
        pl.col(STORE_TYPE).replace_strict(
            dict(zip(schema.columns, schema.store_types)),
            return_dtype=pl.Utf8,
        )
    )
