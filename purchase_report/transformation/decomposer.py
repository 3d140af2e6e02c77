"""
Store-Type Decomposition

Flattens the per-user JSON map of store type -> purchase count into one
integer column per store type.

The set of store-type columns is an explicit StoreTypeSchema value: it is
inferred (or declared) once, then passed to every stage that needs it.
"""

import json
import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

import polars as pl
import structlog

from purchase_report.config import ReportSettings, get_settings
from purchase_report.errors import ParseError, SchemaError

logger = structlog.get_logger(__name__)

_NON_IDENTIFIER = re.compile(r"[^0-9A-Za-z_]")


def sanitize_column_name(name: str) -> str:
    """Spaces become underscores, other non-alphanumeric characters are dropped"""
    return _NON_IDENTIFIER.sub("", name.replace(" ", "_"))


def parse_payload(text: Optional[str], row: Optional[int] = None) -> Dict[str, int]:
    """
    Parse one store-type payload.

    A missing or blank payload is an empty mapping. Anything that is not a
    flat JSON object of integer counts raises ParseError.
    """
    if text is None or not text.strip():
        return {}

    try:
        payload = json.loads(text)
    except json.JSONDecodeError as e:
        raise ParseError(f"Undecodable store-type payload: {e.msg}", row=row) from e

    if not isinstance(payload, dict):
        raise ParseError(f"Store-type payload must be an object, got {type(payload).__name__}", row=row)

    for key, count in payload.items():
        if isinstance(count, bool) or not isinstance(count, int):
            raise ParseError(f"Store type {key!r} has non-integer count {count!r}", row=row)

    return payload


@dataclass(frozen=True)
class StoreTypeSchema:
    """Canonical store types and their column names, in column order"""
    store_types: Tuple[str, ...] = ()
    columns: Tuple[str, ...] = ()

    def __post_init__(self):
        if len(self.store_types) != len(self.columns):
            raise SchemaError("Store types and columns must have the same length")

    @classmethod
    def declare(cls, store_types: Iterable[str]) -> "StoreTypeSchema":
        """Build a schema from a declared list of store types"""
        keys = tuple(dict.fromkeys(store_types))
        columns = tuple(sanitize_column_name(k) for k in keys)

        seen: Dict[str, str] = {}
        for key, column in zip(keys, columns):
            if not column:
                raise SchemaError(f"Store type {key!r} has no identifier characters")
            if column in seen:
                raise SchemaError(
                    f"Store types {seen[column]!r} and {key!r} both map to column {column!r}"
                )
            seen[column] = key

        return cls(store_types=keys, columns=columns)

    @classmethod
    def infer(
        cls,
        payloads: Iterable[Optional[str]],
        strategy: str = "union",
    ) -> "StoreTypeSchema":
        """
        Infer the schema from raw payloads.

        Args:
            payloads: Payload texts in row order
            strategy: "union" collects every key in first-seen order;
                "first" takes the keys of the first present, non-empty payload

        Returns:
            StoreTypeSchema
        """
        if strategy not in ("union", "first"):
            raise ValueError(f"Unknown schema strategy: {strategy}")

        keys: List[str] = []
        for idx, text in enumerate(payloads):
            mapping = parse_payload(text, row=idx)
            if not mapping:
                continue
            if strategy == "first":
                keys = list(mapping)
                break
            keys.extend(k for k in mapping if k not in keys)

        return cls.declare(keys)

    def __len__(self) -> int:
        return len(self.columns)

    def __contains__(self, store_type: str) -> bool:
        return store_type in self.store_types

    def column_for(self, store_type: str) -> str:
        """Column name of a store type"""
        if store_type not in self.store_types:
            raise SchemaError(f"Unknown store type: {store_type!r}")
        return self.columns[self.store_types.index(store_type)]

    def store_type_for(self, column: str) -> str:
        """Store type of a column name"""
        if column not in self.columns:
            raise SchemaError(f"Unknown store-type column: {column!r}")
        return self.store_types[self.columns.index(column)]


class StoreTypeDecomposer:
    """
    Replaces the payload column with one Int64 column per store type.

    A row missing a store type gets null for it. A payload key outside the
    schema aborts with SchemaError rather than being dropped.

    Example:
        decomposer = StoreTypeDecomposer()
        df_wide, schema = decomposer.decompose(df)
    """

    def __init__(
        self,
        report: Optional[ReportSettings] = None,
        strategy: Optional[str] = None,
    ):
        self.report = report or get_settings().report
        self.payload_column = self.report.payload_column
        self.strategy = strategy or self.report.schema_strategy

    def decompose(
        self,
        df: pl.DataFrame,
        schema: Optional[StoreTypeSchema] = None,
    ) -> Tuple[pl.DataFrame, StoreTypeSchema]:
        """
        Decompose the payload column.

        Args:
            df: Normalized records
            schema: Canonical schema; inferred from the payloads when omitted

        Returns:
            (decomposed DataFrame, schema used)
        """
        col = self.payload_column
        if col not in df.columns:
            raise SchemaError("Payload column not found", column=col)

        payloads = df[col].cast(pl.Utf8).to_list()
        if schema is None:
            schema = StoreTypeSchema.infer(payloads, strategy=self.strategy)

        clashes = [c for c in schema.columns if c in df.columns and c != col]
        if clashes:
            raise SchemaError(f"Store-type columns clash with existing columns: {clashes}")

        values: Dict[str, List[Optional[int]]] = {c: [] for c in schema.columns}
        for idx, text in enumerate(payloads):
            mapping = parse_payload(text, row=idx)
            unknown = [k for k in mapping if k not in schema]
            if unknown:
                raise SchemaError(f"Store types not in canonical set: {unknown}", column=col, row=idx)
            for store_type, column in zip(schema.store_types, schema.columns):
                values[column].append(mapping.get(store_type))

        df = df.drop(col).with_columns([
            pl.Series(column, values[column], dtype=pl.Int64) for column in schema.columns
        ])

        logger.info(
            "Decomposed store-type payloads",
            rows=len(df),
            store_types=list(schema.store_types),
            empty_payloads=sum(1 for p in payloads if p is None or not p.strip()),
        )
        return df, schema


def decompose_store_types(
    df: pl.DataFrame,
    schema: Optional[StoreTypeSchema] = None,
    report: Optional[ReportSettings] = None,
) -> Tuple[pl.DataFrame, StoreTypeSchema]:
    """Convenience function to decompose the payload column"""
    return StoreTypeDecomposer(report).decompose(df, schema)
