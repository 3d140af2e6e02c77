"""
Record Loader

Reads the raw user purchase CSV into a Polars DataFrame.
The loader only reads; all coercion happens in the normalizer.
Supports:
- Header and row arity checks
- Declared column types, so a header-only file still has a stable schema
- Configurable delimiter, encoding and null markers

Every known column is declared as raw text. Only the empty cell is a null
marker here, so labels such as the country code "NA" survive; numeric null
markers are handled by the normalizer.
"""

import csv
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Union

import polars as pl
import structlog

from purchase_report.config import ReportSettings, get_settings
from purchase_report.errors import ParseError, RecordIOError

logger = structlog.get_logger(__name__)


@dataclass
class LoaderConfig:
    """Configuration for reading the raw purchase file"""
    delimiter: str = ","
    encoding: str = "utf8"
    required_columns: List[str] = field(default_factory=list)
    column_types: Dict[str, pl.DataType] = field(default_factory=dict)
    null_values: List[str] = field(default_factory=lambda: [""])

    @classmethod
    def from_settings(cls, report: ReportSettings) -> "LoaderConfig":
        """Build loader config from report settings"""
        required = [
            *report.text_columns,
            report.weekday_column,
            report.purchase_count_column,
            report.spend_column,
            report.referral_column,
        ]
        return cls(
            delimiter=report.delimiter,
            encoding=report.encoding,
            required_columns=required,
            column_types={c: pl.Utf8 for c in required},
        )


class RecordLoader:
    """
    Loads the purchase records file.

    Example:
        loader = RecordLoader()
        df = loader.load("data/user_purchases.csv")
    """

    def __init__(self, config: Optional[LoaderConfig] = None):
        self.config = config or LoaderConfig.from_settings(get_settings().report)

    def _python_encoding(self) -> str:
        """Polars spells utf-8 as utf8"""
        return "utf-8" if self.config.encoding == "utf8" else self.config.encoding

    def _read_header_and_check_arity(self, path: Path) -> List[str]:
        """Scan the file once, verifying each row has as many fields as the header"""
        try:
            with open(path, "r", encoding=self._python_encoding(), newline="") as fh:
                reader = csv.reader(fh, delimiter=self.config.delimiter)
                header = next(reader, None)
                if header is None:
                    raise ParseError(f"File {path} is empty, expected a header row")
                expected = len(header)
                for row in reader:
                    if not row:
                        continue
                    if len(row) != expected:
                        raise ParseError(
                            f"Expected {expected} fields, found {len(row)}",
                            row=reader.line_num,
                        )
        except csv.Error as e:
            raise ParseError(f"Malformed CSV: {e}") from e
        except UnicodeDecodeError as e:
            raise RecordIOError(f"Cannot decode {path} as {self.config.encoding}: {e}") from e
        except OSError as e:
            raise RecordIOError(f"Cannot read {path}: {e}") from e
        return header

    def _check_required_columns(self, header: List[str]) -> None:
        missing = [c for c in self.config.required_columns if c not in header]
        if missing:
            raise ParseError(f"Missing required columns: {missing}")

    def _schema_overrides(self, header: List[str]) -> Dict[str, pl.DataType]:
        return {c: t for c, t in self.config.column_types.items() if c in header}

    def load(self, file_path: Union[str, Path]) -> pl.DataFrame:
        """
        Read the raw file into a DataFrame, preserving file order.

        Raises:
            RecordIOError: file missing or unreadable
            ParseError: header or row arity problems
        """
        path = Path(file_path)
        if not path.is_file():
            raise RecordIOError(f"Input file not found: {path}")

        header = self._read_header_and_check_arity(path)
        self._check_required_columns(header)

        try:
            df = pl.read_csv(
                path,
                separator=self.config.delimiter,
                encoding=self.config.encoding,
                null_values=self.config.null_values,
                schema_overrides=self._schema_overrides(header),
                infer_schema_length=None,
            )
        except pl.exceptions.PolarsError as e:
            raise ParseError(f"Failed to parse {path}: {e}") from e
        except OSError as e:
            raise RecordIOError(f"Cannot read {path}: {e}") from e

        logger.info("Loaded records", path=str(path), rows=len(df), columns=len(df.columns))
        return df


def load_records(file_path: Union[str, Path], config: Optional[LoaderConfig] = None) -> pl.DataFrame:
    """Convenience function to load the purchase file"""
    return RecordLoader(config).load(file_path)
