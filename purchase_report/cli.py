"""
Purchase Report CLI

USAGE:
  purchase-report                                   # Use REPORT_INPUT_PATH
  purchase-report data/user_purchases.csv           # Explicit input file
  purchase-report data/user_purchases.csv --output-dir out --format parquet
"""

import argparse
import sys
from typing import List, Optional

import polars as pl
import structlog

from purchase_report.config import get_settings
from purchase_report.config.logging import configure_logging
from purchase_report.errors import PurchaseReportError
from purchase_report.reports.pipeline import PurchaseReportPipeline, write_tables

logger = structlog.get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="purchase-report",
        description="Summarize user purchase records into report tables.",
    )
    parser.add_argument("input", nargs="?", help="Input CSV (default: REPORT_INPUT_PATH)")
    parser.add_argument("--output-dir", help="Write tables to this directory")
    parser.add_argument("--format", choices=["csv", "parquet"], help="Output table format")
    parser.add_argument("--log-level", help="DEBUG, INFO, WARNING or ERROR")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    configure_logging(args.log_level)

    try:
        result = PurchaseReportPipeline(settings).run(args.input)
    except PurchaseReportError as e:
        logger.error("Purchase report failed", error=str(e), error_type=type(e).__name__)
        print(f"error: {e}", file=sys.stderr)
        return 1

    with pl.Config(tbl_rows=-1, tbl_cols=-1):
        for name, table in result.tables.items():
            print(f"\n{name}")
            print(table)

    if args.output_dir:
        write_tables(result, args.output_dir, args.format or settings.report.output_format)

    return 0


if __name__ == "__main__":
    sys.exit(main())
