"""
Result export utilities for holdings calculator.

Pipeline position:
    QueryResponse -> ResultExporter -> Parquet / CSV files

Writes holdings.<ext> and, for aggregate queries, groups.<ext>. The list
typed path column is written natively to parquet and as a "/"-joined
string to CSV.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

import polars as pl

if TYPE_CHECKING:
    from holdings_calc.api.models import QueryResponse

logger = logging.getLogger(__name__)


# =============================================================================
# Export Result
# =============================================================================


@dataclass(frozen=True)
class ExportResult:
    """
    Result of an export operation.

    Attributes:
        format: Export format used ("parquet", "csv")
        files: List of files written
        row_count: Number of holdings rows exported
    """

    format: str
    files: list[Path] = field(default_factory=list)
    row_count: int = 0


# =============================================================================
# Result Exporter
# =============================================================================


class ResultExporter:
    """
    Exports query responses to files.

    Usage:
        exporter = ResultExporter()
        result = exporter.export_to_parquet(response, Path("output/"))
        result = exporter.export_to_csv(response, Path("output/"))
    """

    def export_to_parquet(self, response: QueryResponse, output_dir: Path) -> ExportResult:
        """
        Export holdings and groups to parquet files in output_dir.

        Raises:
            ValueError: If the response carries no holdings
        """
        return self._export(response, Path(output_dir), "parquet")

    def export_to_csv(self, response: QueryResponse, output_dir: Path) -> ExportResult:
        """
        Export holdings and groups to CSV files in output_dir.

        Raises:
            ValueError: If the response carries no holdings
        """
        return self._export(response, Path(output_dir), "csv")

    def _export(self, response: QueryResponse, output_dir: Path, fmt: str) -> ExportResult:
        if response.holdings is None:
            raise ValueError("Response has no holdings to export")

        output_dir.mkdir(parents=True, exist_ok=True)
        files: list[Path] = []

        datasets = {"holdings": response.holdings}
        if response.groups is not None:
            datasets["groups"] = response.groups

        for name, df in datasets.items():
            path = output_dir / f"{name}.{fmt}"
            if fmt == "csv":
                _flatten_lists(df).write_csv(path)
            else:
                df.write_parquet(path)
            files.append(path)

        logger.info("Exported %d files to %s", len(files), output_dir)
        return ExportResult(format=fmt, files=files, row_count=response.holdings.height)


def _flatten_lists(df: pl.DataFrame) -> pl.DataFrame:
    """CSV cannot hold nested columns; join list columns with "/"."""
    list_columns = [name for name, dtype in df.schema.items() if isinstance(dtype, pl.List)]
    if not list_columns:
        return df
    return df.with_columns([
        pl.col(name).cast(pl.List(pl.String)).list.join("/") for name in list_columns
    ])
