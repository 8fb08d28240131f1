"""
File loaders for the frame-backed stores.

Reads one file per table from a directory:

    instruments.<ext>        # required
    positions.<ext>          # required
    <category>.<ext>         # optional, one per registered category

Without an instrument.<ext> file the instrument category is built from the
ticker and isin columns of instruments.<ext>.

Usage:
    from holdings_calc.stores.loader import ParquetStoreLoader

    stores = ParquetStoreLoader(Path("data/")).load()
    stores.graph.edges_from(1, date(2025, 1, 1))
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import polars as pl

from holdings_calc.contracts.errors import StoreUnavailableError
from holdings_calc.data.categories import INSTRUMENT_REFERENCE, CategoryRegistry
from holdings_calc.stores.frames import (
    FrameAttributeStore,
    FrameGraphStore,
    instrument_reference_frame,
)

logger = logging.getLogger(__name__)

REQUIRED_TABLES = ("instruments", "positions")


@dataclass(frozen=True)
class StoreBundle:
    """Graph and attribute stores loaded from one data source."""

    graph: FrameGraphStore
    attributes: FrameAttributeStore


class _FileStoreLoader:
    """Shared directory handling for the file-format loaders."""

    extension = ""

    def __init__(self, base_path: Path | str, registry: CategoryRegistry | None = None) -> None:
        self._base_path = Path(base_path)
        self._registry = registry or CategoryRegistry.default()

    def _scan(self, path: Path) -> pl.LazyFrame:
        raise NotImplementedError

    def _read(self, table: str) -> pl.DataFrame | None:
        path = self._base_path / f"{table}.{self.extension}"
        if not path.exists():
            return None
        try:
            return self._scan(path).collect()
        except (OSError, pl.exceptions.PolarsError) as e:
            raise StoreUnavailableError(f"Failed to read {path}: {e}") from e

    def load(self) -> StoreBundle:
        """
        Load all tables and build the stores.

        Raises:
            StoreUnavailableError: If the directory or a required table is
                missing, or a file cannot be read
        """
        if not self._base_path.is_dir():
            raise StoreUnavailableError(f"Data path does not exist: {self._base_path}")

        tables: dict[str, pl.DataFrame] = {}
        for table in REQUIRED_TABLES:
            df = self._read(table)
            if df is None:
                raise StoreUnavailableError(
                    f"Missing required table {table}.{self.extension} in {self._base_path}"
                )
            tables[table] = df

        facts: dict[str, pl.DataFrame] = {}
        for category in self._registry:
            df = self._read(category.name)
            if df is not None:
                facts[category.name] = df
        reference = INSTRUMENT_REFERENCE.name
        if reference in self._registry and reference not in facts:
            facts[reference] = instrument_reference_frame(tables["instruments"])

        logger.info(
            "Loaded %d instruments, %d positions, %d fact tables from %s",
            tables["instruments"].height,
            tables["positions"].height,
            len(facts),
            self._base_path,
        )
        return StoreBundle(
            graph=FrameGraphStore(tables["instruments"], tables["positions"]),
            attributes=FrameAttributeStore(facts, self._registry),
        )


class ParquetStoreLoader(_FileStoreLoader):
    """Load stores from parquet files."""

    extension = "parquet"

    def _scan(self, path: Path) -> pl.LazyFrame:
        return pl.scan_parquet(path)


class CSVStoreLoader(_FileStoreLoader):
    """Load stores from CSV files, parsing ISO dates."""

    extension = "csv"

    def _scan(self, path: Path) -> pl.LazyFrame:
        return pl.scan_csv(path, try_parse_dates=True)
