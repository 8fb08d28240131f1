"""Unit tests for the ResultExporter module.

Tests cover:
- ResultExporter: export_to_parquet, export_to_csv
- ExportResult: frozen dataclass properties
"""

from __future__ import annotations

from datetime import date
from pathlib import Path

import polars as pl
import pytest

from holdings_calc.api.export import ExportResult, ResultExporter
from holdings_calc.api.models import QueryResponse

# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def holdings_df() -> pl.DataFrame:
    return pl.DataFrame(
        {
            "leaf_id": [101, 102, 201],
            "root_id": [1, 1, 1],
            "depth": [3, 3, 3],
            "path": [[1, 10, 101], [1, 10, 102], [1, 20, 201]],
            "quantity": [100.0, 200.0, 10.0],
            "weight": [0.1, 0.1, 0.0667],
            "risk.region": ["EU", "EU", "US"],
        },
        schema_overrides={"depth": pl.Int32},
    )


@pytest.fixture
def groups_df() -> pl.DataFrame:
    return pl.DataFrame({"region": ["EU", "US"], "count": [2, 1], "total_value": [3500.0, 1000.0]})


@pytest.fixture
def per_leaf_response(holdings_df) -> QueryResponse:
    return QueryResponse(success=True, as_of=date(2025, 1, 1), holdings=holdings_df)


@pytest.fixture
def aggregate_response(holdings_df, groups_df) -> QueryResponse:
    return QueryResponse(
        success=True, as_of=date(2025, 1, 1), holdings=holdings_df, groups=groups_df
    )


# =============================================================================
# ExportResult
# =============================================================================


class TestExportResult:
    def test_defaults(self) -> None:
        result = ExportResult(format="csv")

        assert result.files == []
        assert result.row_count == 0

    def test_frozen(self) -> None:
        result = ExportResult(format="parquet")

        with pytest.raises(AttributeError):
            result.format = "csv"


# =============================================================================
# Parquet
# =============================================================================


class TestExportToParquet:
    def test_writes_holdings_only_for_per_leaf(self, per_leaf_response, tmp_path: Path) -> None:
        result = ResultExporter().export_to_parquet(per_leaf_response, tmp_path / "out")

        assert [p.name for p in result.files] == ["holdings.parquet"]
        assert result.row_count == 3

    def test_round_trips_path_column(self, aggregate_response, tmp_path: Path) -> None:
        result = ResultExporter().export_to_parquet(aggregate_response, tmp_path)

        holdings = pl.read_parquet(tmp_path / "holdings.parquet")
        assert [p.name for p in result.files] == ["holdings.parquet", "groups.parquet"]
        assert holdings["path"].to_list()[0] == [1, 10, 101]
        assert pl.read_parquet(tmp_path / "groups.parquet").height == 2


# =============================================================================
# CSV
# =============================================================================


class TestExportToCsv:
    def test_path_column_joined(self, aggregate_response, tmp_path: Path) -> None:
        result = ResultExporter().export_to_csv(aggregate_response, tmp_path)

        holdings = pl.read_csv(tmp_path / "holdings.csv")
        assert result.format == "csv"
        assert holdings["path"].to_list() == ["1/10/101", "1/10/102", "1/20/201"]
        assert pl.read_csv(tmp_path / "groups.csv")["region"].to_list() == ["EU", "US"]

    def test_failed_response_rejected(self, tmp_path: Path) -> None:
        response = QueryResponse(success=False, as_of=date(2025, 1, 1))

        with pytest.raises(ValueError, match="no holdings"):
            ResultExporter().export_to_csv(response, tmp_path)
