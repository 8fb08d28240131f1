"""
Shared utility functions for the holdings calculation engine.

Provides frame validation helpers used by the stores and the aggregator,
and the cooperative cancellation check used by the lazy stages.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import polars as pl

from holdings_calc.contracts.errors import QueryCancelledError

if TYPE_CHECKING:
    from holdings_calc.contracts.protocols import CancellationToken


def has_required_columns(
    data: pl.DataFrame | pl.LazyFrame | None,
    required_columns: set[str] | None = None,
) -> bool:
    """
    Check if a frame is not None and has the required columns.

    Schema-only check - does not materialise any data.

    Args:
        data: Optional DataFrame or LazyFrame to validate
        required_columns: Column names that must be present (optional)

    Returns:
        True if data is not None and contains all required columns
    """
    if data is None:
        return False
    if required_columns is None:
        return True
    schema = data.collect_schema()
    return required_columns.issubset(set(schema.names()))


def ensure_columns(
    data: pl.DataFrame,
    schema: dict,
) -> pl.DataFrame:
    """
    Add any schema column missing from data as a typed null column.

    Existing columns are cast to the schema dtype so downstream code sees a
    stable layout regardless of the source.
    """
    present = set(data.columns)
    return data.with_columns([
        pl.col(name).cast(dtype) if name in present else pl.lit(None).cast(dtype).alias(name)
        for name, dtype in schema.items()
    ])


def to_frame(data: pl.DataFrame | pl.LazyFrame) -> pl.DataFrame:
    """Collect a LazyFrame; pass a DataFrame through."""
    if isinstance(data, pl.LazyFrame):
        return data.collect()
    return data


def check_cancelled(cancel: CancellationToken | None) -> None:
    """
    Raise if the cancellation signal has been set.

    Raises:
        QueryCancelledError: If cancel is set
    """
    if cancel is not None and cancel.is_set():
        raise QueryCancelledError("Query cancelled")
