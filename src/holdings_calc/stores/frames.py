"""
Polars-backed graph and attribute stores.

FrameGraphStore: Ownership graph over instruments and positions frames
FrameAttributeStore: Per-category fact records over one frame per category

Both stores index their frames once at construction into plain dicts so
that per-node reads during traversal are dictionary lookups. They are
read-only after construction and safe to share between worker threads.
"""

from __future__ import annotations

import logging
from bisect import bisect_right
from collections.abc import Mapping
from datetime import date
from typing import Any

import polars as pl

from holdings_calc.contracts.bundles import AttributeRecord, Edge
from holdings_calc.contracts.errors import StoreUnavailableError
from holdings_calc.data.categories import CategoryRegistry
from holdings_calc.data.schemas import (
    INSTRUMENTS_SCHEMA,
    POSITIONS_SCHEMA,
    REQUIRED_INSTRUMENT_COLUMNS,
    REQUIRED_POSITION_COLUMNS,
    category_schema,
)
from holdings_calc.engine.utils import ensure_columns, has_required_columns, to_frame

logger = logging.getLogger(__name__)


# =============================================================================
# Graph Store
# =============================================================================


class FrameGraphStore:
    """
    Ownership graph backed by instruments and positions frames.

    Implements GraphStoreProtocol. Edges of each parent are kept sorted by
    (child id, effective_from, position id) so edges_from is deterministic.

    Usage:
        store = FrameGraphStore(instruments_df, positions_df)
        edges = store.edges_from(1, date(2025, 1, 1))
    """

    def __init__(
        self,
        instruments: pl.DataFrame | pl.LazyFrame,
        positions: pl.DataFrame | pl.LazyFrame,
    ) -> None:
        if not has_required_columns(instruments, REQUIRED_INSTRUMENT_COLUMNS):
            raise StoreUnavailableError(
                f"instruments frame must provide {sorted(REQUIRED_INSTRUMENT_COLUMNS)}"
            )
        if not has_required_columns(positions, REQUIRED_POSITION_COLUMNS):
            raise StoreUnavailableError(
                f"positions frame must provide {sorted(REQUIRED_POSITION_COLUMNS)}"
            )

        instruments_df = ensure_columns(to_frame(instruments), INSTRUMENTS_SCHEMA)
        self._kinds: dict[int, str | None] = dict(zip(
            instruments_df["instrument_id"].to_list(),
            instruments_df["instrument_type"].to_list(),
            strict=True,
        ))

        positions_df = ensure_columns(to_frame(positions), POSITIONS_SCHEMA)
        self_refs = positions_df.filter(
            pl.col("parent_instrument_id") == pl.col("child_instrument_id")
        ).height
        if self_refs:
            logger.warning("Ignoring %d self-referencing positions", self_refs)

        ordered = positions_df.filter(
            pl.col("parent_instrument_id") != pl.col("child_instrument_id")
        ).sort(
            ["parent_instrument_id", "child_instrument_id", "effective_from", "position_id"],
            nulls_last=True,
        )

        self._edges: dict[int, list[Edge]] = {}
        for row in ordered.iter_rows(named=True):
            edge = Edge(
                parent_id=row["parent_instrument_id"],
                child_id=row["child_instrument_id"],
                quantity=row["quantity"],
                weight=row["weight"],
                effective_from=row["effective_from"] or date.min,
                effective_to=row["effective_to"],
                position_id=row["position_id"],
            )
            self._edges.setdefault(edge.parent_id, []).append(edge)

    @property
    def node_count(self) -> int:
        return len(self._kinds)

    @property
    def edge_count(self) -> int:
        return sum(len(edges) for edges in self._edges.values())

    def edges_from(self, node_id: int, as_of: date) -> list[Edge]:
        """Outgoing edges of node_id valid at as_of, ascending by child id."""
        return [edge for edge in self._edges.get(node_id, ()) if edge.is_valid_at(as_of)]

    def node_kind(self, node_id: int) -> str | None:
        return self._kinds.get(node_id)


def instrument_reference_frame(instruments: pl.DataFrame | pl.LazyFrame) -> pl.DataFrame:
    """
    Build the instrument category frame from the instruments table.

    Reference identifiers carry no history, so every row is dated
    date.min and is visible at any as-of date.
    """
    df = ensure_columns(to_frame(instruments), INSTRUMENTS_SCHEMA)
    return df.select(
        pl.col("instrument_id"),
        pl.lit(date.min, dtype=pl.Date).alias("reference_date"),
        pl.col("ticker"),
        pl.col("isin"),
    )


# =============================================================================
# Attribute Store
# =============================================================================


class FrameAttributeStore:
    """
    Category fact records backed by one frame per category.

    Implements AttributeStoreProtocol. lookup returns the latest record
    dated on or before as_of. Categories without a frame have no records.

    Usage:
        store = FrameAttributeStore({"risk": risk_df, "market_data": md_df})
        record = store.lookup(42, "risk", date(2025, 1, 1))
    """

    def __init__(
        self,
        frames: Mapping[str, pl.DataFrame | pl.LazyFrame],
        registry: CategoryRegistry | None = None,
    ) -> None:
        self._registry = registry or CategoryRegistry.default()
        self._index: dict[str, dict[int, tuple[list[date], list[dict[str, Any]]]]] = {}
        for name, frame in frames.items():
            self._index[name] = self._build_index(name, frame)

    def _build_index(
        self,
        name: str,
        frame: pl.DataFrame | pl.LazyFrame,
    ) -> dict[int, tuple[list[date], list[dict[str, Any]]]]:
        category = self._registry.get(name)
        date_col = category.date_column
        if not has_required_columns(frame, {"instrument_id", date_col}):
            raise StoreUnavailableError(
                f"{name} frame must provide instrument_id and {date_col}"
            )

        df = (
            ensure_columns(to_frame(frame), category_schema(category))
            .unique(subset=["instrument_id", date_col], keep="last", maintain_order=True)
            .sort(["instrument_id", date_col])
        )

        index: dict[int, tuple[list[date], list[dict[str, Any]]]] = {}
        fields = category.field_names
        for row in df.iter_rows(named=True):
            dates, records = index.setdefault(row["instrument_id"], ([], []))
            dates.append(row[date_col])
            records.append({f: row[f] for f in fields})
        return index

    @property
    def categories(self) -> tuple[str, ...]:
        return tuple(self._index)

    def lookup(self, node_id: int, category: str, as_of: date) -> AttributeRecord | None:
        """The latest record for (node_id, category) dated on or before as_of."""
        by_node = self._index.get(category)
        if by_node is None:
            return None
        entry = by_node.get(node_id)
        if entry is None:
            return None
        dates, records = entry
        pos = bisect_right(dates, as_of)
        if pos == 0:
            return None
        return AttributeRecord(
            node_id=node_id,
            category=category,
            as_of=dates[pos - 1],
            values=records[pos - 1],
        )
