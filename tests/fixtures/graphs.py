"""
This module builds small ownership graphs and fact tables ready for testing.

Graphs are described with plain Python values and converted into the
frame-backed stores used by the engine:

    build_stores(
        instruments={1: "PORTFOLIO", 2: "FUND", 3: "EQUITY"},
        positions=[position(1, 2), position(2, 3, quantity=10)],
        facts={"risk": [fact("risk", 2, region="EU")]},
    )

All positions default to effective_from = 2020-01-01 with no end date, and
all facts default to the same date, so any as-of date from 2020 onwards
sees the whole graph.
"""

from __future__ import annotations

from datetime import date
from typing import Any

import polars as pl

from holdings_calc.data.categories import CategoryRegistry
from holdings_calc.data.schemas import POSITIONS_SCHEMA, category_schema
from holdings_calc.stores.frames import FrameAttributeStore, FrameGraphStore

SNAPSHOT_START = date(2020, 1, 1)
AS_OF = date(2025, 1, 1)

_position_ids = iter(range(1, 1_000_000))


def position(
    parent: int,
    child: int,
    quantity: float | None = None,
    weight: float | None = None,
    effective_from: date = SNAPSHOT_START,
    effective_to: date | None = None,
    position_id: int | None = None,
) -> dict[str, Any]:
    """One positions row."""
    return {
        "position_id": position_id if position_id is not None else next(_position_ids),
        "parent_instrument_id": parent,
        "child_instrument_id": child,
        "quantity": None if quantity is None else float(quantity),
        "weight": None if weight is None else float(weight),
        "effective_from": effective_from,
        "effective_to": effective_to,
    }


def fact(
    category: str,
    instrument_id: int,
    as_of: date = SNAPSHOT_START,
    registry: CategoryRegistry | None = None,
    **values: Any,
) -> dict[str, Any]:
    """One fact row for category, with unset fields left null."""
    spec = (registry or CategoryRegistry.default()).get(category)
    row: dict[str, Any] = {"instrument_id": instrument_id, spec.date_column: as_of}
    row.update(dict.fromkeys(spec.field_names))
    row.update(values)
    return row


def instruments_frame(instruments: dict[int, str]) -> pl.DataFrame:
    return pl.DataFrame(
        {
            "instrument_id": list(instruments),
            "instrument_type": list(instruments.values()),
        },
        schema={"instrument_id": pl.Int64, "instrument_type": pl.String},
    )


def positions_frame(positions: list[dict[str, Any]]) -> pl.DataFrame:
    return pl.DataFrame(positions, schema=POSITIONS_SCHEMA)


def fact_frames(
    facts: dict[str, list[dict[str, Any]]],
    registry: CategoryRegistry | None = None,
) -> dict[str, pl.DataFrame]:
    registry = registry or CategoryRegistry.default()
    return {
        name: pl.DataFrame(rows, schema=category_schema(registry.get(name)))
        for name, rows in facts.items()
    }


def build_stores(
    instruments: dict[int, str],
    positions: list[dict[str, Any]],
    facts: dict[str, list[dict[str, Any]]] | None = None,
    registry: CategoryRegistry | None = None,
) -> tuple[FrameGraphStore, FrameAttributeStore]:
    """Build graph and attribute stores from plain values."""
    graph = FrameGraphStore(instruments_frame(instruments), positions_frame(positions))
    attributes = FrameAttributeStore(fact_frames(facts or {}, registry), registry)
    return graph, attributes


# =============================================================================
# Reference fixture: two-level fund structure with 12 priced equities
# =============================================================================

# Portfolio 1 holds funds 10 and 20; each fund holds six equities.
# Region and sector are set on the funds and overridden on some equities.
PORTFOLIO_ID = 1
FUND_EU = 10
FUND_US = 20
EQUITIES_EU = (101, 102, 103, 104, 105, 106)
EQUITIES_US = (201, 202, 203, 204, 205, 206)

EQUITY_PRICES = {
    101: 10.0, 102: 12.5, 103: 8.0, 104: 20.0, 105: 15.0, 106: 11.0,
    201: 100.0, 202: 55.0, 203: 42.0, 204: 77.5, 205: 61.0, 206: 33.0,
}
EQUITY_QUANTITIES = {
    101: 100, 102: 200, 103: 150, 104: 50, 105: 80, 106: 120,
    201: 10, 202: 40, 203: 25, 204: 30, 205: 20, 206: 60,
}
# Equities carrying their own sector; the rest inherit the fund's sector
SECTOR_OVERRIDES = {106: "Energy", 205: "Energy", 206: "Energy"}


def reference_graph() -> tuple[FrameGraphStore, FrameAttributeStore]:
    """
    Portfolio -> 2 funds -> 12 equities.

    Resulting (region, sector) groups:
        (EU, Financials): 101-105   5 holdings
        (EU, Energy):     106       1 holding
        (US, Technology): 201-204   4 holdings
        (US, Energy):     205-206   2 holdings
    """
    instruments = {PORTFOLIO_ID: "PORTFOLIO", FUND_EU: "FUND", FUND_US: "FUND"}
    instruments.update(dict.fromkeys(EQUITIES_EU + EQUITIES_US, "EQUITY"))

    positions = [
        position(PORTFOLIO_ID, FUND_EU, quantity=1, weight=0.6),
        position(PORTFOLIO_ID, FUND_US, quantity=1, weight=0.4),
    ]
    positions += [
        position(FUND_EU, eq, quantity=EQUITY_QUANTITIES[eq], weight=1 / 6) for eq in EQUITIES_EU
    ]
    positions += [
        position(FUND_US, eq, quantity=EQUITY_QUANTITIES[eq], weight=1 / 6) for eq in EQUITIES_US
    ]

    risk = [
        fact("risk", PORTFOLIO_ID, asset_class="Multi Asset", region="Global"),
        fact("risk", FUND_EU, asset_class="Equity", region="EU", sector="Financials"),
        fact("risk", FUND_US, asset_class="Equity", region="US", sector="Technology"),
    ]
    risk += [fact("risk", eq, sector=sector) for eq, sector in SECTOR_OVERRIDES.items()]

    market_data = [
        fact("market_data", eq, price=price, currency="USD")
        for eq, price in EQUITY_PRICES.items()
    ]
    portfolio = [fact("portfolio", PORTFOLIO_ID, portfolio_name="Global Balanced")]

    return build_stores(
        instruments,
        positions,
        facts={"risk": risk, "market_data": market_data, "portfolio": portfolio},
    )
