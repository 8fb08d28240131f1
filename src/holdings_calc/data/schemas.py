"""
This module contains the schemas for all data inputs of holdings_calc.

Key Data Inputs:
- Instruments               # Nodes of the ownership graph (portfolios, securities)
- Positions                 # Parent -> child ownership edges with validity interval

Fact Inputs (one frame per attribute category):
- portfolio                 # fact_portfolio_attributes
- risk                      # fact_risk_attributes
- esg                       # fact_esg_scores
- market_data               # fact_market_data
- fundamentals              # fact_fundamentals
- instrument                # instrument reference identifiers

Category frames share the key columns instrument_id plus the category's
date column; remaining columns are the category fields.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import polars as pl

if TYPE_CHECKING:
    from holdings_calc.data.categories import AttributeCategory

INSTRUMENTS_SCHEMA = {
    "instrument_id": pl.Int64,
    "instrument_type": pl.String,
    "ticker": pl.String,
    "isin": pl.String,
}

POSITIONS_SCHEMA = {
    "position_id": pl.Int64,
    "parent_instrument_id": pl.Int64,
    "child_instrument_id": pl.Int64,
    "quantity": pl.Float64,
    "weight": pl.Float64,
    "effective_from": pl.Date,
    "effective_to": pl.Date,
}

# Holdings frame column carrying the leaf price
PRICE_COLUMN = "market_data.price"

REQUIRED_INSTRUMENT_COLUMNS = {"instrument_id", "instrument_type"}

REQUIRED_POSITION_COLUMNS = {
    "parent_instrument_id",
    "child_instrument_id",
    "effective_from",
}


def category_schema(category: AttributeCategory) -> dict[str, pl.DataType | type[pl.DataType]]:
    """Full frame schema for a category: keys then fields."""
    return {
        "instrument_id": pl.Int64,
        category.date_column: pl.Date,
        **category.schema(),
    }
