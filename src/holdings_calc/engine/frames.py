"""
Conversion of resolved holdings into polars frames.

The holdings frame has the base columns

    leaf_id, root_id, depth, path, quantity, weight

followed by one column per resolved field named "<category>.<field>",
typed from the category descriptors so that batches built independently
concatenate cleanly.
The frame keeps ascending leaf id order unless sort_holdings reorders it,
for example by position_value descending.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

import polars as pl

from holdings_calc.contracts.bundles import ResolvedHolding
from holdings_calc.contracts.errors import InvalidQueryError
from holdings_calc.data.categories import AttributeCategory
from holdings_calc.data.schemas import PRICE_COLUMN

BASE_SCHEMA = {
    "leaf_id": pl.Int64,
    "root_id": pl.Int64,
    "depth": pl.Int32,
    "path": pl.List(pl.Int64),
    "quantity": pl.Float64,
    "weight": pl.Float64,
}


def holdings_schema(categories: Sequence[AttributeCategory]) -> dict:
    """Frame schema for holdings resolved over the given categories."""
    schema = dict(BASE_SCHEMA)
    for category in categories:
        for spec in category.fields:
            schema[f"{category.name}.{spec.name}"] = spec.dtype
    return schema


def holdings_to_frame(
    holdings: Iterable[ResolvedHolding],
    categories: Sequence[AttributeCategory],
) -> pl.DataFrame:
    """
    Build a typed DataFrame from resolved holdings.

    Args:
        holdings: Resolved holdings
        categories: Categories the holdings were resolved over

    Returns:
        DataFrame with one row per holding
    """
    schema = holdings_schema(categories)
    columns: dict[str, list] = {name: [] for name in schema}

    for holding in holdings:
        columns["leaf_id"].append(holding.leaf_id)
        columns["root_id"].append(holding.root_id)
        columns["depth"].append(holding.depth)
        columns["path"].append(list(holding.path))
        columns["quantity"].append(None if holding.quantity is None else float(holding.quantity))
        columns["weight"].append(None if holding.weight is None else float(holding.weight))
        for category in categories:
            values = {
                **holding.attributes.get(category.name, {}),
                **holding.leaf_fields.get(category.name, {}),
            }
            for spec in category.fields:
                columns[f"{category.name}.{spec.name}"].append(values.get(spec.name))

    return pl.DataFrame(columns, schema=schema, strict=False)


def with_position_value(frame: pl.DataFrame) -> pl.DataFrame:
    """Add position_value = quantity * price when the price column is present."""
    if PRICE_COLUMN not in frame.columns:
        return frame
    return frame.with_columns(
        (pl.col("quantity") * pl.col(PRICE_COLUMN)).alias("position_value"),
    )


def sort_holdings(
    frame: pl.DataFrame,
    sort_by: Sequence[str],
    descending: bool = True,
) -> pl.DataFrame:
    """
    Order a holdings frame by the given columns, nulls last.

    Ties keep the ascending leaf id order of the input.

    Raises:
        InvalidQueryError: If a sort column is not in the frame
    """
    missing = [c for c in sort_by if c not in frame.columns]
    if missing:
        raise InvalidQueryError(f"Unknown sort columns: {missing}")
    return frame.sort(list(sort_by), descending=descending, nulls_last=True, maintain_order=True)
