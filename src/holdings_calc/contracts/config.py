"""
Query configuration for holdings calculator.

QueryConfig carries everything a single query needs: roots, as-of date,
depth bound, categories, and for aggregate mode the grouping, metrics and
filters. It is immutable; build it through the factories:

    config = QueryConfig.per_leaf(roots=[1], as_of=date(2025, 1, 1))
    config = QueryConfig.aggregate(
        roots=[1],
        as_of=date(2025, 1, 1),
        group_by=["region", "sector"],
        having=HavingFilter(min_count=5),
    )

The as-of date is always explicit; there is no ambient default date.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import TYPE_CHECKING

import polars as pl

from holdings_calc.contracts.errors import InvalidQueryError
from holdings_calc.data.schemas import PRICE_COLUMN

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from holdings_calc.data.categories import CategoryRegistry

DEFAULT_MAX_DEPTH = 10
MAX_DEPTH_CEILING = 50
DEFAULT_PERCENTILE = 0.5
DEFAULT_BATCH_SIZE = 10_000

DEFAULT_CATEGORIES = ("portfolio", "risk", "esg", "market_data")


# =============================================================================
# Metric and Filter Specifications
# =============================================================================


@dataclass(frozen=True, eq=False)
class MetricSpec:
    """
    Named numeric expression evaluated per holding.

    Attributes:
        name: Suffix of the output columns (total_<name>, avg_<name>, ...)
        expr: Polars expression over the holdings frame
    """

    name: str
    expr: pl.Expr

    @property
    def required_columns(self) -> set[str]:
        return set(self.expr.meta.root_names())


VALUE_METRIC = MetricSpec("value", pl.col("quantity") * pl.col(PRICE_COLUMN))
WEIGHT_METRIC = MetricSpec("weight", pl.col("weight"))
DEFAULT_METRICS = (VALUE_METRIC, WEIGHT_METRIC)


@dataclass(frozen=True)
class HavingFilter:
    """
    Post-aggregation group filter.

    Groups are kept when count >= min_count and total_value > min_total_value.
    Unset bounds are not applied.
    """

    min_count: int | None = None
    min_total_value: float | None = None

    def to_expr(self) -> pl.Expr | None:
        conditions = []
        if self.min_count is not None:
            conditions.append(pl.col("count") >= self.min_count)
        if self.min_total_value is not None:
            conditions.append(pl.col("total_value") > self.min_total_value)
        if not conditions:
            return None
        expr = conditions[0]
        for condition in conditions[1:]:
            expr = expr & condition
        return expr

    @property
    def required_columns(self) -> set[str]:
        return {"total_value"} if self.min_total_value is not None else set()


# =============================================================================
# Query Configuration
# =============================================================================


@dataclass(frozen=True)
class QueryConfig:
    """
    Configuration for one holdings query.

    Attributes:
        roots: Root node ids
        as_of: Snapshot date for edges and records
        max_depth: Maximum number of nodes in a path (1..MAX_DEPTH_CEILING)
        categories: Category names to resolve
        group_by: Field selectors (aggregate mode only; None = per-leaf mode)
        having: Post-aggregation filter
        metrics: Metric expressions summarised per group
        percentile: Percentile reported per metric
        where: Pre-aggregation row filter over the holdings frame
        sort_by: Group ordering columns (default total_value, count); in
            per-leaf mode, holdings frame ordering (default leaf id)
        descending: Sort direction
        workers: Concurrent leaf resolution workers
        batch_size: Holdings per aggregation partial
    """

    roots: tuple[int, ...]
    as_of: date
    max_depth: int = DEFAULT_MAX_DEPTH
    categories: tuple[str, ...] = DEFAULT_CATEGORIES
    group_by: tuple[str, ...] | None = None
    having: HavingFilter | pl.Expr | None = None
    metrics: tuple[MetricSpec, ...] = DEFAULT_METRICS
    percentile: float = DEFAULT_PERCENTILE
    where: pl.Expr | None = None
    sort_by: tuple[str, ...] | None = None
    descending: bool = True
    workers: int = 1
    batch_size: int = DEFAULT_BATCH_SIZE

    @property
    def is_aggregate(self) -> bool:
        return self.group_by is not None

    @classmethod
    def per_leaf(
        cls,
        roots: Iterable[int],
        as_of: date,
        max_depth: int = DEFAULT_MAX_DEPTH,
        categories: Sequence[str] = DEFAULT_CATEGORIES,
        sort_by: Sequence[str] | None = None,
        descending: bool = True,
        workers: int = 1,
    ) -> QueryConfig:
        """Configuration returning one resolved holding per leaf."""
        return cls(
            roots=tuple(roots),
            as_of=as_of,
            max_depth=max_depth,
            categories=tuple(categories),
            sort_by=tuple(sort_by) if sort_by is not None else None,
            descending=descending,
            workers=workers,
        )

    @classmethod
    def aggregate(
        cls,
        roots: Iterable[int],
        as_of: date,
        group_by: Sequence[str],
        max_depth: int = DEFAULT_MAX_DEPTH,
        categories: Sequence[str] = DEFAULT_CATEGORIES,
        having: HavingFilter | pl.Expr | None = None,
        metrics: Sequence[MetricSpec] = DEFAULT_METRICS,
        percentile: float = DEFAULT_PERCENTILE,
        where: pl.Expr | None = None,
        sort_by: Sequence[str] | None = None,
        descending: bool = True,
        workers: int = 1,
    ) -> QueryConfig:
        """Configuration grouping resolved holdings by inherited fields."""
        return cls(
            roots=tuple(roots),
            as_of=as_of,
            max_depth=max_depth,
            categories=tuple(categories),
            group_by=tuple(group_by),
            having=having,
            metrics=tuple(metrics),
            percentile=percentile,
            where=where,
            sort_by=tuple(sort_by) if sort_by is not None else None,
            descending=descending,
            workers=workers,
        )

    def validate(self, registry: CategoryRegistry) -> None:
        """
        Reject malformed queries before any traversal.

        Raises:
            InvalidQueryError: On empty roots, a max_depth outside
                1..MAX_DEPTH_CEILING, unknown categories, a percentile
                outside [0, 1], or non-positive workers/batch_size
        """
        if not self.roots:
            raise InvalidQueryError("Query must name at least one root")
        if not isinstance(self.as_of, date):
            raise InvalidQueryError(f"as_of must be a date, got {self.as_of!r}")
        if self.max_depth <= 0:
            raise InvalidQueryError(f"max_depth must be positive, got {self.max_depth}")
        if self.max_depth > MAX_DEPTH_CEILING:
            raise InvalidQueryError(
                f"max_depth {self.max_depth} exceeds ceiling {MAX_DEPTH_CEILING}"
            )
        registry.select(self.categories)
        if not 0.0 <= self.percentile <= 1.0:
            raise InvalidQueryError(f"percentile must be within [0, 1], got {self.percentile}")
        if self.workers < 1:
            raise InvalidQueryError(f"workers must be positive, got {self.workers}")
        if self.batch_size < 1:
            raise InvalidQueryError(f"batch_size must be positive, got {self.batch_size}")
