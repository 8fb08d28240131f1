"""
Aggregation of resolved holdings by inherited attributes.

Groups holdings by a caller-specified tuple of resolved fields and computes
per-group summaries for each metric expression:

    count, total_<m>, avg_<m>, min_<m>, max_<m>, stddev_<m>, p<NN>_<m>

plus hierarchy depth statistics (min_depth, max_depth, avg_depth). Null is
a valid group key value; nulls group together and apart from any non-null
value. A having filter is applied after the summaries are computed.

Holdings are consumed in batches. Each batch is reduced to a partial
summary (count, sum, mean, M2, min, max and the sorted non-null values per
metric); partials combine associatively, so batches or workers may be
reduced independently and merged at the end:

    partial(batch) -> merge(partials) -> finalize(merged)

Standard deviation is population (ddof=0). Percentiles use linear
interpolation over the exact merged values.

Usage:
    from holdings_calc.contracts.config import HavingFilter
    from holdings_calc.engine.aggregator import Aggregator

    result = Aggregator().aggregate(
        holdings,
        group_by=["region", "sector"],
        having=HavingFilter(min_count=5, min_total_value=1_000_000),
        categories=categories,
    )
    result.groups
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Sequence
from itertools import islice
from typing import TYPE_CHECKING

import polars as pl

from holdings_calc.contracts.bundles import AggregationResult, ResolvedHolding
from holdings_calc.contracts.config import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_METRICS,
    DEFAULT_PERCENTILE,
    HavingFilter,
    MetricSpec,
)
from holdings_calc.contracts.errors import InvalidQueryError
from holdings_calc.data.categories import CategoryRegistry
from holdings_calc.engine.frames import holdings_to_frame, with_position_value

if TYPE_CHECKING:
    from holdings_calc.data.categories import AttributeCategory

logger = logging.getLogger(__name__)

_ALL_KEY = "__all"


def percentile_label(percentile: float) -> str:
    """Column prefix for a percentile: 0.5 -> "p50", 0.95 -> "p95"."""
    return f"p{percentile * 100:g}"


def resolve_selectors(
    columns: Sequence[str],
    group_by: Sequence[str],
) -> list[tuple[str, str]]:
    """
    Map field selectors onto holdings frame columns.

    A selector is an exact column name ("risk.region", "depth") or a bare
    field name matching exactly one "<category>.<field>" column ("region").

    Returns:
        (source column, output key name) per selector

    Raises:
        InvalidQueryError: If a selector is unknown or ambiguous, or two
            selectors produce the same key name
    """
    resolved: list[tuple[str, str]] = []
    for selector in group_by:
        if selector in columns:
            source = selector
        else:
            matches = [c for c in columns if "." in c and c.split(".", 1)[1] == selector]
            if not matches:
                raise InvalidQueryError(f"Unknown group-by field '{selector}'")
            if len(matches) > 1:
                raise InvalidQueryError(
                    f"Ambiguous group-by field '{selector}': matches {sorted(matches)}"
                )
            source = matches[0]
        resolved.append((source, source.split(".", 1)[-1]))

    aliases = [alias for _, alias in resolved]
    if len(set(aliases)) != len(aliases):
        raise InvalidQueryError(f"Duplicate group-by fields: {aliases}")
    return resolved


# =============================================================================
# Aggregator
# =============================================================================


class Aggregator:
    """
    Group resolved holdings and compute summary statistics.

    Args:
        metrics: Metric expressions to summarise; metrics referencing
            columns absent from the holdings frame are skipped
        percentile: Percentile reported per metric, in [0, 1]
        registry: Category registry used to type holdings when the caller
            does not pass categories
    """

    def __init__(
        self,
        metrics: Sequence[MetricSpec] = DEFAULT_METRICS,
        percentile: float = DEFAULT_PERCENTILE,
        registry: CategoryRegistry | None = None,
    ) -> None:
        if not 0.0 <= percentile <= 1.0:
            raise InvalidQueryError(f"percentile must be within [0, 1], got {percentile}")
        names = [m.name for m in metrics]
        if len(set(names)) != len(names):
            raise InvalidQueryError(f"Duplicate metric names: {names}")
        self._metrics = tuple(metrics)
        self._percentile = percentile
        self._registry = registry or CategoryRegistry.default()

    @property
    def metrics(self) -> tuple[MetricSpec, ...]:
        return self._metrics

    @property
    def percentile(self) -> float:
        return self._percentile

    # =========================================================================
    # Public API
    # =========================================================================

    def aggregate(
        self,
        holdings: Iterable[ResolvedHolding] | pl.DataFrame,
        group_by: Sequence[str],
        having: HavingFilter | pl.Expr | None = None,
        where: pl.Expr | None = None,
        sort_by: Sequence[str] | None = None,
        descending: bool = True,
        batch_size: int = DEFAULT_BATCH_SIZE,
        categories: Sequence[AttributeCategory] | None = None,
    ) -> AggregationResult:
        """
        Group holdings and summarise each group.

        Args:
            holdings: Resolved holdings, or a holdings frame
            group_by: Field selectors forming the group key, in order
            having: Post-aggregation filter
            where: Pre-aggregation row filter over the holdings frame
            sort_by: Output ordering columns (default total_value, count)
            descending: Sort direction
            batch_size: Holdings per partial summary
            categories: Categories the holdings were resolved over

        Returns:
            AggregationResult with filtered and unfiltered group summaries

        Raises:
            InvalidQueryError: On unknown selectors or sort columns
        """
        keys: list[str] | None = None
        partials: list[pl.DataFrame] = []
        for frame in self._batches(holdings, categories, batch_size):
            partial = self.partial(frame, group_by, where=where)
            if keys is None:
                keys = [alias for _, alias in resolve_selectors(frame.columns, group_by)]
            partials.append(partial)

        merged = partials[0] if len(partials) == 1 else self.merge(partials, keys)
        logger.debug("Aggregated %d batches into %d groups", len(partials), merged.height)
        return self.finalize(merged, keys, having=having, sort_by=sort_by, descending=descending)

    def partial(
        self,
        frame: pl.DataFrame,
        group_by: Sequence[str],
        where: pl.Expr | None = None,
    ) -> pl.DataFrame:
        """
        Reduce one holdings frame to a partial summary per group.

        Args:
            frame: Holdings frame (see holdings_to_frame)
            group_by: Field selectors
            where: Optional pre-aggregation row filter

        Returns:
            One row per group with mergeable intermediate columns
        """
        selectors = resolve_selectors(frame.columns, group_by)
        if where is not None:
            frame = frame.filter(where)

        key_exprs = [pl.col(source).alias(alias) for source, alias in selectors]
        if not key_exprs:
            key_exprs = [pl.lit(True).alias(_ALL_KEY)]
        keys = [expr.meta.output_name() for expr in key_exprs]

        metrics = self._applicable_metrics(frame.columns)
        prepared = frame.select([
            *key_exprs,
            pl.col("depth").alias("__depth"),
            *[m.expr.cast(pl.Float64).alias(f"__m_{m.name}") for m in metrics],
        ])

        aggs = [
            pl.len().cast(pl.Int64).alias("count"),
            pl.col("__depth").sum().cast(pl.Int64).alias("depth__sum"),
            pl.col("__depth").min().alias("depth__min"),
            pl.col("__depth").max().alias("depth__max"),
        ]
        for m in metrics:
            col = pl.col(f"__m_{m.name}")
            aggs.extend([
                col.count().cast(pl.Int64).alias(f"{m.name}__n"),
                col.sum().alias(f"{m.name}__sum"),
                col.mean().alias(f"{m.name}__mean"),
                ((col - col.mean()) ** 2).sum().alias(f"{m.name}__m2"),
                col.min().alias(f"{m.name}__min"),
                col.max().alias(f"{m.name}__max"),
                col.drop_nulls().sort().alias(f"{m.name}__values"),
            ])

        return prepared.group_by(keys, maintain_order=True).agg(aggs)

    def merge(self, partials: Sequence[pl.DataFrame], keys: Sequence[str] | None) -> pl.DataFrame:
        """
        Combine partial summaries computed over disjoint holdings.

        Counts, sums, minima and maxima combine directly. M2 combines
        pairwise as sum(M2_i + n_i * (mean_i - mean)^2) around the merged
        mean, and the value buffers are concatenated.
        """
        keys = list(keys) if keys else [_ALL_KEY]
        combined = pl.concat(list(partials), how="vertical_relaxed")

        aggs = [
            pl.col("count").sum(),
            pl.col("depth__sum").sum(),
            pl.col("depth__min").min(),
            pl.col("depth__max").max(),
        ]
        for name in self._partial_metric_names(combined.columns):
            n = pl.col(f"{name}__n")
            total = pl.col(f"{name}__sum")
            mean = pl.col(f"{name}__mean")
            n_all = n.sum()
            total_all = total.sum()
            aggs.extend([
                n_all.alias(f"{name}__n"),
                total_all.alias(f"{name}__sum"),
                pl.when(n_all > 0).then(total_all / n_all).alias(f"{name}__mean"),
                pl.when(n_all > 0)
                .then(
                    pl.when(n > 0)
                    .then(pl.col(f"{name}__m2") + n * (mean - total_all / n_all) ** 2)
                    .otherwise(0.0)
                    .sum()
                )
                .otherwise(0.0)
                .alias(f"{name}__m2"),
                pl.col(f"{name}__min").min(),
                pl.col(f"{name}__max").max(),
                pl.col(f"{name}__values").explode().drop_nulls().sort(),
            ])

        return combined.group_by(keys, maintain_order=True).agg(aggs)

    def finalize(
        self,
        merged: pl.DataFrame,
        keys: Sequence[str] | None,
        having: HavingFilter | pl.Expr | None = None,
        sort_by: Sequence[str] | None = None,
        descending: bool = True,
    ) -> AggregationResult:
        """Turn merged partials into group summaries, then filter and sort."""
        keys = list(keys) if keys else []
        label = percentile_label(self._percentile)

        stats = [
            pl.col("count"),
            pl.col("depth__min").alias("min_depth"),
            pl.col("depth__max").alias("max_depth"),
            (pl.col("depth__sum") / pl.col("count")).alias("avg_depth"),
        ]
        for name in self._partial_metric_names(merged.columns):
            n = pl.col(f"{name}__n")
            has_values = n > 0
            stats.extend([
                pl.when(has_values).then(pl.col(f"{name}__sum")).alias(f"total_{name}"),
                pl.when(has_values).then(pl.col(f"{name}__sum") / n).alias(f"avg_{name}"),
                pl.col(f"{name}__min").alias(f"min_{name}"),
                pl.col(f"{name}__max").alias(f"max_{name}"),
                pl.when(has_values)
                .then((pl.col(f"{name}__m2") / n).sqrt())
                .alias(f"stddev_{name}"),
                pl.col(f"{name}__values")
                .list.eval(pl.element().quantile(self._percentile, interpolation="linear"))
                .list.first()
                .alias(f"{label}_{name}"),
            ])

        unfiltered = merged.select([*[pl.col(k) for k in keys], *stats])

        if sort_by is None:
            sort_by = ["total_value", "count"] if "total_value" in unfiltered.columns else ["count"]
        missing = [c for c in sort_by if c not in unfiltered.columns]
        if missing:
            raise InvalidQueryError(f"Unknown sort columns: {missing}")
        unfiltered = unfiltered.sort(
            list(sort_by), descending=descending, nulls_last=True, maintain_order=True
        )

        groups = unfiltered
        if having is not None:
            if isinstance(having, HavingFilter):
                missing = having.required_columns - set(unfiltered.columns)
                if missing:
                    raise InvalidQueryError(
                        f"Having filter needs {sorted(missing)}; include market_data in categories"
                    )
                having = having.to_expr()
            if having is not None:
                groups = unfiltered.filter(having)

        return AggregationResult(groups=groups, unfiltered=unfiltered, group_by=tuple(keys))

    # =========================================================================
    # Private Methods
    # =========================================================================

    def _applicable_metrics(self, columns: Sequence[str]) -> list[MetricSpec]:
        present = set(columns)
        applicable = []
        for metric in self._metrics:
            if metric.required_columns <= present:
                applicable.append(metric)
            else:
                logger.debug(
                    "Skipping metric %s: missing %s",
                    metric.name,
                    sorted(metric.required_columns - present),
                )
        return applicable

    def _partial_metric_names(self, columns: Sequence[str]) -> list[str]:
        present = set(columns)
        return [m.name for m in self._metrics if f"{m.name}__n" in present]

    def _batches(
        self,
        holdings: Iterable[ResolvedHolding] | pl.DataFrame,
        categories: Sequence[AttributeCategory] | None,
        batch_size: int,
    ) -> Iterator[pl.DataFrame]:
        """Yield priced holdings frames of at most batch_size rows, at least one."""
        if isinstance(holdings, pl.DataFrame):
            yield holdings
            return

        iterator = iter(holdings)
        first_batch = list(islice(iterator, max(batch_size, 1)))
        if categories is None:
            categories = self._infer_categories(first_batch)
        yield with_position_value(holdings_to_frame(first_batch, categories))

        while True:
            batch = list(islice(iterator, max(batch_size, 1)))
            if not batch:
                return
            yield with_position_value(holdings_to_frame(batch, categories))

    def _infer_categories(self, batch: list[ResolvedHolding]) -> tuple[AttributeCategory, ...]:
        if not batch:
            return tuple(self._registry)
        names = list(dict.fromkeys([*batch[0].attributes, *batch[0].leaf_fields]))
        order = {name: i for i, name in enumerate(self._registry.names)}
        return self._registry.select(sorted(names, key=lambda n: order.get(n, len(order))))
