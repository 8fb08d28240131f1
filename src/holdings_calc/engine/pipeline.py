"""
Pipeline Orchestrator for holdings calculator.

Wires the query stages together:
    QueryConfig.validate -> HierarchyWalker -> select_leaf_paths
        -> PathResolver (per leaf) -> holdings frame -> Aggregator

Key responsibilities:
- Reject malformed queries before any traversal
- Resolve one holding per reachable leaf, optionally in parallel
- Record traversal counters and non-fatal issues on the result
- Aggregate resolved holdings when the query groups

Usage:
    from holdings_calc.engine.pipeline import create_pipeline

    pipeline = create_pipeline(graph_store, attribute_store)
    result = pipeline.run(QueryConfig.per_leaf(roots=[1], as_of=date(2025, 1, 1)))
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from holdings_calc.contracts.bundles import (
    AggregationResult,
    HoldingsResultBundle,
    ResolvedHolding,
    TraversalIssue,
    WalkStats,
)
from holdings_calc.data.categories import CategoryRegistry
from holdings_calc.domain.enums import IssueType
from holdings_calc.engine.aggregator import Aggregator
from holdings_calc.engine.frames import holdings_to_frame, sort_holdings, with_position_value
from holdings_calc.engine.resolver import HoldingsResolver

if TYPE_CHECKING:
    import polars as pl

    from holdings_calc.contracts.config import QueryConfig
    from holdings_calc.contracts.protocols import (
        AttributeStoreProtocol,
        CancellationToken,
        GraphStoreProtocol,
    )
    from holdings_calc.data.categories import AttributeCategory

logger = logging.getLogger(__name__)


class HoldingsPipeline:
    """
    Execute holdings queries against a graph store and an attribute store.

    Stores are only read; one pipeline may serve concurrent queries since
    all per-query state (memo caches, counters, issues) is created per run.

    Args:
        graph_store: Ownership graph collaborator
        attribute_store: Category record collaborator
        registry: Category descriptors (defaults to the built-in set)
    """

    def __init__(
        self,
        graph_store: GraphStoreProtocol,
        attribute_store: AttributeStoreProtocol,
        registry: CategoryRegistry | None = None,
    ) -> None:
        self._registry = registry or CategoryRegistry.default()
        self._resolver = HoldingsResolver(graph_store, attribute_store, self._registry)

    @property
    def registry(self) -> CategoryRegistry:
        return self._registry

    # =========================================================================
    # Public API
    # =========================================================================

    def run(
        self,
        config: QueryConfig,
        cancel: CancellationToken | None = None,
    ) -> HoldingsResultBundle:
        """
        Execute one query.

        Args:
            config: Query configuration
            cancel: Optional cooperative cancellation signal

        Returns:
            HoldingsResultBundle with holdings, frame, optional aggregation,
            traversal counters and issues

        Raises:
            InvalidQueryError: If the query is malformed
            StoreUnavailableError: If a store read fails
            QueryCancelledError: If cancel is set mid-query
        """
        config.validate(self._registry)
        categories = self._registry.select(config.categories)
        stats = WalkStats()

        logger.info(
            "Resolving holdings for %d roots as of %s (max_depth=%d, categories=%s)",
            len(config.roots),
            config.as_of,
            config.max_depth,
            ",".join(c.name for c in categories),
        )
        holdings = list(self._resolver.resolve_holdings(
            config.roots,
            config.as_of,
            config.max_depth,
            [c.name for c in categories],
            cancel=cancel,
            workers=config.workers,
            stats=stats,
        ))
        logger.info("Resolved %d holdings (%s)", len(holdings), stats.as_dict())

        frame = self._build_frame(holdings, categories)
        if not config.is_aggregate and config.sort_by:
            frame = sort_holdings(frame, config.sort_by, config.descending)

        aggregation = None
        if config.is_aggregate:
            aggregation = self._run_aggregator(holdings, categories, config)
            logger.info("Aggregated into %d groups", aggregation.groups.height)

        return HoldingsResultBundle(
            holdings=holdings,
            frame=frame,
            aggregation=aggregation,
            stats=stats,
            issues=self._collect_issues(stats, config),
        )

    # =========================================================================
    # Private Methods - Stage Execution
    # =========================================================================

    def _build_frame(
        self,
        holdings: list[ResolvedHolding],
        categories: tuple[AttributeCategory, ...],
    ) -> pl.DataFrame:
        return with_position_value(holdings_to_frame(holdings, categories))

    def _run_aggregator(
        self,
        holdings: list[ResolvedHolding],
        categories: tuple[AttributeCategory, ...],
        config: QueryConfig,
    ) -> AggregationResult:
        aggregator = Aggregator(
            metrics=config.metrics,
            percentile=config.percentile,
            registry=self._registry,
        )
        return aggregator.aggregate(
            holdings,
            group_by=config.group_by,
            having=config.having,
            where=config.where,
            sort_by=config.sort_by,
            descending=config.descending,
            batch_size=config.batch_size,
            categories=categories,
        )

    def _collect_issues(self, stats: WalkStats, config: QueryConfig) -> list[TraversalIssue]:
        issues: list[TraversalIssue] = []
        if stats.depth_truncated:
            logger.warning(
                "Depth guard pruned %d edges at max_depth=%d; holdings below are excluded",
                stats.depth_truncated,
                config.max_depth,
            )
            issues.append(TraversalIssue(
                issue_type=IssueType.DEPTH_TRUNCATED,
                message=(
                    f"{stats.depth_truncated} edges pruned at max_depth={config.max_depth}"
                ),
                context={"max_depth": config.max_depth, "count": stats.depth_truncated},
            ))
        if stats.cycles_pruned:
            issues.append(TraversalIssue(
                issue_type=IssueType.CYCLE_PRUNED,
                message=f"{stats.cycles_pruned} cyclic edges pruned",
                context={"count": stats.cycles_pruned},
            ))
        return issues


# =============================================================================
# Factory Functions
# =============================================================================


def create_pipeline(
    graph_store: GraphStoreProtocol,
    attribute_store: AttributeStoreProtocol,
    registry: CategoryRegistry | None = None,
) -> HoldingsPipeline:
    """Create a pipeline over the given stores."""
    return HoldingsPipeline(graph_store, attribute_store, registry)
