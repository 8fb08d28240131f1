"""
Request and response models for the holdings calculator API.

QueryRequest: Plain-typed query shape accepted by HoldingsService
QueryResponse: Query outcome with holdings, group summaries and errors
APIError: Serialisable error record
PerformanceMetrics: Timing of one query
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import TYPE_CHECKING, Any

from holdings_calc.contracts.config import (
    DEFAULT_CATEGORIES,
    DEFAULT_MAX_DEPTH,
    HavingFilter,
    QueryConfig,
)
from holdings_calc.contracts.errors import InvalidQueryError

if TYPE_CHECKING:
    import polars as pl

HAVING_KEYS = frozenset({"min_count", "min_total_value"})


# =============================================================================
# Request Models
# =============================================================================


@dataclass(frozen=True)
class QueryRequest:
    """
    Holdings query request.

    Attributes:
        roots: Root node ids
        as_of: Snapshot date
        max_depth: Maximum number of nodes in a path
        categories: Category names to resolve
        group_by: Field selectors; None returns one row per leaf
        having: Optional {"min_count": int, "min_total_value": float}
        sort_by: Ordering columns; per-leaf default is leaf id, aggregate
            default is total_value, count
        workers: Concurrent leaf resolution workers
    """

    roots: list[int]
    as_of: date
    max_depth: int = DEFAULT_MAX_DEPTH
    categories: list[str] = field(default_factory=lambda: list(DEFAULT_CATEGORIES))
    group_by: list[str] | None = None
    having: dict[str, Any] | None = None
    sort_by: list[str] | None = None
    workers: int = 1

    def to_config(self) -> QueryConfig:
        """Convert to the engine's QueryConfig.

        Raises:
            InvalidQueryError: If having carries an unknown key
        """
        unknown = sorted(set(self.having or ()) - HAVING_KEYS)
        if unknown:
            raise InvalidQueryError(
                f"Unknown having keys: {unknown}; expected {sorted(HAVING_KEYS)}"
            )

        if self.group_by is None:
            return QueryConfig.per_leaf(
                roots=self.roots,
                as_of=self.as_of,
                max_depth=self.max_depth,
                categories=self.categories,
                sort_by=self.sort_by,
                workers=self.workers,
            )

        having = None
        if self.having:
            having = HavingFilter(
                min_count=self.having.get("min_count"),
                min_total_value=self.having.get("min_total_value"),
            )
        return QueryConfig.aggregate(
            roots=self.roots,
            as_of=self.as_of,
            group_by=self.group_by,
            max_depth=self.max_depth,
            categories=self.categories,
            having=having,
            sort_by=self.sort_by,
            workers=self.workers,
        )


# =============================================================================
# Response Models
# =============================================================================


@dataclass(frozen=True)
class APIError:
    """
    Error record returned to API callers.

    Attributes:
        code: Machine-readable error code
        message: Human-readable description
        severity: "warning" or "error"
        category: Error origin ("query", "store", "cancelled", "traversal")
        details: Additional context
    """

    code: str
    message: str
    severity: str = "error"
    category: str = "query"
    details: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class PerformanceMetrics:
    """Timing of one query."""

    started_at: datetime
    completed_at: datetime
    duration_seconds: float
    holding_count: int

    @property
    def holdings_per_second(self) -> float:
        if self.duration_seconds <= 0:
            return 0.0
        return self.holding_count / self.duration_seconds


@dataclass(frozen=True)
class QueryResponse:
    """
    Outcome of one holdings query.

    Attributes:
        success: False when the query was rejected or failed
        as_of: Snapshot date requested
        holdings: Per-leaf holdings frame (empty on failure)
        groups: Group summaries (aggregate queries only)
        metadata: Traversal counters and query echo
        errors: Errors and warnings raised by the query
        performance: Timing, when the query ran
    """

    success: bool
    as_of: date
    holdings: pl.DataFrame | None = None
    groups: pl.DataFrame | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    errors: list[APIError] = field(default_factory=list)
    performance: PerformanceMetrics | None = None

    @property
    def has_warnings(self) -> bool:
        return any(e.severity == "warning" for e in self.errors)

    @property
    def holding_count(self) -> int:
        return 0 if self.holdings is None else self.holdings.height
