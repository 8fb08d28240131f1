"""
Data transfer bundles for holdings calculator pipeline.

Defines the immutable containers passed between pipeline components:

    GraphStore -> Edge
                    |
            HierarchyWalker -> LeafPath (one per discovered path)
                                    |
                      select_leaf_paths -> LeafPath (one per leaf)
                                                |
                                  HoldingsResolver -> ResolvedHolding
                                                            |
                                                Aggregator -> AggregationResult

HoldingsResultBundle is the output of a full pipeline run. Paths, holdings
and aggregation results are transient: created per query and owned by the
caller once returned.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import TYPE_CHECKING, Any

from holdings_calc.domain.enums import ErrorSeverity, IssueType

if TYPE_CHECKING:
    from collections.abc import Mapping

    import polars as pl


def _factor(value: Any) -> Any:
    """Missing quantities and weights are the multiplicative identity."""
    return 1.0 if value is None else value


@dataclass(frozen=True)
class Edge:
    """
    Ownership position between a parent and a child node.

    Attributes:
        parent_id: Holding node
        child_id: Held node
        quantity: Units of child held by parent (None treated as 1)
        weight: Weight of child within parent (None treated as 1)
        effective_from: First date the position is valid
        effective_to: First date the position is no longer valid (None = open)
        position_id: Source position identifier, if any
    """

    parent_id: int
    child_id: int
    quantity: Any = None
    weight: Any = None
    effective_from: date = date.min
    effective_to: date | None = None
    position_id: int | None = None

    def __post_init__(self) -> None:
        if self.parent_id == self.child_id:
            raise ValueError(f"Edge cannot reference itself: node {self.parent_id}")

    def is_valid_at(self, as_of: date) -> bool:
        """Whether as_of falls inside [effective_from, effective_to)."""
        if self.effective_from > as_of:
            return False
        return self.effective_to is None or as_of < self.effective_to


@dataclass(frozen=True)
class AttributeRecord:
    """
    One category record for a node as of a date.

    Attributes:
        node_id: Node the record belongs to
        category: Category name
        as_of: Record date
        values: Field name -> value (None where undefined)
    """

    node_id: int
    category: str
    as_of: date
    values: Mapping[str, Any] = field(default_factory=dict)

    def get(self, field_name: str) -> Any:
        return self.values.get(field_name)


@dataclass(frozen=True)
class LeafPath:
    """
    Root-to-leaf path with accumulated quantity and weight.

    Index 0 is the root, the last index is the leaf (most specific).
    """

    nodes: tuple[int, ...]
    quantity: Any = 1.0
    weight: Any = 1.0

    @property
    def leaf_id(self) -> int:
        return self.nodes[-1]

    @property
    def root_id(self) -> int:
        return self.nodes[0]

    @property
    def depth(self) -> int:
        return len(self.nodes)

    @property
    def sort_key(self) -> tuple[int, tuple[int, ...]]:
        """Disambiguation key: deeper first, then highest ids most-specific first."""
        return (len(self.nodes), tuple(reversed(self.nodes)))

    def extend(self, edge: Edge) -> LeafPath:
        """Return a new path one level deeper along edge."""
        return LeafPath(
            nodes=(*self.nodes, edge.child_id),
            quantity=self.quantity * _factor(edge.quantity),
            weight=self.weight * _factor(edge.weight),
        )

    def __contains__(self, node_id: object) -> bool:
        return node_id in self.nodes


@dataclass(frozen=True)
class ResolvedHolding:
    """
    Fully resolved leaf holding.

    Attributes:
        leaf_id: Leaf node id
        path: Selected root-to-leaf path
        quantity: Product of edge quantities along the path
        weight: Product of edge weights along the path
        attributes: Category -> field -> inherited value
        leaf_fields: Category -> field -> value read from the leaf only
    """

    leaf_id: int
    path: tuple[int, ...]
    quantity: Any
    weight: Any
    attributes: dict[str, dict[str, Any]] = field(default_factory=dict)
    leaf_fields: dict[str, dict[str, Any]] = field(default_factory=dict)

    @property
    def depth(self) -> int:
        return len(self.path)

    @property
    def root_id(self) -> int:
        return self.path[0]

    def flat(self) -> dict[str, Any]:
        """All resolved fields keyed by "category.field"."""
        out: dict[str, Any] = {}
        for source in (self.attributes, self.leaf_fields):
            for category, values in source.items():
                for name, value in values.items():
                    out[f"{category}.{name}"] = value
        return out

    def get(self, selector: str) -> Any:
        """
        Look up a resolved field by "category.field" or bare field name.

        Raises:
            KeyError: If the selector matches no field or several fields
        """
        flat = self.flat()
        if selector in flat:
            return flat[selector]
        matches = [key for key in flat if key.split(".", 1)[1] == selector]
        if len(matches) != 1:
            raise KeyError(selector)
        return flat[matches[0]]


@dataclass
class WalkStats:
    """Counters collected while walking one query."""

    roots_visited: int = 0
    paths_emitted: int = 0
    cycles_pruned: int = 0
    depth_truncated: int = 0

    def as_dict(self) -> dict[str, int]:
        return {
            "roots_visited": self.roots_visited,
            "paths_emitted": self.paths_emitted,
            "cycles_pruned": self.cycles_pruned,
            "depth_truncated": self.depth_truncated,
        }


@dataclass(frozen=True)
class TraversalIssue:
    """Non-fatal issue recorded during a query."""

    issue_type: IssueType
    message: str
    severity: ErrorSeverity = ErrorSeverity.WARNING
    node_id: int | None = None
    context: dict = field(default_factory=dict)


@dataclass(frozen=True)
class AggregationResult:
    """
    Output from the aggregator.

    Attributes:
        groups: One row per group after the having filter, sorted
        unfiltered: One row per group before the having filter
        group_by: Key column names in output order
    """

    groups: pl.DataFrame
    unfiltered: pl.DataFrame
    group_by: tuple[str, ...] = ()


@dataclass(frozen=True)
class HoldingsResultBundle:
    """
    Output from a full pipeline run.

    Attributes:
        holdings: Resolved holdings in ascending leaf id order
        frame: Holdings as a typed polars DataFrame
        aggregation: Grouped summaries (aggregate mode only)
        stats: Traversal counters
        issues: Non-fatal issues recorded during the run
    """

    holdings: list[ResolvedHolding]
    frame: pl.DataFrame
    aggregation: AggregationResult | None = None
    stats: WalkStats = field(default_factory=WalkStats)
    issues: list[TraversalIssue] = field(default_factory=list)
