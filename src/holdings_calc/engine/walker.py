"""
Hierarchy traversal for holdings calculator.

Walks the ownership graph from one or more roots down to every reachable
leaf, producing one LeafPath per discovered root-to-leaf path, then reduces
those to exactly one path per leaf.

Classes:
    HierarchyWalker: Cycle-safe, depth-bounded iterative traversal

Functions:
    select_leaf_paths: Deterministic one-path-per-leaf disambiguation

Usage:
    from holdings_calc.engine.walker import HierarchyWalker, select_leaf_paths

    walker = HierarchyWalker(graph_store)
    paths = select_leaf_paths(walker.walk({1}, date(2025, 1, 1), max_depth=10))
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from typing import TYPE_CHECKING

from holdings_calc.contracts.bundles import LeafPath, WalkStats
from holdings_calc.engine.utils import check_cancelled

if TYPE_CHECKING:
    from datetime import date

    from holdings_calc.contracts.protocols import CancellationToken, GraphStoreProtocol

logger = logging.getLogger(__name__)


class HierarchyWalker:
    """
    Iterative depth-first traversal of the ownership graph.

    A node with no outgoing edges valid at as_of is a leaf and its path is
    emitted. Edges back onto the current path (cycles) and edges that would
    make a path longer than max_depth are pruned and counted; neither is an
    error. A node whose valid edges were all pruned is not a leaf, so nothing
    is emitted for it.

    Children are visited in ascending child id order, so an unchanged
    snapshot always yields the same paths in the same order.
    """

    def __init__(self, graph_store: GraphStoreProtocol) -> None:
        self._graph = graph_store

    def walk(
        self,
        roots: Iterable[int],
        as_of: date,
        max_depth: int,
        cancel: CancellationToken | None = None,
        stats: WalkStats | None = None,
    ) -> Iterator[LeafPath]:
        """
        Lazily yield every root-to-leaf path.

        Args:
            roots: Root node ids, visited in ascending order
            as_of: Snapshot date for edge validity
            max_depth: Maximum number of nodes in an emitted path
            cancel: Optional cancellation signal, checked per node
            stats: Optional counters updated in place

        Yields:
            LeafPath for each discovered leaf path
        """
        stats = stats if stats is not None else WalkStats()

        for root in sorted(set(roots)):
            stats.roots_visited += 1
            logger.debug("Walking root %s as of %s", root, as_of)
            stack: list[LeafPath] = [LeafPath(nodes=(root,))]

            while stack:
                check_cancelled(cancel)
                path = stack.pop()
                edges = [
                    edge for edge in self._graph.edges_from(path.leaf_id, as_of)
                    if edge.is_valid_at(as_of)
                ]

                if not edges:
                    stats.paths_emitted += 1
                    yield path
                    continue

                children: list[LeafPath] = []
                for edge in sorted(edges, key=lambda e: e.child_id):
                    if edge.child_id in path:
                        stats.cycles_pruned += 1
                        continue
                    if path.depth >= max_depth:
                        stats.depth_truncated += 1
                        continue
                    children.append(path.extend(edge))

                # Reversed so the lowest child id is popped first
                stack.extend(reversed(children))


def select_leaf_paths(
    paths: Iterable[LeafPath],
    cancel: CancellationToken | None = None,
) -> list[LeafPath]:
    """
    Select exactly one path per leaf.

    The deepest path wins; among equally deep paths the lexicographically
    greatest node sequence read from the leaf upwards wins (highest ancestor
    ids, most specific first). Paths with identical node sequences, which
    arise from parallel positions between the same nodes, keep the first
    discovered. The result does not depend on discovery order otherwise.

    Args:
        paths: All discovered paths
        cancel: Optional cancellation signal, checked per path

    Returns:
        Selected paths ordered by ascending leaf id
    """
    best: dict[int, LeafPath] = {}
    for path in paths:
        check_cancelled(cancel)
        current = best.get(path.leaf_id)
        if current is None or path.sort_key > current.sort_key:
            best[path.leaf_id] = path
    return [best[leaf_id] for leaf_id in sorted(best)]
