"""
Unit tests for hierarchy traversal and leaf disambiguation.

Tests cover:
- Leaf emission and accumulated quantity/weight
- Cycle pruning and the depth guard
- As-of edge validity
- Deterministic one-path-per-leaf selection
- Cooperative cancellation
"""

from datetime import date

import pytest

from holdings_calc.contracts.bundles import Edge, LeafPath, WalkStats
from holdings_calc.contracts.errors import QueryCancelledError
from holdings_calc.engine.walker import HierarchyWalker, select_leaf_paths
from tests.fixtures.graphs import AS_OF, build_stores, position


def walk(instruments, positions, roots, max_depth=10, as_of=AS_OF):
    graph, _ = build_stores(instruments, positions)
    stats = WalkStats()
    paths = list(HierarchyWalker(graph).walk(roots, as_of, max_depth, stats=stats))
    return paths, stats


# =============================================================================
# TRAVERSAL
# =============================================================================


class TestLeafEmission:
    """Paths are emitted for nodes without valid outgoing edges."""

    def test_simple_chain(self) -> None:
        paths, stats = walk(
            {1: "PORTFOLIO", 2: "FUND", 3: "EQUITY"},
            [position(1, 2), position(2, 3)],
            roots=[1],
        )

        assert [p.nodes for p in paths] == [(1, 2, 3)]
        assert stats.paths_emitted == 1
        assert stats.roots_visited == 1

    def test_root_without_edges_is_its_own_leaf(self) -> None:
        paths, _ = walk({1: "EQUITY"}, [], roots=[1])

        assert [p.nodes for p in paths] == [(1,)]
        assert paths[0].depth == 1

    def test_children_visited_in_ascending_order(self) -> None:
        paths, _ = walk(
            {1: "PORTFOLIO", 5: "EQUITY", 3: "EQUITY", 4: "EQUITY"},
            [position(1, 5), position(1, 3), position(1, 4)],
            roots=[1],
        )

        assert [p.leaf_id for p in paths] == [3, 4, 5]

    def test_quantity_and_weight_multiply_along_path(self) -> None:
        paths, _ = walk(
            {1: "PORTFOLIO", 2: "FUND", 3: "EQUITY"},
            [position(1, 2, quantity=2, weight=0.5), position(2, 3, quantity=150, weight=0.2)],
            roots=[1],
        )

        assert paths[0].quantity == pytest.approx(300.0)
        assert paths[0].weight == pytest.approx(0.1)

    def test_missing_quantity_is_identity(self) -> None:
        paths, _ = walk(
            {1: "PORTFOLIO", 2: "EQUITY"},
            [position(1, 2)],
            roots=[1],
        )

        assert paths[0].quantity == 1.0
        assert paths[0].weight == 1.0

    def test_duplicate_roots_walked_once(self) -> None:
        paths, stats = walk({1: "PORTFOLIO", 2: "EQUITY"}, [position(1, 2)], roots=[1, 1])

        assert len(paths) == 1
        assert stats.roots_visited == 1


class TestAsOfValidity:
    """Only edges valid at the query date are followed."""

    def test_edge_not_yet_effective_is_ignored(self) -> None:
        paths, _ = walk(
            {1: "PORTFOLIO", 2: "EQUITY", 3: "EQUITY"},
            [position(1, 2), position(1, 3, effective_from=date(2026, 1, 1))],
            roots=[1],
        )

        assert [p.leaf_id for p in paths] == [2]

    def test_effective_to_is_exclusive(self) -> None:
        instruments = {1: "PORTFOLIO", 2: "EQUITY"}
        positions = [position(1, 2, effective_to=date(2025, 1, 1))]

        before, _ = walk(instruments, positions, roots=[1], as_of=date(2024, 12, 31))
        on_end, _ = walk(instruments, positions, roots=[1], as_of=date(2025, 1, 1))

        assert [p.nodes for p in before] == [(1, 2)]
        # Node 1 has no valid edges on the end date and becomes a leaf
        assert [p.nodes for p in on_end] == [(1,)]

    def test_edge_is_valid_at(self) -> None:
        edge = Edge(1, 2, effective_from=date(2024, 1, 1), effective_to=date(2024, 6, 1))

        assert not edge.is_valid_at(date(2023, 12, 31))
        assert edge.is_valid_at(date(2024, 1, 1))
        assert edge.is_valid_at(date(2024, 5, 31))
        assert not edge.is_valid_at(date(2024, 6, 1))

    def test_self_loop_edge_rejected(self) -> None:
        with pytest.raises(ValueError, match="itself"):
            Edge(7, 7)


class TestCycleSafety:
    """Edges back onto the current path are pruned."""

    def test_two_node_cycle_terminates(self) -> None:
        paths, stats = walk(
            {1: "FUND", 2: "FUND"},
            [position(1, 2), position(2, 1)],
            roots=[1],
        )

        # Node 2's only edge closes the cycle, so node 2 is not a leaf
        assert paths == []
        assert stats.cycles_pruned == 1

    def test_cycle_does_not_hide_other_leaves(self) -> None:
        paths, stats = walk(
            {1: "PORTFOLIO", 2: "FUND", 3: "FUND", 4: "EQUITY"},
            [position(1, 2), position(2, 3), position(3, 2), position(3, 4)],
            roots=[1],
        )

        assert [p.nodes for p in paths] == [(1, 2, 3, 4)]
        assert stats.cycles_pruned == 1

    def test_no_node_repeats_in_any_path(self) -> None:
        paths, _ = walk(
            {1: "FUND", 2: "FUND", 3: "FUND", 4: "EQUITY"},
            [position(1, 2), position(2, 3), position(3, 1), position(3, 4), position(2, 4)],
            roots=[1],
        )

        assert paths
        for path in paths:
            assert len(set(path.nodes)) == len(path.nodes)


class TestDepthGuard:
    """No emitted path is longer than max_depth nodes."""

    @pytest.fixture
    def chain(self):
        instruments = {1: "PORTFOLIO", 2: "FUND", 3: "FUND", 4: "FUND", 5: "EQUITY"}
        positions = [position(1, 2), position(2, 3), position(3, 4), position(4, 5)]
        return instruments, positions

    @pytest.mark.parametrize("max_depth", [1, 2, 3, 4])
    def test_truncated_chain_emits_nothing(self, chain, max_depth: int) -> None:
        paths, stats = walk(*chain, roots=[1], max_depth=max_depth)

        assert paths == []
        assert stats.depth_truncated == 1

    def test_exact_depth_is_allowed(self, chain) -> None:
        paths, stats = walk(*chain, roots=[1], max_depth=5)

        assert [p.depth for p in paths] == [5]
        assert stats.depth_truncated == 0

    def test_shallow_leaves_survive_truncation(self) -> None:
        paths, stats = walk(
            {1: "PORTFOLIO", 2: "EQUITY", 3: "FUND", 4: "EQUITY"},
            [position(1, 2), position(1, 3), position(3, 4)],
            roots=[1],
            max_depth=2,
        )

        assert [p.nodes for p in paths] == [(1, 2)]
        assert stats.depth_truncated == 1


class TestCancellation:
    """Traversal stops when the cancellation signal is set."""

    def test_cancelled_walk_raises(self, cancel_event) -> None:
        graph, _ = build_stores({1: "PORTFOLIO", 2: "EQUITY"}, [position(1, 2)])
        cancel_event.set()

        with pytest.raises(QueryCancelledError):
            list(HierarchyWalker(graph).walk([1], AS_OF, 10, cancel=cancel_event))


# =============================================================================
# DISAMBIGUATION
# =============================================================================


class TestSelectLeafPaths:
    """Exactly one path per leaf, chosen deterministically."""

    def test_deepest_path_wins(self) -> None:
        shallow = LeafPath((1, 2, 9))
        deep = LeafPath((1, 3, 4, 9))

        assert select_leaf_paths([shallow, deep]) == [deep]
        assert select_leaf_paths([deep, shallow]) == [deep]

    def test_tie_broken_by_highest_ids_from_leaf(self) -> None:
        via_2 = LeafPath((1, 2, 9))
        via_3 = LeafPath((1, 3, 9))

        assert select_leaf_paths([via_2, via_3]) == [via_3]
        assert select_leaf_paths([via_3, via_2]) == [via_3]

    def test_tie_compares_most_specific_ancestor_first(self) -> None:
        a = LeafPath((5, 2, 9))
        b = LeafPath((1, 3, 9))

        assert select_leaf_paths([a, b]) == [b]

    def test_identical_sequences_keep_first_discovered(self) -> None:
        first = LeafPath((1, 2), quantity=10.0)
        second = LeafPath((1, 2), quantity=20.0)

        assert select_leaf_paths([first, second])[0].quantity == 10.0

    def test_output_ordered_by_leaf_id(self) -> None:
        paths = [LeafPath((1, 30)), LeafPath((1, 10)), LeafPath((1, 20))]

        assert [p.leaf_id for p in select_leaf_paths(paths)] == [10, 20, 30]

    def test_selection_is_stable_across_runs(self) -> None:
        instruments = {1: "PORTFOLIO", 2: "FUND", 3: "FUND", 4: "EQUITY"}
        positions = [position(1, 2), position(1, 3), position(2, 4), position(3, 4)]

        runs = []
        for _ in range(3):
            paths, _ = walk(instruments, positions, roots=[1])
            runs.append(select_leaf_paths(paths))

        assert runs[0] == runs[1] == runs[2]
        assert runs[0][0].nodes == (1, 3, 4)
