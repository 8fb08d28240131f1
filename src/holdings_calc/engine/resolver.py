"""
Attribute inheritance resolution for holdings calculator.

Resolves category fields for leaf holdings using "nearest defined ancestor
wins" semantics:
- Inheritable fields: scan the path from the leaf (most specific) up to the
  root, skipping nodes the category scope excludes, and take the first
  non-null value per field
- Leaf-only fields: read from the leaf's own record only; values defined
  on ancestors are ignored

Classes:
    PathResolver: Per-path, per-category field resolution
    HoldingsResolver: Walk + disambiguate + resolve for a set of roots

Usage:
    from holdings_calc.engine.resolver import HoldingsResolver

    resolver = HoldingsResolver(graph_store, attribute_store)
    for holding in resolver.resolve_holdings({1}, as_of, 10, ["risk", "market_data"]):
        ...
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Sequence
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING, Any

from holdings_calc.contracts.bundles import LeafPath, ResolvedHolding, WalkStats
from holdings_calc.data.categories import AttributeCategory, CategoryRegistry
from holdings_calc.engine.utils import check_cancelled
from holdings_calc.engine.walker import HierarchyWalker, select_leaf_paths

if TYPE_CHECKING:
    from datetime import date

    from holdings_calc.contracts.bundles import AttributeRecord
    from holdings_calc.contracts.protocols import (
        AttributeStoreProtocol,
        CancellationToken,
        GraphStoreProtocol,
    )

logger = logging.getLogger(__name__)

_UNSET = object()


class PathResolver:
    """
    Resolve category fields along a single path.

    Memoises node kinds and attribute lookups, so one instance should serve
    one query (or one worker within a query) and then be discarded.
    """

    def __init__(
        self,
        graph_store: GraphStoreProtocol,
        attribute_store: AttributeStoreProtocol,
    ) -> None:
        self._graph = graph_store
        self._attributes = attribute_store
        self._kinds: dict[int, str | None] = {}
        self._records: dict[tuple[int, str, date], AttributeRecord | None] = {}

    def _kind(self, node_id: int) -> str | None:
        kind = self._kinds.get(node_id, _UNSET)
        if kind is _UNSET:
            kind = self._graph.node_kind(node_id)
            self._kinds[node_id] = kind
        return kind

    def _record(self, node_id: int, category: str, as_of: date) -> AttributeRecord | None:
        key = (node_id, category, as_of)
        record = self._records.get(key, _UNSET)
        if record is _UNSET:
            record = self._attributes.lookup(node_id, category, as_of)
            self._records[key] = record
        return record

    def resolve(
        self,
        path: Sequence[int] | LeafPath,
        category: AttributeCategory,
        as_of: date,
    ) -> dict[str, Any]:
        """
        Resolve every field of category for the leaf at the end of path.

        Args:
            path: Node ids from root (first) to leaf (last)
            category: Category descriptor
            as_of: Snapshot date for record lookups

        Returns:
            Field name -> resolved value (None where no node defines it)
        """
        nodes = path.nodes if isinstance(path, LeafPath) else tuple(path)
        resolved: dict[str, Any] = dict.fromkeys(category.field_names)

        pending = set(category.inheritable_fields)
        for node_id in reversed(nodes):
            if not pending:
                break
            if not category.allows(self._kind(node_id)):
                continue
            record = self._record(node_id, category.name, as_of)
            if record is None:
                continue
            for name in list(pending):
                value = record.get(name)
                if value is not None:
                    resolved[name] = value
                    pending.discard(name)

        leaf_only = category.leaf_only_fields
        if leaf_only and nodes:
            leaf = nodes[-1]
            if category.allows(self._kind(leaf)):
                record = self._record(leaf, category.name, as_of)
                if record is not None:
                    for name in leaf_only:
                        resolved[name] = record.get(name)

        return resolved

    def resolve_many(
        self,
        path: Sequence[int] | LeafPath,
        categories: Iterable[AttributeCategory],
        as_of: date,
    ) -> dict[str, dict[str, Any]]:
        """Resolve several categories for one path, keyed by category name."""
        return {category.name: self.resolve(path, category, as_of) for category in categories}


class HoldingsResolver:
    """
    Produce one fully resolved holding per leaf reachable from the roots.

    Combines HierarchyWalker, select_leaf_paths and PathResolver. Resolution
    is lazy per leaf; with workers > 1 disjoint chunks of leaves are
    resolved concurrently, each chunk with its own PathResolver, and results
    are yielded in ascending leaf id order.
    """

    def __init__(
        self,
        graph_store: GraphStoreProtocol,
        attribute_store: AttributeStoreProtocol,
        registry: CategoryRegistry | None = None,
    ) -> None:
        self._graph = graph_store
        self._attributes = attribute_store
        self._registry = registry or CategoryRegistry.default()
        self._walker = HierarchyWalker(graph_store)

    @property
    def registry(self) -> CategoryRegistry:
        return self._registry

    def leaf_paths(
        self,
        roots: Iterable[int],
        as_of: date,
        max_depth: int,
        cancel: CancellationToken | None = None,
        stats: WalkStats | None = None,
    ) -> list[LeafPath]:
        """Walk from roots and select one path per leaf."""
        return select_leaf_paths(
            self._walker.walk(roots, as_of, max_depth, cancel=cancel, stats=stats),
            cancel=cancel,
        )

    def resolve_path(
        self,
        path: LeafPath,
        categories: Sequence[AttributeCategory],
        as_of: date,
        path_resolver: PathResolver | None = None,
    ) -> ResolvedHolding:
        """Resolve one selected path into a ResolvedHolding."""
        path_resolver = path_resolver or PathResolver(self._graph, self._attributes)
        attributes: dict[str, dict[str, Any]] = {}
        leaf_fields: dict[str, dict[str, Any]] = {}
        for category in categories:
            values = path_resolver.resolve(path, category, as_of)
            inheritable = category.inheritable_fields
            if inheritable:
                attributes[category.name] = {name: values[name] for name in inheritable}
            leaf_only = category.leaf_only_fields
            if leaf_only:
                leaf_fields[category.name] = {name: values[name] for name in leaf_only}

        return ResolvedHolding(
            leaf_id=path.leaf_id,
            path=path.nodes,
            quantity=path.quantity,
            weight=path.weight,
            attributes=attributes,
            leaf_fields=leaf_fields,
        )

    def resolve_holdings(
        self,
        roots: Iterable[int],
        as_of: date,
        max_depth: int,
        categories: Iterable[str],
        cancel: CancellationToken | None = None,
        workers: int = 1,
        stats: WalkStats | None = None,
    ) -> Iterator[ResolvedHolding]:
        """
        Lazily resolve every leaf reachable from roots.

        Args:
            roots: Root node ids
            as_of: Snapshot date
            max_depth: Maximum number of nodes in a path
            categories: Category names to resolve
            cancel: Optional cancellation signal, checked between leaves
            workers: Number of concurrent resolution workers
            stats: Optional traversal counters updated in place

        Yields:
            ResolvedHolding per leaf in ascending leaf id order

        Raises:
            InvalidQueryError: If a category name is unknown
            QueryCancelledError: If cancel is set mid-query
        """
        selected = self._registry.select(categories)
        paths = self.leaf_paths(roots, as_of, max_depth, cancel=cancel, stats=stats)
        logger.debug("Resolving %d leaves across %d categories", len(paths), len(selected))

        if workers <= 1 or len(paths) <= 1:
            path_resolver = PathResolver(self._graph, self._attributes)
            for path in paths:
                check_cancelled(cancel)
                yield self.resolve_path(path, selected, as_of, path_resolver)
            return

        yield from self._resolve_parallel(paths, selected, as_of, cancel, workers)

    def _resolve_parallel(
        self,
        paths: list[LeafPath],
        categories: Sequence[AttributeCategory],
        as_of: date,
        cancel: CancellationToken | None,
        workers: int,
    ) -> Iterator[ResolvedHolding]:
        chunk_size = -(-len(paths) // workers)
        chunks = [paths[i:i + chunk_size] for i in range(0, len(paths), chunk_size)]

        def resolve_chunk(chunk: list[LeafPath]) -> list[ResolvedHolding]:
            path_resolver = PathResolver(self._graph, self._attributes)
            out = []
            for path in chunk:
                check_cancelled(cancel)
                out.append(self.resolve_path(path, categories, as_of, path_resolver))
            return out

        with ThreadPoolExecutor(max_workers=len(chunks), thread_name_prefix="resolve") as executor:
            futures = [executor.submit(resolve_chunk, chunk) for chunk in chunks]
            for future in futures:
                yield from future.result()
