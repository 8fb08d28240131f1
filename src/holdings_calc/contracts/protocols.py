"""
Collaborator protocols for holdings calculator.

The graph and attribute stores are the only points of contact with
persistence. Any storage technology satisfying these protocols can back a
query. Implementations are read-only and must raise StoreUnavailableError
when a read fails; the engine does not retry.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import date

    from holdings_calc.contracts.bundles import AttributeRecord, Edge


class GraphStoreProtocol(Protocol):
    """Read access to the ownership graph."""

    def edges_from(self, node_id: int, as_of: date) -> Sequence[Edge]:
        """Outgoing edges of node_id valid at as_of, ascending by child id."""
        ...

    def node_kind(self, node_id: int) -> str | None:
        """Instrument type of node_id, or None if unknown."""
        ...


class AttributeStoreProtocol(Protocol):
    """Read access to per-category attribute records."""

    def lookup(self, node_id: int, category: str, as_of: date) -> AttributeRecord | None:
        """The record for (node_id, category) in effect at as_of, if any."""
        ...


class CancellationToken(Protocol):
    """Cooperative cancellation signal, e.g. threading.Event."""

    def is_set(self) -> bool: ...
