"""
Service facade for the holdings calculator.

HoldingsService: Runs QueryRequests against loaded stores and converts
engine exceptions into error responses.

Usage:
    from holdings_calc.api import HoldingsService, QueryRequest

    service = create_service("data/", data_format="parquet")
    response = service.query(QueryRequest(roots=[1], as_of=date(2025, 1, 1)))
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Literal

from holdings_calc.api.errors import convert_issues, error_from_exception
from holdings_calc.api.models import PerformanceMetrics, QueryRequest, QueryResponse
from holdings_calc.contracts.errors import HoldingsError
from holdings_calc.data.categories import CategoryRegistry
from holdings_calc.engine.pipeline import HoldingsPipeline
from holdings_calc.stores.loader import CSVStoreLoader, ParquetStoreLoader

if TYPE_CHECKING:
    from datetime import date

    from holdings_calc.contracts.bundles import HoldingsResultBundle
    from holdings_calc.contracts.protocols import (
        AttributeStoreProtocol,
        CancellationToken,
        GraphStoreProtocol,
    )

logger = logging.getLogger(__name__)


class HoldingsService:
    """
    API facade over HoldingsPipeline.

    Every HoldingsError raised by a query (rejected query, store failure,
    cancellation) is returned as a failed QueryResponse. Traversal issues
    are returned as warnings on a successful response.

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
        self._pipeline = HoldingsPipeline(graph_store, attribute_store, registry)

    @classmethod
    def from_path(
        cls,
        data_path: str | Path,
        data_format: Literal["parquet", "csv"] = "parquet",
        registry: CategoryRegistry | None = None,
    ) -> HoldingsService:
        """
        Load stores from a data directory and build a service over them.

        Raises:
            StoreUnavailableError: If the directory cannot be loaded
        """
        loader_cls = CSVStoreLoader if data_format == "csv" else ParquetStoreLoader
        stores = loader_cls(Path(data_path), registry).load()
        return cls(stores.graph, stores.attributes, registry)

    def query(
        self,
        request: QueryRequest,
        cancel: CancellationToken | None = None,
    ) -> QueryResponse:
        """
        Run one query.

        Args:
            request: Query request
            cancel: Optional cooperative cancellation signal

        Returns:
            QueryResponse; success is False when the query raised
        """
        started_at = datetime.now()
        try:
            bundle = self._pipeline.run(request.to_config(), cancel=cancel)
        except HoldingsError as e:
            logger.warning("Query failed: %s", e)
            return QueryResponse(
                success=False,
                as_of=request.as_of,
                errors=[error_from_exception(e)],
            )
        return self._format_response(bundle, request, started_at)

    def _format_response(
        self,
        bundle: HoldingsResultBundle,
        request: QueryRequest,
        started_at: datetime,
    ) -> QueryResponse:
        completed_at = datetime.now()
        metadata = {
            "roots": list(request.roots),
            "as_of": str(request.as_of),
            "max_depth": request.max_depth,
            "categories": list(request.categories),
            "group_by": list(request.group_by) if request.group_by is not None else None,
            **bundle.stats.as_dict(),
        }
        groups = bundle.aggregation.groups if bundle.aggregation is not None else None
        return QueryResponse(
            success=True,
            as_of=request.as_of,
            holdings=bundle.frame,
            groups=groups,
            metadata=metadata,
            errors=convert_issues(bundle.issues),
            performance=PerformanceMetrics(
                started_at=started_at,
                completed_at=completed_at,
                duration_seconds=(completed_at - started_at).total_seconds(),
                holding_count=len(bundle.holdings),
            ),
        )


# =============================================================================
# Factory Functions
# =============================================================================


def create_service(
    data_path: str | Path,
    data_format: Literal["parquet", "csv"] = "parquet",
    registry: CategoryRegistry | None = None,
) -> HoldingsService:
    """Create a service over stores loaded from data_path."""
    return HoldingsService.from_path(data_path, data_format, registry)


def quick_query(
    data_path: str | Path,
    roots: list[int],
    as_of: date,
    group_by: list[str] | None = None,
    data_format: Literal["parquet", "csv"] = "parquet",
) -> QueryResponse:
    """
    Load a data directory and run a single query.

    Store load failures are returned as a failed response.
    """
    request = QueryRequest(roots=roots, as_of=as_of, group_by=group_by)
    try:
        service = create_service(data_path, data_format)
    except HoldingsError as e:
        return QueryResponse(success=False, as_of=as_of, errors=[error_from_exception(e)])
    return service.query(request)
