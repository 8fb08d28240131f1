"""
Holdings Calculator API Module.

Public API for holdings queries providing:
- HoldingsService: Main service facade for queries
- Request/Response models: Clean interface contracts
- ResultExporter: Parquet and CSV export

Usage:
    from holdings_calc.api import create_service, QueryRequest
    from datetime import date

    service = create_service("/path/to/data")
    response = service.query(
        QueryRequest(
            roots=[1],
            as_of=date(2025, 1, 1),
            group_by=["region", "sector"],
            having={"min_count": 5},
        )
    )

    if response.success:
        print(response.groups)
"""

from holdings_calc.api.export import ExportResult, ResultExporter
from holdings_calc.api.models import (
    APIError,
    PerformanceMetrics,
    QueryRequest,
    QueryResponse,
)
from holdings_calc.api.service import (
    HoldingsService,
    create_service,
    quick_query,
)

__all__ = [
    # Service
    "HoldingsService",
    "create_service",
    "quick_query",
    # Request models
    "QueryRequest",
    # Response models
    "APIError",
    "PerformanceMetrics",
    "QueryResponse",
    # Export
    "ExportResult",
    "ResultExporter",
]
