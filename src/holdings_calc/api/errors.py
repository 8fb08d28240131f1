"""
Conversion of engine errors and issues into API error records.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from holdings_calc.api.models import APIError
from holdings_calc.contracts.errors import (
    HoldingsError,
    InvalidQueryError,
    QueryCancelledError,
    StoreUnavailableError,
)

if TYPE_CHECKING:
    from holdings_calc.contracts.bundles import TraversalIssue

_CATEGORIES: dict[type[HoldingsError], str] = {
    InvalidQueryError: "query",
    StoreUnavailableError: "store",
    QueryCancelledError: "cancelled",
}


def error_from_exception(exc: HoldingsError) -> APIError:
    """Build an APIError from a raised HoldingsError."""
    category = next(
        (name for cls, name in _CATEGORIES.items() if isinstance(exc, cls)),
        "query",
    )
    return APIError(code=exc.code, message=str(exc), severity="error", category=category)


def convert_issues(issues: list[TraversalIssue]) -> list[APIError]:
    """Convert non-fatal traversal issues into warning records."""
    return [
        APIError(
            code=f"TRAVERSAL_{issue.issue_type.upper()}",
            message=issue.message,
            severity=str(issue.severity),
            category="traversal",
            details=dict(issue.context),
        )
        for issue in issues
    ]
