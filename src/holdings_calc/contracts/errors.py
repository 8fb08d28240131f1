"""
Exception types for holdings calculator.

Only malformed queries, store failures and cancellation are raised to the
caller. Cycles and depth truncation are pruned locally and recorded as
TraversalIssue entries on the result bundle instead.
"""

from __future__ import annotations


class HoldingsError(Exception):
    """Base class for all holdings calculator errors."""

    code = "HOLDINGS_ERROR"


class InvalidQueryError(HoldingsError):
    """Query rejected before traversal begins."""

    code = "INVALID_QUERY"


class StoreUnavailableError(HoldingsError):
    """A graph or attribute store read failed. Never retried by the engine."""

    code = "STORE_UNAVAILABLE"


class QueryCancelledError(HoldingsError):
    """Query aborted through its cancellation signal."""

    code = "QUERY_CANCELLED"
