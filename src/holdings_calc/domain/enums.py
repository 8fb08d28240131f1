"""
Domain enums for holdings calculator.

Defines core enumerations used throughout the resolution pipeline:
- NodeKind: Instrument types appearing in the ownership graph
- FieldPolicy: How a category field is resolved along a holding path
- IssueType: Kinds of non-fatal traversal issues
- ErrorSeverity: Severity of recorded issues and API errors

Node kinds are open: stores may report kinds not listed here. Because the
enums are StrEnums, members compare equal to their plain string values, so
a store returning "PORTFOLIO" matches NodeKind.PORTFOLIO.
"""

from enum import StrEnum


class NodeKind(StrEnum):
    """
    Instrument type of a node in the ownership graph.
    """

    PORTFOLIO = "PORTFOLIO"
    """Fund or portfolio holding other instruments"""

    FUND = "FUND"
    """Externally managed fund held as a position"""

    EQUITY = "EQUITY"
    """Listed or unlisted share"""

    BOND = "BOND"
    """Debt security"""

    CASH = "CASH"
    """Cash and cash equivalents"""

    DERIVATIVE = "DERIVATIVE"
    """Derivative contract"""


class FieldPolicy(StrEnum):
    """
    Resolution policy for a category field.
    """

    INHERITABLE = "inheritable"
    """Resolved from the most specific node on the path that defines it"""

    LEAF_ONLY = "leaf_only"
    """Read from the leaf's own record only, never inherited"""


class IssueType(StrEnum):
    """
    Non-fatal issues recorded during traversal.
    """

    CYCLE_PRUNED = "cycle_pruned"
    """An edge would revisit a node already on the current path"""

    DEPTH_TRUNCATED = "depth_truncated"
    """An edge would extend a path beyond max_depth"""


class ErrorSeverity(StrEnum):
    """
    Severity levels for recorded issues.
    """

    WARNING = "warning"
    """Informational warning - query proceeds"""

    ERROR = "error"
    """Query failed"""
