"""Domain enumerations for holdings calculator."""

from .enums import ErrorSeverity, FieldPolicy, IssueType, NodeKind

__all__ = [
    "ErrorSeverity",
    "FieldPolicy",
    "IssueType",
    "NodeKind",
]
