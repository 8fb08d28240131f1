"""
Contracts shared by the holdings calculator components.

Modules:
    bundles: Immutable data containers passed between stages
    config: QueryConfig and metric/filter specifications
    errors: Exception types raised to callers
    protocols: Store and cancellation collaborator interfaces
"""
