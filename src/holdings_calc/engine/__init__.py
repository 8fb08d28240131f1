"""
Holdings calculation engine components.

    HierarchyWalker -> select_leaf_paths -> HoldingsResolver
        -> holdings frame -> Aggregator

Each store collaborator implements a protocol from
holdings_calc.contracts.protocols.

Modules:
    walker: Cycle-safe, depth-bounded traversal and leaf disambiguation
    resolver: Attribute inheritance along selected paths
    frames: Holdings to polars frame conversion
    aggregator: Grouped summary statistics
    pipeline: Pipeline orchestration
"""

from .aggregator import Aggregator
from .frames import holdings_to_frame, sort_holdings, with_position_value
from .pipeline import HoldingsPipeline, create_pipeline
from .resolver import HoldingsResolver, PathResolver
from .walker import HierarchyWalker, select_leaf_paths

__all__ = [
    "Aggregator",
    "HierarchyWalker",
    "HoldingsPipeline",
    "HoldingsResolver",
    "PathResolver",
    "create_pipeline",
    "holdings_to_frame",
    "select_leaf_paths",
    "sort_holdings",
    "with_position_value",
]
