"""
Holdings calculator: hierarchical portfolio look-through.

Resolves every leaf holding reachable from a set of root portfolios as of a
date, inherits attributes from the nearest defining ancestor, and groups the
resolved holdings into summary statistics.
"""

__version__ = "0.1.0"
