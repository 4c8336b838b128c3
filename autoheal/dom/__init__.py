# autoheal/dom/__init__.py
"""
DOM package
-----------
Shrinks page snapshots before they are handed to a repair oracle.
"""

from .optimizer import DomMetrics, DomOptimizationResult, DomSnapshotOptimizer, optimize_html

__all__ = [
    "DomMetrics",
    "DomOptimizationResult",
    "DomSnapshotOptimizer",
    "optimize_html",
]
