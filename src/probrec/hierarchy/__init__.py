"""Hierarchy structure for reconciliation.

Example:
    >>> from probrec.hierarchy import HierarchyStructure
    >>>
    >>> structure = HierarchyStructure.from_aggregation_graph(
    ...     {"Total": ["A", "B"]},
    ...     bottom_nodes=["A", "B"],
    ... )
    >>> structure.node_names
    ('Total', 'A', 'B')
    >>> G = structure.bottom_up_matrix()
"""

from __future__ import annotations

from .structure import HierarchyStructure

__all__ = [
    "HierarchyStructure",
]
