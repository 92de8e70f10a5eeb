"""Hierarchy structure definition for hierarchical time series.

Wraps the summing matrix S and binds the variable ordering shared by
realizations, sample generators and reconciliation matrices.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

import numpy as np
import pandas as pd

from probrec.core.errors import EDimensionMismatch, EInvalidHierarchy


@dataclass(frozen=True, eq=False)
class HierarchyStructure:
    """Summing structure of a hierarchy with a fixed variable order.

    Row i of the summing matrix S marks which bottom-level series add up
    to series i. Aggregates come first and the m bottom series last, so
    the bottom m rows of S are the identity.

    Example structure for retail:
        Total
        ├── Store_A
        └── Store_B

        >>> structure = HierarchyStructure(
        ...     s_matrix=np.array([
        ...         [1, 1],  # Total
        ...         [1, 0],  # Store_A
        ...         [0, 1],  # Store_B
        ...     ]),
        ...     node_names=("Total", "Store_A", "Store_B"),
        ... )
        >>> structure.n_series, structure.n_bottom
        (3, 2)

    Attributes:
        s_matrix: Read-only summing matrix (n_series x n_bottom)
        node_names: Series names in variable order (bottom nodes last)
        n_bottom: Number of bottom-level series m; validated against S when given
        n_series: Total number of series n (computed)
    """

    # Summing matrix S, shape (n_series, n_bottom)
    s_matrix: np.ndarray = field(repr=False)

    # Names of all series in variable order
    node_names: tuple[str, ...] | None = None

    # Declared bottom dimension
    n_bottom: int | None = None

    # Total number of series (computed)
    n_series: int = field(init=False)

    def __post_init__(self) -> None:
        """Validate the summing matrix and bind the node order."""
        try:
            s_matrix = np.array(self.s_matrix, dtype=float)
        except (TypeError, ValueError) as exc:
            raise EInvalidHierarchy(f"S matrix is not numeric: {exc}") from exc

        if s_matrix.ndim != 2:
            raise EInvalidHierarchy(
                "S matrix must be 2-dimensional",
                context={"ndim": s_matrix.ndim},
            )
        n_series, n_bottom = s_matrix.shape
        if n_bottom == 0:
            raise EInvalidHierarchy("S matrix must have at least one column")
        if self.n_bottom is not None and self.n_bottom != n_bottom:
            raise EInvalidHierarchy(
                f"S matrix has {n_bottom} columns but n_bottom={self.n_bottom} was declared",
                context={"shape": s_matrix.shape},
            )
        if n_series < n_bottom:
            raise EInvalidHierarchy(
                f"S matrix shape {s_matrix.shape} has fewer rows than columns",
                context={"shape": s_matrix.shape},
            )
        if not np.all(np.isin(s_matrix, [0, 1])):
            raise EInvalidHierarchy("S matrix must contain only 0s and 1s")
        if not np.array_equal(s_matrix[n_series - n_bottom :], np.eye(n_bottom)):
            raise EInvalidHierarchy(
                f"Bottom {n_bottom} rows of S must form the identity matrix",
                context={"shape": s_matrix.shape},
            )

        if self.node_names is None:
            names = tuple(f"series_{i}" for i in range(n_series))
        else:
            names = tuple(str(name) for name in self.node_names)
        if len(names) != n_series:
            raise EInvalidHierarchy(
                f"node_names length {len(names)} doesn't match S matrix rows {n_series}"
            )
        if len(set(names)) != len(names):
            raise EInvalidHierarchy("node_names must be unique")

        s_matrix.setflags(write=False)

        # Use object.__setattr__ since dataclass is frozen
        object.__setattr__(self, "s_matrix", s_matrix)
        object.__setattr__(self, "node_names", names)
        object.__setattr__(self, "n_bottom", n_bottom)
        object.__setattr__(self, "n_series", n_series)

    @property
    def n_aggregate(self) -> int:
        """Number of aggregate (non-bottom) series."""
        return self.n_series - self.n_bottom

    @property
    def bottom_nodes(self) -> tuple[str, ...]:
        return self.node_names[self.n_aggregate :]

    @property
    def aggregate_nodes(self) -> tuple[str, ...]:
        return self.node_names[: self.n_aggregate]

    @classmethod
    def from_aggregation_graph(
        cls,
        aggregation_graph: Mapping[str, Sequence[str]],
        bottom_nodes: Sequence[str],
    ) -> HierarchyStructure:
        """Build hierarchy structure from a parent -> children mapping.

        Aggregates are ordered top-down (by depth, then by name) and the
        bottom nodes follow in the order given.

        Args:
            aggregation_graph: Mapping from parent to list of children
            bottom_nodes: Bottom-level (leaf) node names

        Returns:
            HierarchyStructure built from the graph

        Raises:
            EInvalidHierarchy: If the graph is inconsistent with bottom_nodes
        """
        if not bottom_nodes:
            raise EInvalidHierarchy("bottom_nodes cannot be empty")

        bottom = list(bottom_nodes)
        bottom_set = set(bottom)
        for node in bottom:
            if node in aggregation_graph:
                raise EInvalidHierarchy(
                    f"Bottom node '{node}' cannot have children in aggregation_graph"
                )

        known = bottom_set | set(aggregation_graph)
        for parent, children in aggregation_graph.items():
            for child in children:
                if child not in known:
                    raise EInvalidHierarchy(
                        f"Child '{child}' of parent '{parent}' not found in hierarchy"
                    )

        parents = _parent_map(aggregation_graph)
        aggregates = sorted(
            aggregation_graph,
            key=lambda node: (_depth(node, parents), node),
        )
        node_names = aggregates + bottom
        s_matrix = _build_summation_matrix(node_names, bottom, aggregation_graph)

        return cls(s_matrix=s_matrix, node_names=tuple(node_names))

    @classmethod
    def from_dataframe(
        cls,
        df: pd.DataFrame,
        hierarchy_columns: list[str],
        total_name: str | None = "total",
    ) -> HierarchyStructure:
        """Build hierarchy structure from DataFrame with hierarchical columns.

        Args:
            df: DataFrame with hierarchical identifiers
            hierarchy_columns: Columns defining hierarchy (top to bottom)
            total_name: Name of the grand-total node (None to omit it)

        Returns:
            HierarchyStructure built from the data

        Example:
            >>> df = pd.DataFrame({
            ...     "state": ["CA", "CA", "NY", "NY"],
            ...     "city": ["SF", "LA", "NYC", "BUF"],
            ... })
            >>> structure = HierarchyStructure.from_dataframe(df, ["state", "city"])
            >>> structure.node_names[:3]
            ('total', 'state__CA', 'state__NY')
        """
        if not hierarchy_columns:
            raise EInvalidHierarchy("hierarchy_columns cannot be empty")
        missing = [c for c in hierarchy_columns if c not in df.columns]
        if missing:
            raise EInvalidHierarchy(
                f"hierarchy_columns not found in DataFrame: {missing}"
            )

        unique_combos = df[hierarchy_columns].drop_duplicates()

        # Level-prefixed keys, e.g. "state__CA", avoid collisions across levels
        aggregation_graph: dict[str, list[str]] = {}
        top_col = hierarchy_columns[0]
        if total_name is not None:
            aggregation_graph[total_name] = [
                f"{top_col}__{v}" for v in unique_combos[top_col].unique().tolist()
            ]

        for level_idx in range(len(hierarchy_columns) - 1):
            parent_col = hierarchy_columns[level_idx]
            child_col = hierarchy_columns[level_idx + 1]
            for parent_value, group in unique_combos.groupby(parent_col, sort=False):
                parent_key = f"{parent_col}__{parent_value}"
                children = [f"{child_col}__{v}" for v in group[child_col].unique().tolist()]
                existing = aggregation_graph.setdefault(parent_key, [])
                # Remove duplicates, preserve order
                aggregation_graph[parent_key] = list(dict.fromkeys(existing + children))

        bottom_col = hierarchy_columns[-1]
        bottom_nodes = [
            f"{bottom_col}__{v}" for v in unique_combos[bottom_col].unique().tolist()
        ]
        return cls.from_aggregation_graph(aggregation_graph, bottom_nodes)

    # ------------------------------------------------------------------
    # Reconciliation matrices
    # ------------------------------------------------------------------

    def bottom_up_matrix(self) -> np.ndarray:
        """Return the bottom-up reconciliation matrix G = [0 | I_m]."""
        g = np.zeros((self.n_bottom, self.n_series))
        g[:, self.n_aggregate :] = np.eye(self.n_bottom)
        return g

    def ols_matrix(self) -> np.ndarray:
        """Return the OLS projection G = (S'S)^-1 S'."""
        s = self.s_matrix
        return np.linalg.solve(s.T @ s, s.T)

    def top_down_matrix(self, proportions: Sequence[float], top_index: int = 0) -> np.ndarray:
        """Return a top-down matrix that splits one series by fixed proportions.

        Args:
            proportions: Share of each bottom series (length m, summing to 1)
            top_index: Row of the series being disaggregated (default: first)
        """
        p = np.asarray(proportions, dtype=float)
        if p.shape != (self.n_bottom,):
            raise EDimensionMismatch(
                f"proportions must have length {self.n_bottom}, got shape {p.shape}"
            )
        if not np.isclose(p.sum(), 1.0):
            raise ValueError(f"proportions must sum to 1, got {p.sum():.6f}")
        if not 0 <= top_index < self.n_series:
            raise EDimensionMismatch(f"top_index {top_index} out of range")
        g = np.zeros((self.n_bottom, self.n_series))
        g[:, top_index] = p
        return g

    def check_reconciliation(
        self,
        G: np.ndarray,
        d: np.ndarray | None = None,
    ) -> tuple[np.ndarray, np.ndarray]:
        """Validate G (m x n) and d (m,) and return them as float arrays.

        Raises:
            EDimensionMismatch: If either shape disagrees with the hierarchy
        """
        g = np.asarray(G, dtype=float)
        if g.shape != (self.n_bottom, self.n_series):
            raise EDimensionMismatch(
                f"G shape {g.shape} doesn't match expected ({self.n_bottom}, {self.n_series})"
            )
        if d is None:
            offset = np.zeros(self.n_bottom)
        else:
            offset = np.asarray(d, dtype=float)
            if offset.shape != (self.n_bottom,):
                raise EDimensionMismatch(
                    f"d shape {offset.shape} doesn't match expected ({self.n_bottom},)"
                )
        return g, offset

    def reconcile(
        self,
        values: np.ndarray,
        G: np.ndarray,
        d: np.ndarray | None = None,
    ) -> np.ndarray:
        """Map base forecasts x to coherent forecasts S(d + Gx).

        Args:
            values: A vector (n,) or sample matrix (n, K)
            G: Reconciliation matrix (m x n)
            d: Optional translation (m,)
        """
        g, offset = self.check_reconciliation(G, d)
        x = np.asarray(values, dtype=float)
        if x.ndim not in (1, 2) or x.shape[0] != self.n_series:
            raise EDimensionMismatch(
                f"values shape {x.shape} must have {self.n_series} rows"
            )
        bottom = g @ x
        bottom = bottom + (offset if x.ndim == 1 else offset[:, None])
        return self.s_matrix @ bottom

    def is_coherent(self, values: np.ndarray, atol: float = 1e-8) -> bool:
        """Check that every aggregate equals the sum of its bottom series."""
        x = np.asarray(values, dtype=float)
        if x.shape[0] != self.n_series:
            raise EDimensionMismatch(
                f"values shape {x.shape} must have {self.n_series} rows"
            )
        return bool(np.allclose(self.s_matrix @ x[self.n_aggregate :], x, atol=atol))

    # ------------------------------------------------------------------
    # Variable order
    # ------------------------------------------------------------------

    def align(self, values: Mapping[str, float] | pd.Series | pd.DataFrame) -> np.ndarray:
        """Reorder name-keyed values to the bound node order.

        A Series or mapping becomes a vector (n,); a DataFrame whose columns
        are node names becomes a matrix (rows, n).

        Raises:
            EDimensionMismatch: If names are missing or unknown
        """
        if isinstance(values, pd.DataFrame):
            names = [str(c) for c in values.columns]
        else:
            values = pd.Series(values)
            names = [str(i) for i in values.index]

        expected = set(self.node_names)
        missing = sorted(expected - set(names))
        unknown = sorted(set(names) - expected)
        if missing or unknown or len(names) != len(set(names)):
            raise EDimensionMismatch(
                "Values are not keyed by exactly the hierarchy's node names",
                context={"missing": missing, "unknown": unknown},
            )

        if isinstance(values, pd.DataFrame):
            frame = values.rename(columns=str)
            return frame.loc[:, list(self.node_names)].to_numpy(dtype=float)
        series = values.rename(index=str)
        return series.reindex(list(self.node_names)).to_numpy(dtype=float)

    def permutation_indices(self, order: Sequence[int]) -> np.ndarray:
        """Return the bottom-column order matching a variable order.

        Raises:
            EInvalidHierarchy: If order moves series across the aggregate/bottom split
        """
        perm = np.asarray(order, dtype=int)
        if sorted(perm.tolist()) != list(range(self.n_series)):
            raise EInvalidHierarchy(f"order must be a permutation of range({self.n_series})")
        if not np.all(perm[self.n_aggregate :] >= self.n_aggregate):
            raise EInvalidHierarchy(
                "order must keep aggregates first and bottom series last"
            )
        return perm[self.n_aggregate :] - self.n_aggregate

    def permuted(self, order: Sequence[int]) -> HierarchyStructure:
        """Return the same hierarchy with its variables reordered.

        Position i of the new order holds old series order[i]. Columns of S
        follow the bottom rows so the bottom block stays the identity.
        """
        perm = np.asarray(order, dtype=int)
        bottom_order = self.permutation_indices(perm)
        return HierarchyStructure(
            s_matrix=self.s_matrix[perm][:, bottom_order],
            node_names=tuple(self.node_names[i] for i in perm),
        )


def _parent_map(aggregation_graph: Mapping[str, Sequence[str]]) -> dict[str, list[str]]:
    parents: dict[str, list[str]] = {}
    for parent, children in aggregation_graph.items():
        for child in children:
            parents.setdefault(child, []).append(parent)
    return parents


def _depth(node: str, parents: Mapping[str, list[str]], _seen: frozenset[str] = frozenset()) -> int:
    """Hierarchy level of a node (0 = root), following first parents."""
    if node in _seen:
        raise EInvalidHierarchy(f"Cycle detected in aggregation_graph at '{node}'")
    node_parents = parents.get(node)
    if not node_parents:
        return 0
    return 1 + _depth(node_parents[0], parents, _seen | {node})


def _build_summation_matrix(
    node_names: list[str],
    bottom_nodes: list[str],
    aggregation_graph: Mapping[str, Sequence[str]],
) -> np.ndarray:
    """Build summation matrix from hierarchy definition.

    S[i, j] = 1 if bottom node j contributes to node i.
    """
    s_matrix = np.zeros((len(node_names), len(bottom_nodes)), dtype=int)
    node_to_idx = {node: i for i, node in enumerate(node_names)}
    parents = _parent_map(aggregation_graph)

    for j, bottom_node in enumerate(bottom_nodes):
        # Bottom node contributes to itself, then to every ancestor
        stack = [bottom_node]
        seen: set[str] = set()
        while stack:
            node = stack.pop()
            if node in seen:
                continue
            seen.add(node)
            s_matrix[node_to_idx[node], j] = 1
            stack.extend(parents.get(node, []))

    return s_matrix
