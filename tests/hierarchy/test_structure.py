"""Tests for hierarchy structure definition."""

from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from probrec.core.errors import EDimensionMismatch, EInvalidHierarchy, InvalidHierarchy
from probrec.hierarchy import HierarchyStructure


@pytest.fixture
def simple_structure():
    """Create a simple 2-level hierarchy."""
    return HierarchyStructure(
        s_matrix=np.array([
            #A  B
            [1, 1],  # Total
            [1, 0],  # A
            [0, 1],  # B
        ]),
        node_names=("Total", "A", "B"),
    )


@pytest.fixture
def three_level_structure():
    """Create a 3-level hierarchy."""
    return HierarchyStructure.from_aggregation_graph(
        {
            "Total": ["A", "B"],
            "A": ["A1", "A2"],
            "B": ["B1", "B2"],
        },
        bottom_nodes=["A1", "A2", "B1", "B2"],
    )


class TestHierarchyStructure:
    """Test HierarchyStructure creation and validation."""

    def test_basic_creation(self, simple_structure) -> None:
        """Dimensions and node groups are exposed."""
        assert simple_structure.n_series == 3
        assert simple_structure.n_bottom == 2
        assert simple_structure.n_aggregate == 1
        assert simple_structure.bottom_nodes == ("A", "B")
        assert simple_structure.aggregate_nodes == ("Total",)
        assert simple_structure.s_matrix.shape == (3, 2)

    def test_default_node_names(self) -> None:
        """Unnamed series get positional names."""
        structure = HierarchyStructure(np.array([[1, 1], [1, 0], [0, 1]]))
        assert structure.node_names == ("series_0", "series_1", "series_2")

    def test_s_matrix_is_read_only(self, simple_structure) -> None:
        """S cannot be modified after construction."""
        with pytest.raises(ValueError):
            simple_structure.s_matrix[0, 0] = 5

    def test_input_matrix_is_copied(self) -> None:
        """Mutating the caller's array does not change the hierarchy."""
        s = np.array([[1, 1], [1, 0], [0, 1]])
        structure = HierarchyStructure(s)
        s[0, 0] = 0
        assert structure.s_matrix[0, 0] == 1

    def test_identity_only_hierarchy(self) -> None:
        """A hierarchy without aggregates is valid."""
        structure = HierarchyStructure(np.eye(4))
        assert structure.n_aggregate == 0
        assert structure.n_series == structure.n_bottom == 4

    def test_any_valid_matrix_is_accepted(self) -> None:
        """Random 0/1 aggregate rows on top of an identity block always validate."""
        rng = np.random.default_rng(3)
        for _ in range(20):
            m = int(rng.integers(1, 6))
            k = int(rng.integers(0, 5))
            aggregates = rng.integers(0, 2, size=(k, m))
            s = np.vstack([aggregates, np.eye(m)])
            structure = HierarchyStructure(s)
            assert structure.n_series == k + m


class TestHierarchyValidation:
    """Test InvalidHierarchy conditions."""

    def test_bottom_rows_not_identity(self) -> None:
        with pytest.raises(EInvalidHierarchy, match="identity"):
            HierarchyStructure(np.array([[1, 1], [0, 1], [1, 0]]))

    def test_non_binary_entries(self) -> None:
        with pytest.raises(EInvalidHierarchy, match="0s and 1s"):
            HierarchyStructure(np.array([[2, 1], [1, 0], [0, 1]]))

    def test_not_two_dimensional(self) -> None:
        with pytest.raises(EInvalidHierarchy, match="2-dimensional"):
            HierarchyStructure(np.array([1, 0, 1]))

    def test_fewer_rows_than_columns(self) -> None:
        with pytest.raises(EInvalidHierarchy, match="fewer rows"):
            HierarchyStructure(np.array([[1, 0, 0], [0, 1, 0]]))

    def test_declared_bottom_dimension(self) -> None:
        with pytest.raises(EInvalidHierarchy, match="n_bottom=3"):
            HierarchyStructure(np.array([[1, 1], [1, 0], [0, 1]]), n_bottom=3)

    def test_declared_bottom_dimension_matches(self) -> None:
        structure = HierarchyStructure(np.array([[1, 1], [1, 0], [0, 1]]), n_bottom=2)
        assert structure.n_bottom == 2

    def test_node_name_count(self) -> None:
        with pytest.raises(EInvalidHierarchy, match="node_names length"):
            HierarchyStructure(np.eye(2), node_names=("A",))

    def test_duplicate_node_names(self) -> None:
        with pytest.raises(EInvalidHierarchy, match="unique"):
            HierarchyStructure(np.eye(2), node_names=("A", "A"))

    def test_alias(self) -> None:
        """The literature name is the same class."""
        assert InvalidHierarchy is EInvalidHierarchy


class TestFromAggregationGraph:
    """Test building a hierarchy from a parent -> children mapping."""

    def test_node_order(self, three_level_structure) -> None:
        """Aggregates come top-down, bottom nodes last."""
        assert three_level_structure.node_names == (
            "Total", "A", "B", "A1", "A2", "B1", "B2",
        )

    def test_summation_matrix(self, three_level_structure) -> None:
        expected = np.array([
            #A1 A2 B1 B2
            [1, 1, 1, 1],  # Total
            [1, 1, 0, 0],  # A
            [0, 0, 1, 1],  # B
            [1, 0, 0, 0],  # A1
            [0, 1, 0, 0],  # A2
            [0, 0, 1, 0],  # B1
            [0, 0, 0, 1],  # B2
        ])
        np.testing.assert_array_equal(three_level_structure.s_matrix, expected)

    def test_bottom_node_with_children(self) -> None:
        with pytest.raises(EInvalidHierarchy, match="cannot have children"):
            HierarchyStructure.from_aggregation_graph(
                {"Total": ["A"], "A": ["A1"]},
                bottom_nodes=["A", "A1"],
            )

    def test_unknown_child(self) -> None:
        with pytest.raises(EInvalidHierarchy, match="not found"):
            HierarchyStructure.from_aggregation_graph(
                {"Total": ["A", "C"]},
                bottom_nodes=["A", "B"],
            )

    def test_empty_bottom_nodes(self) -> None:
        with pytest.raises(EInvalidHierarchy, match="cannot be empty"):
            HierarchyStructure.from_aggregation_graph({"Total": []}, bottom_nodes=[])


class TestFromDataFrame:
    """Test building a hierarchy from hierarchical identifier columns."""

    def test_state_city(self) -> None:
        df = pd.DataFrame({
            "state": ["CA", "CA", "NY", "NY"],
            "city": ["SF", "LA", "NYC", "BUF"],
            "y": [100, 200, 300, 50],
        })
        structure = HierarchyStructure.from_dataframe(df, ["state", "city"])

        assert structure.node_names == (
            "total", "state__CA", "state__NY",
            "city__SF", "city__LA", "city__NYC", "city__BUF",
        )
        np.testing.assert_array_equal(structure.s_matrix[0], [1, 1, 1, 1])
        np.testing.assert_array_equal(structure.s_matrix[1], [1, 1, 0, 0])
        np.testing.assert_array_equal(structure.s_matrix[2], [0, 0, 1, 1])

    def test_without_total(self) -> None:
        df = pd.DataFrame({"region": ["N", "N", "S"], "store": ["a", "b", "c"]})
        structure = HierarchyStructure.from_dataframe(df, ["region", "store"], total_name=None)
        assert structure.aggregate_nodes == ("region__N", "region__S")

    def test_missing_column(self) -> None:
        df = pd.DataFrame({"state": ["CA"]})
        with pytest.raises(EInvalidHierarchy, match="not found"):
            HierarchyStructure.from_dataframe(df, ["state", "city"])

    def test_empty_columns(self) -> None:
        with pytest.raises(EInvalidHierarchy, match="cannot be empty"):
            HierarchyStructure.from_dataframe(pd.DataFrame(), [])


class TestReconciliationMatrices:
    """Test structural reconciliation matrices."""

    def test_bottom_up(self, simple_structure) -> None:
        G = simple_structure.bottom_up_matrix()
        np.testing.assert_array_equal(G, [[0, 1, 0], [0, 0, 1]])

    def test_ols_is_projection(self, three_level_structure) -> None:
        """S G S = S, so coherent forecasts are left unchanged."""
        S = three_level_structure.s_matrix
        G = three_level_structure.ols_matrix()
        np.testing.assert_allclose(S @ G @ S, S, atol=1e-12)

    def test_top_down(self, simple_structure) -> None:
        G = simple_structure.top_down_matrix([0.25, 0.75])
        reconciled = simple_structure.reconcile(np.array([8.0, 0.0, 0.0]), G)
        np.testing.assert_allclose(reconciled, [8.0, 2.0, 6.0])

    def test_top_down_proportions_must_sum_to_one(self, simple_structure) -> None:
        with pytest.raises(ValueError, match="sum to 1"):
            simple_structure.top_down_matrix([0.5, 0.6])

    def test_top_down_proportions_length(self, simple_structure) -> None:
        with pytest.raises(EDimensionMismatch):
            simple_structure.top_down_matrix([1.0])


class TestReconcile:
    """Test S(d + Gx)."""

    def test_bottom_up_vector(self, simple_structure) -> None:
        """Incoherent base forecasts become coherent."""
        y = np.array([15.0, 4.0, 6.0])  # Total=15 but 4+6=10
        reconciled = simple_structure.reconcile(y, simple_structure.bottom_up_matrix())
        np.testing.assert_allclose(reconciled, [10.0, 4.0, 6.0])
        assert simple_structure.is_coherent(reconciled)
        assert not simple_structure.is_coherent(y)

    def test_sample_matrix(self, simple_structure) -> None:
        samples = np.arange(12, dtype=float).reshape(3, 4)
        reconciled = simple_structure.reconcile(samples, simple_structure.bottom_up_matrix())
        assert reconciled.shape == (3, 4)
        np.testing.assert_allclose(reconciled[0], samples[1] + samples[2])

    def test_offset(self, simple_structure) -> None:
        reconciled = simple_structure.reconcile(
            np.zeros(3), simple_structure.bottom_up_matrix(), d=np.array([1.0, 2.0])
        )
        np.testing.assert_allclose(reconciled, [3.0, 1.0, 2.0])

    def test_wrong_g_shape(self, simple_structure) -> None:
        with pytest.raises(EDimensionMismatch, match="G shape"):
            simple_structure.reconcile(np.zeros(3), np.zeros((3, 3)))

    def test_wrong_d_shape(self, simple_structure) -> None:
        with pytest.raises(EDimensionMismatch, match="d shape"):
            simple_structure.reconcile(
                np.zeros(3), simple_structure.bottom_up_matrix(), d=np.zeros(3)
            )

    def test_wrong_value_length(self, simple_structure) -> None:
        with pytest.raises(EDimensionMismatch):
            simple_structure.reconcile(np.zeros(4), simple_structure.bottom_up_matrix())


class TestVariableOrder:
    """Test alignment and permutation of the variable order."""

    def test_align_series(self, simple_structure) -> None:
        values = pd.Series({"B": 6.0, "Total": 10.0, "A": 4.0})
        np.testing.assert_array_equal(simple_structure.align(values), [10.0, 4.0, 6.0])

    def test_align_mapping(self, simple_structure) -> None:
        values = {"A": 1.0, "B": 2.0, "Total": 3.0}
        np.testing.assert_array_equal(simple_structure.align(values), [3.0, 1.0, 2.0])

    def test_align_dataframe(self, simple_structure) -> None:
        frame = pd.DataFrame({"A": [1.0, 2.0], "Total": [3.0, 5.0], "B": [2.0, 3.0]})
        aligned = simple_structure.align(frame)
        np.testing.assert_array_equal(aligned, [[3.0, 1.0, 2.0], [5.0, 2.0, 3.0]])

    def test_align_missing_name(self, simple_structure) -> None:
        with pytest.raises(EDimensionMismatch) as excinfo:
            simple_structure.align({"A": 1.0, "B": 2.0})
        assert excinfo.value.context["missing"] == ["Total"]

    def test_align_unknown_name(self, simple_structure) -> None:
        with pytest.raises(EDimensionMismatch) as excinfo:
            simple_structure.align({"A": 1.0, "B": 2.0, "Total": 3.0, "C": 0.0})
        assert excinfo.value.context["unknown"] == ["C"]

    def test_permuted(self, three_level_structure) -> None:
        order = [2, 0, 1, 5, 3, 6, 4]
        permuted = three_level_structure.permuted(order)

        assert permuted.node_names == ("B", "Total", "A", "B1", "A1", "B2", "A2")
        np.testing.assert_array_equal(permuted.s_matrix[3:], np.eye(4))
        np.testing.assert_array_equal(permuted.s_matrix[0], [1, 0, 1, 0])

    def test_permuted_reconciliation_matches(self, three_level_structure) -> None:
        """Permuting S, x and G together permutes the reconciled forecast."""
        rng = np.random.default_rng(0)
        order = [1, 2, 0, 6, 4, 5, 3]
        x = rng.normal(size=7)
        G = rng.normal(size=(4, 7))
        bottom_order = three_level_structure.permutation_indices(order)

        permuted = three_level_structure.permuted(order)
        original = three_level_structure.reconcile(x, G)
        reordered = permuted.reconcile(x[order], G[bottom_order][:, order])
        np.testing.assert_allclose(reordered, original[order])

    def test_permutation_must_keep_bottom_last(self, three_level_structure) -> None:
        with pytest.raises(EInvalidHierarchy, match="bottom series last"):
            three_level_structure.permuted([3, 1, 2, 0, 4, 5, 6])

    def test_permutation_must_be_complete(self, three_level_structure) -> None:
        with pytest.raises(EInvalidHierarchy, match="permutation"):
            three_level_structure.permuted([0, 0, 1, 3, 4, 5, 6])
