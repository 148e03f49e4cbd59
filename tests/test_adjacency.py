import networkx as nx
import numpy as np
import pytest

from mass_net import (
    AdjacencyMatrix,
    DimensionMismatch,
    Feature,
    InvalidInput,
    Transformation,
    build_structural,
    default_transformations,
    format_adjacency,
    mass_difference_summary,
    summarize_transformations,
    to_networkx,
)

HYDROXYLATION_MASS = 15.9949146221
MALONYL_MASS = 86.0003939228


def _chain() -> list:
    f1 = 100.0
    f2 = f1 + HYDROXYLATION_MASS
    f3 = f2 + MALONYL_MASS
    return [Feature("F1", f1), Feature("F2", f2), Feature("F3", f3)]


def test_chain_summary_counts_each_pair_once():
    am = build_structural(_chain(), default_transformations(), ppm=5.0)
    assert summarize_transformations(am) == {"Hydroxylation": 1, "Malonyl group (-H2O)": 1}


def test_directed_summary_counts_arcs():
    catalog = [
        Transformation("Hydroxylation", "O", HYDROXYLATION_MASS),
        Transformation("Malonyl group (-H2O)", "C3H2O3", MALONYL_MASS),
    ]
    am = build_structural(_chain(), catalog, ppm=5.0, directed=True)
    assert summarize_transformations(am) == {"Hydroxylation": 1, "Malonyl group (-H2O)": 1}


def test_mass_difference_summary():
    am = build_structural(_chain(), default_transformations(), ppm=5.0)
    summary = mass_difference_summary(am)
    assert list(summary.columns) == ["group", "n_edges", "mean_abs_mass_difference"]
    row = summary.set_index("group").loc["Malonyl group (-H2O)"]
    assert int(row["n_edges"]) == 1
    assert float(row["mean_abs_mass_difference"]) == pytest.approx(MALONYL_MASS, abs=1e-6)


def test_edge_list_is_row_major_with_all_layers():
    am = build_structural(_chain(), default_transformations(), ppm=5.0)
    edges = am.to_edge_list()
    assert list(edges.columns) == ["source_id", "target_id", "binary", "transformation", "mass_difference"]
    pairs = list(zip(edges["source_id"], edges["target_id"]))
    assert pairs == [("F1", "F2"), ("F2", "F1"), ("F2", "F3"), ("F3", "F2")]
    assert edges["binary"].tolist() == [1, 1, 1, 1]
    assert edges.loc[0, "transformation"] == "Hydroxylation"

    upper = am.to_edge_list(upper_only=True)
    assert list(zip(upper["source_id"], upper["target_id"])) == [("F1", "F2"), ("F2", "F3")]


def test_empty_edge_list_keeps_columns():
    am = build_structural([Feature("F1", 100.0), Feature("F2", 500.0)], default_transformations(), ppm=5.0)
    edges = am.to_edge_list()
    assert edges.empty
    assert list(edges.columns) == ["source_id", "target_id", "binary", "transformation", "mass_difference"]
    assert summarize_transformations(am) == {}


def test_unknown_layer_and_id_raise_key_error():
    am = build_structural(_chain(), default_transformations(), ppm=5.0)
    with pytest.raises(KeyError):
        am.layer("pearson_coef")
    with pytest.raises(KeyError):
        am.value("binary", "F1", "nope")


def test_format_adjacency_reports_shape_and_flags():
    am = build_structural(_chain(), default_transformations(), ppm=5.0)
    text = format_adjacency(am)
    assert "'structural'" in text
    assert "features: 3" in text
    assert "edges: 2" in text
    assert "binary, transformation, mass_difference" in text


def test_to_networkx_carries_layer_values():
    am = build_structural(_chain(), default_transformations(), ppm=5.0)
    g = to_networkx(am)
    assert isinstance(g, nx.Graph) and not g.is_directed()
    assert set(g.nodes) == {"F1", "F2", "F3"}
    assert g.number_of_edges() == 2
    assert g.edges["F2", "F3"]["transformation"] == "Malonyl group (-H2O)"

    dg = to_networkx(build_structural(_chain(), default_transformations(), ppm=5.0, directed=True))
    assert dg.is_directed()
    assert dg.has_edge("F1", "F2") and not dg.has_edge("F2", "F1")


def test_container_validates_layers():
    ids = ("a", "b")
    with pytest.raises(DimensionMismatch):
        AdjacencyMatrix(ids=ids, layers={"binary": np.zeros((3, 3))})
    with pytest.raises(InvalidInput):
        AdjacencyMatrix(ids=ids, layers={"binary": np.array([[0, 2], [2, 0]])})
    with pytest.raises(InvalidInput):
        AdjacencyMatrix(ids=ids, layers={"binary": np.eye(2)})
    with pytest.raises(InvalidInput):
        AdjacencyMatrix(ids=ids, layers={"other": np.zeros((2, 2))})
    with pytest.raises(InvalidInput):
        AdjacencyMatrix(ids=("a", "a"), layers={"binary": np.zeros((2, 2))})
    with pytest.raises(InvalidInput):
        AdjacencyMatrix(ids=ids, layers={"binary": np.zeros((2, 2))}, type="weird")


def test_with_layers_returns_new_object():
    am = build_structural(_chain(), default_transformations(), ppm=5.0)
    cleared = am.with_layers({"binary": np.zeros((3, 3), dtype=int)}, thresholded=True)
    assert cleared is not am
    assert cleared.n_edges == 0 and am.n_edges == 2
    assert cleared.thresholded and not am.thresholded
