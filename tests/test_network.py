import numpy as np
import pandas as pd

from mass_net import NetworkConfig, build_network, summarize_transformations


def _study(rt2: float):
    features = pd.DataFrame(
        {
            "Compound_ID": ["F1", "F2", "F3", "F4"],
            "MZ": [100.0, 115.9949146221, 300.0, 450.0],
            "RT": [5.0, rt2, 8.0, 9.0],
        }
    )
    x = np.linspace(0.0, 1.0, 12)
    expr = pd.DataFrame(
        {
            "F1": np.array([1.0, -1.0] * 6),
            "F2": np.array([1.0, 1.0, -1.0, -1.0] * 3),
            "F3": x,
            "F4": 3.0 * x + 0.5,
        },
        index=[f"S{i}" for i in range(12)],
    )
    return features, expr


def test_build_network_combines_structural_and_statistical_edges():
    features, expr = _study(rt2=4.0)
    res = build_network(features, expr, config=NetworkConfig(models=("pearson",)))

    assert res.structural.value("binary", "F1", "F2") == 1
    assert res.structural_rt is not None and res.structural_rt.rt_corrected
    assert res.statistical.thresholded is False
    assert res.statistical_thresholded.value("binary", "F3", "F4") == 1

    combined = res.combined
    assert combined.type == "combined"
    assert combined.n_edges == 2
    assert combined.value("combine_binary", "F1", "F2") == 1
    assert combined.value("combine_binary", "F3", "F4") == 1
    assert summarize_transformations(combined) == {"Hydroxylation": 1}


def test_rt_contradiction_drops_structural_edge_from_combined():
    features, expr = _study(rt2=6.0)
    res = build_network(features, expr, config=NetworkConfig(models=("pearson",)))
    assert res.structural.n_edges == 1
    assert res.structural_rt.n_edges == 0
    assert res.combined.n_edges == 1
    assert res.combined.value("combine_binary", "F1", "F2") == 0

    # Without RT correction the raw structural edge survives.
    raw = build_network(features, expr, config=NetworkConfig(models=("pearson",), rt_correction=False))
    assert raw.structural_rt is None
    assert raw.combined.n_edges == 2


def test_and_mode_keeps_only_shared_edges():
    features, expr = _study(rt2=4.0)
    cfg = NetworkConfig(models=("pearson",), combine_mode="and")
    assert build_network(features, expr, config=cfg).combined.n_edges == 0
