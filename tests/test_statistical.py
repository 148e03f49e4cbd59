import numpy as np
import pandas as pd
import pytest

from mass_net import (
    Clause,
    Feature,
    InvalidInput,
    PreconditionViolation,
    build_statistical,
    build_structural,
    threshold,
)
from mass_net.statistical import adjust_pvalues


def _toy():
    x = np.linspace(0.0, 1.0, 10)
    alt = np.array([1.0, -1.0] * 5)
    expr = np.vstack([x, 2.0 * x + 1.0, -x + 0.01 * alt, alt]).T  # (samples, features)
    features = [Feature(f"F{i + 1}", 100.0 + 50.0 * i) for i in range(4)]
    return features, expr


def test_coefficients_and_pvalues():
    features, expr = _toy()
    am = build_statistical(features, expr, models=("pearson", "spearman"), correction="none")

    assert am.type == "statistical"
    assert am.thresholded is False
    assert am.n_edges == 0
    assert set(am.layers) == {"binary", "pearson_coef", "pearson_pvalue", "spearman_coef", "spearman_pvalue"}

    assert am.value("pearson_coef", "F1", "F2") == pytest.approx(1.0)
    assert am.value("pearson_coef", "F1", "F3") < -0.99
    assert am.value("spearman_coef", "F1", "F3") == pytest.approx(-1.0)
    assert abs(am.value("pearson_coef", "F1", "F4")) < 0.3
    assert am.value("pearson_pvalue", "F1", "F3") < 1e-6
    assert am.value("pearson_pvalue", "F1", "F4") > 0.05
    assert np.all(np.isnan(np.diag(am.layer("pearson_coef"))))

    coef = am.layer("pearson_coef")
    assert np.allclose(coef, coef.T, equal_nan=True)


def test_dataframe_columns_are_aligned_to_feature_order():
    features, expr = _toy()
    df = pd.DataFrame(expr, columns=["F1", "F2", "F3", "F4"])
    shuffled = df.loc[:, ["F4", "F2", "F3", "F1"]]
    a = build_statistical(features, df, models=("pearson",))
    b = build_statistical(features, shuffled, models=("pearson",))
    assert np.allclose(a.layer("pearson_coef"), b.layer("pearson_coef"), equal_nan=True)

    # Features x samples layout is accepted too.
    c = build_statistical(features, df.T, models=("pearson",))
    assert np.allclose(a.layer("pearson_coef"), c.layer("pearson_coef"), equal_nan=True)


def test_threshold_clauses_select_strong_significant_pairs():
    features, expr = _toy()
    am = build_statistical(features, expr, models=("pearson",))
    clauses = [Clause("pearson_coef", ">", 0.6, absolute=True), Clause("pearson_pvalue", "<", 0.05)]
    thr = threshold(am, clauses)

    assert thr.thresholded is True
    assert am.thresholded is False
    edges = thr.to_edge_list(upper_only=True)
    assert list(zip(edges["source_id"], edges["target_id"])) == [("F1", "F2"), ("F1", "F3"), ("F2", "F3")]
    assert np.array_equal(thr.binary, thr.binary.T)
    assert np.all(np.diag(thr.binary) == 0)


def test_threshold_accepts_mapping_clauses():
    features, expr = _toy()
    am = build_statistical(features, expr, models=("pearson",))
    thr = threshold(am, [{"layer": "pearson_coef", "op": ">", "value": 0.6}])
    assert thr.value("binary", "F1", "F2") == 1
    # Negative correlation fails without abs.
    assert thr.value("binary", "F1", "F3") == 0


def test_threshold_rejects_bad_clauses():
    features, expr = _toy()
    am = build_statistical(features, expr, models=("pearson",))
    with pytest.raises(InvalidInput):
        threshold(am, [Clause("spearman_coef", ">", 0.5)])
    with pytest.raises(InvalidInput):
        threshold(am, [])
    with pytest.raises(InvalidInput):
        Clause("pearson_coef", "=>", 0.5)


def test_top_consensus_thresholds():
    features, expr = _toy()
    am = build_statistical(features, expr, models=("pearson", "spearman"))

    # F1-F2 has the strongest Pearson coefficient and comes first on ties.
    top = threshold(am, method="top1", n=1)
    assert top.n_edges == 1
    assert top.value("binary", "F1", "F2") == 1

    mean3 = threshold(am, method="mean", n=3)
    edges = mean3.to_edge_list(upper_only=True)
    assert list(zip(edges["source_id"], edges["target_id"])) == [("F1", "F2"), ("F1", "F3"), ("F2", "F3")]

    assert threshold(am, method="top2", n=2).n_edges == 2

    with pytest.raises(InvalidInput):
        threshold(am, method="top1")
    with pytest.raises(InvalidInput):
        threshold(am, method="top1", n="a")
    with pytest.raises(InvalidInput):
        threshold(am, method="top1", n=2.5)
    with pytest.raises(InvalidInput):
        threshold(am, method="mean", n=0)
    with pytest.raises(InvalidInput):
        threshold(build_statistical(features, expr, models=("pearson",)), method="top2", n=1)


def test_threshold_requires_statistical_matrix():
    features, _ = _toy()
    struct = build_structural(features, ppm=5.0)
    with pytest.raises(PreconditionViolation):
        threshold(struct, [Clause("binary", ">", 0)])


def test_bonferroni_and_bh_adjustment():
    features, expr = _toy()
    raw = build_statistical(features, expr, models=("pearson",), correction="none").layer("pearson_pvalue")
    bonf = build_statistical(features, expr, models=("pearson",), correction="bonferroni").layer("pearson_pvalue")
    iu = np.triu_indices(4, k=1)
    assert np.allclose(bonf[iu], np.minimum(raw[iu] * 6, 1.0))
    assert np.allclose(bonf, bonf.T, equal_nan=True)

    bh = adjust_pvalues(raw, "BH")
    assert np.all(bh[iu] >= raw[iu] - 1e-15)
    assert np.all(bh[iu] <= bonf[iu] + 1e-15)


def test_invalid_statistical_inputs():
    features, expr = _toy()
    with pytest.raises(InvalidInput):
        build_statistical(features, expr[:2])
    with pytest.raises(InvalidInput):
        build_statistical(features, expr[:, :3])
    with pytest.raises(InvalidInput):
        build_statistical(features, expr, models=("clr",))
    with pytest.raises(InvalidInput):
        build_statistical(features, expr, correction="holm")
