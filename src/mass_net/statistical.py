from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, List, Literal, Mapping, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd
from scipy import stats

from .adjacency import STATISTICAL, AdjacencyMatrix
from .errors import InvalidInput, PreconditionViolation
from .lcms_utils import FeatureInput, SchemaConfig, coerce_features

logger = logging.getLogger(__name__)

CorrMethod = Literal["pearson", "spearman"]
ThresholdMethod = Literal["threshold", "top1", "top2", "mean"]

SUPPORTED_MODELS = ("pearson", "spearman")
SUPPORTED_CORRECTIONS = ("bh", "by", "bonferroni", "none")

_OPS = {
    ">": np.greater,
    ">=": np.greater_equal,
    "<": np.less,
    "<=": np.less_equal,
    "==": np.equal,
    "!=": np.not_equal,
}


def coerce_expression(expr: object, ids: Sequence[str], name: str = "expr") -> np.ndarray:
    """Return a 2D float array with shape (n_samples, n_features) in `ids` order."""
    if expr is None:
        raise InvalidInput(f"{name} is required for statistical networks.")
    n_features = len(ids)

    if isinstance(expr, pd.DataFrame):
        cols = [str(c) for c in expr.columns]
        rows = [str(r) for r in expr.index]
        if set(ids).issubset(cols):
            frame = expr.set_axis(cols, axis=1)
            return frame.loc[:, list(ids)].to_numpy(dtype=float)
        if set(ids).issubset(rows):
            frame = expr.set_axis(rows, axis=0)
            return frame.loc[list(ids), :].to_numpy(dtype=float).T
        arr = expr.to_numpy(dtype=float)
    else:
        arr = np.asarray(expr, dtype=float)

    if arr.ndim != 2:
        raise InvalidInput(f"{name} must be 2D, got shape {arr.shape}.")
    if arr.shape[1] == n_features:
        return arr
    if arr.shape[0] == n_features:
        return arr.T
    raise InvalidInput(
        f"{name} has shape {arr.shape}, expected (n_samples, {n_features}) "
        f"or ({n_features}, n_samples)."
    )


def _correlation(x: np.ndarray, corr_method: str, eps: float = 1e-12) -> np.ndarray:
    n_samples = x.shape[0]
    if corr_method == "spearman":
        x = stats.rankdata(x, axis=0)
    x = x - x.mean(axis=0, keepdims=True)
    std = x.std(axis=0, ddof=1)
    # Constant features have no defined correlation.
    std = np.where(std > eps, std, np.nan)
    z = x / std
    corr = (z.T @ z) / float(max(n_samples - 1, 1))
    corr = np.clip(corr, -1.0, 1.0)
    np.fill_diagonal(corr, np.nan)
    return corr


def _correlation_pvalues(corr: np.ndarray, n_samples: int) -> np.ndarray:
    """Two-sided p-values from the t approximation with n - 2 degrees of freedom."""
    df = n_samples - 2
    with np.errstate(divide="ignore", invalid="ignore"):
        t = corr * np.sqrt(df / (1.0 - corr**2))
    return 2.0 * stats.t.sf(np.abs(t), df)


def adjust_pvalues(pvalues: np.ndarray, correction: str) -> np.ndarray:
    """Multiple-testing correction over the upper triangle of a symmetric p-value matrix."""
    method = str(correction or "none").strip().lower()
    if method not in SUPPORTED_CORRECTIONS:
        raise InvalidInput(f"Unsupported correction {correction!r}; expected one of {SUPPORTED_CORRECTIONS}.")
    if method == "none":
        return pvalues

    n = pvalues.shape[0]
    iu = np.triu_indices(n, k=1)
    upper = pvalues[iu]
    finite = np.isfinite(upper)
    adjusted = upper.copy()
    if np.any(finite):
        if method == "bonferroni":
            adjusted[finite] = np.minimum(upper[finite] * int(finite.sum()), 1.0)
        else:
            adjusted[finite] = stats.false_discovery_control(upper[finite], method=method)

    out = np.full_like(pvalues, np.nan)
    out[iu] = adjusted
    out[(iu[1], iu[0])] = adjusted
    return out


def build_statistical(
    features: FeatureInput,
    expr: object,
    *,
    models: Sequence[CorrMethod] = ("pearson", "spearman"),
    correction: str = "BH",
    schema: Optional[SchemaConfig] = None,
) -> AdjacencyMatrix:
    """
    Build a statistical adjacency matrix from a samples x features intensity matrix.

    Each model contributes `<model>_coef` and `<model>_pvalue` layers. The binary
    layer is empty until `threshold` is applied.
    """
    ft = coerce_features(features, schema)
    x = coerce_expression(expr, ft.ids)

    models = [str(m).strip().lower() for m in models]
    if not models:
        raise InvalidInput("At least one correlation model is required.")
    unknown = [m for m in models if m not in SUPPORTED_MODELS]
    if unknown:
        raise InvalidInput(f"Unsupported correlation models {unknown}; expected {SUPPORTED_MODELS}.")
    if str(correction or "none").strip().lower() not in SUPPORTED_CORRECTIONS:
        raise InvalidInput(f"Unsupported correction {correction!r}; expected one of {SUPPORTED_CORRECTIONS}.")

    n_samples = x.shape[0]
    if n_samples < 3:
        raise InvalidInput(f"At least 3 samples are required for correlation p-values, got {n_samples}.")
    if not np.all(np.isfinite(x)):
        n_bad = int(np.sum(~np.isfinite(x)))
        logger.warning("Replacing %d non-finite intensities with 0 before correlation", n_bad)
        x = np.nan_to_num(x, nan=0.0, posinf=0.0, neginf=0.0)

    n = len(ft)
    layers = {"binary": np.zeros((n, n), dtype=np.int8)}
    for model in dict.fromkeys(models):
        corr = _correlation(x, model)
        pvalues = adjust_pvalues(_correlation_pvalues(corr, n_samples), correction)
        layers[f"{model}_coef"] = corr
        layers[f"{model}_pvalue"] = pvalues

    logger.info("Statistical network: %d features, %d samples, models=%s", n, n_samples, list(dict.fromkeys(models)))
    return AdjacencyMatrix(ids=ft.ids, layers=layers, type=STATISTICAL, directed=False, thresholded=False)


@dataclass(frozen=True)
class Clause:
    """One `layer op value` term; `absolute=True` compares abs(layer)."""

    layer: str
    op: str
    value: float
    absolute: bool = False

    def __post_init__(self) -> None:
        if self.op not in _OPS:
            raise InvalidInput(f"Unsupported operator {self.op!r}; expected one of {sorted(_OPS)}.")
        try:
            value = float(self.value)
        except (TypeError, ValueError) as exc:
            raise InvalidInput(f"Clause threshold must be numeric, got {self.value!r}.") from exc
        object.__setattr__(self, "value", value)
        object.__setattr__(self, "absolute", bool(self.absolute))

    @classmethod
    def from_mapping(cls, d: Mapping[str, Any]) -> "Clause":
        layer = d.get("layer")
        op = d.get("op", d.get("operator"))
        value = d.get("value", d.get("threshold"))
        if layer is None or op is None or value is None:
            raise InvalidInput(f"Clause needs 'layer', 'op' and 'value': {dict(d)!r}")
        return cls(layer=str(layer), op=str(op), value=value, absolute=bool(d.get("abs", d.get("absolute", False))))

    def evaluate(self, am: AdjacencyMatrix) -> np.ndarray:
        if self.layer not in am.layers:
            raise InvalidInput(f"Unknown layer {self.layer!r} in threshold clause; available: {list(am.layers)}")
        arr = np.asarray(am.layers[self.layer], dtype=float)
        if self.absolute:
            arr = np.abs(arr)
        with np.errstate(invalid="ignore"):
            res = _OPS[self.op](arr, self.value)
        return res & np.isfinite(arr)

    def __str__(self) -> str:
        lhs = f"abs({self.layer})" if self.absolute else self.layer
        return f"{lhs} {self.op} {self.value:g}"


ClauseInput = Union[Clause, Mapping[str, Any]]


def coerce_clauses(clauses: Optional[Iterable[ClauseInput]]) -> List[Clause]:
    out: List[Clause] = []
    for c in clauses or []:
        out.append(c if isinstance(c, Clause) else Clause.from_mapping(c))
    return out


def _consensus_top(am: AdjacencyMatrix, method: str, n_keep: int) -> np.ndarray:
    coef_layers = [k for k in am.layers if k.endswith("_coef")]
    if not coef_layers:
        raise InvalidInput("Rank-based thresholding requires at least one '*_coef' layer.")
    if method == "top2" and len(coef_layers) < 2:
        raise InvalidInput("threshold method 'top2' requires at least two correlation models.")

    n = len(am)
    iu = np.triu_indices(n, k=1)
    ranks = []
    any_finite = np.zeros(iu[0].size, dtype=bool)
    for name in coef_layers:
        v = np.abs(np.asarray(am.layers[name], dtype=float)[iu])
        finite = np.isfinite(v)
        any_finite |= finite
        # Rank 1 = strongest association.
        ranks.append(stats.rankdata(-np.where(finite, v, -np.inf), method="min"))
    r = np.vstack(ranks).astype(float)

    if method == "top1":
        score = r.min(axis=0)
    elif method == "top2":
        score = np.sort(r, axis=0)[1]
    else:
        score = r.mean(axis=0)
    score = np.where(any_finite, score, np.inf)

    order = np.argsort(score, kind="mergesort")
    order = order[np.isfinite(score[order])][:n_keep]

    binary = np.zeros((n, n), dtype=np.int8)
    binary[iu[0][order], iu[1][order]] = 1
    binary[iu[1][order], iu[0][order]] = 1
    return binary


def threshold(
    am: AdjacencyMatrix,
    clauses: Optional[Iterable[ClauseInput]] = None,
    *,
    method: ThresholdMethod = "threshold",
    n: Optional[int] = None,
) -> AdjacencyMatrix:
    """
    Set the binary layer of a statistical matrix.

    method="threshold": AND of all clauses per cell (NaN never passes).
    method in {"top1", "top2", "mean"}: rank |coef| per model, combine the ranks
    per pair (best, second best or mean) and keep the `n` best pairs.
    """
    if am.type != STATISTICAL:
        raise PreconditionViolation(f"threshold requires a statistical matrix, got {am.type!r}.")

    size = len(am)
    if method == "threshold":
        parsed = coerce_clauses(clauses)
        if not parsed:
            raise InvalidInput("At least one clause is required for method='threshold'.")
        mask = np.ones((size, size), dtype=bool)
        for clause in parsed:
            mask &= clause.evaluate(am)
        np.fill_diagonal(mask, False)
        binary = mask.astype(np.int8)
        desc = " & ".join(str(c) for c in parsed)
    elif method in ("top1", "top2", "mean"):
        if not isinstance(n, (int, np.integer)) or isinstance(n, bool) or int(n) <= 0:
            raise InvalidInput(f"method={method!r} requires a positive integer n, got {n!r}.")
        binary = _consensus_top(am, method, int(n))
        desc = f"{method} n={int(n)}"
    else:
        raise InvalidInput(f"Unsupported threshold method {method!r}.")

    out = am.with_layers({"binary": binary}, thresholded=True)
    logger.info("Thresholded statistical network (%s): %d edges", desc, out.n_edges)
    return out


def pearson_clauses(coef: float = 0.6, pvalue: float = 0.05) -> Tuple[Clause, Clause]:
    return (
        Clause("pearson_coef", ">", coef, absolute=True),
        Clause("pearson_pvalue", "<", pvalue),
    )
