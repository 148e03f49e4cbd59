"""Structural networks from m/z differences matching known transformations.

Pair (i, j) is connected when

    | |mz[j] - mz[i]| - mass(t) | <= max(mz[i], mz[j]) * ppm / 1e6

for at least one transformation t, i.e. the ppm window is taken relative to the
heavier feature of the pair. Cell [i, j] always refers to row feature i and
column feature j, and `mass_difference[i, j] = mz[j] - mz[i]`.
"""

from __future__ import annotations

import logging
import math
from typing import Dict, List, Optional, Tuple

import numpy as np

from .adjacency import LABEL_SEP, STRUCTURAL, AdjacencyMatrix
from .errors import DimensionMismatch, InvalidInput, PreconditionViolation
from .lcms_utils import FeatureInput, SchemaConfig, coerce_features
from .transformations import (
    RT_DECREASE,
    RT_INCREASE,
    RT_UNCONSTRAINED,
    Transformation,
    TransformationInput,
    catalog_by_group,
    coerce_transformations,
)

logger = logging.getLogger(__name__)

# Relative slack on the searchsorted bounds; the exact test below decides.
_BOUND_SLACK = 1e-9


def _matching_pairs(mz: np.ndarray, mass: float, ppm: float) -> np.ndarray:
    """
    Return unordered index pairs (a, b), mz[a] <= mz[b], whose difference matches
    `mass` within `ppm` of the heavier mass. Shape (m, 2), sorted row-major.
    """
    n = int(mz.size)
    p = ppm * 1e-6
    order = np.argsort(mz, kind="mergesort")
    mz_s = mz[order]

    # For lighter feature a, the heavier partner b must satisfy
    #   mz_b * (1 - p) <= mz_a + mass <= mz_b * (1 + p).
    target = mz_s + mass
    lo = np.searchsorted(mz_s, target / (1.0 + p) * (1.0 - _BOUND_SLACK), side="left")
    if p < 1.0:
        hi = np.searchsorted(mz_s, target / (1.0 - p) * (1.0 + _BOUND_SLACK), side="right")
    else:
        hi = np.full(n, n, dtype=lo.dtype)

    counts = np.maximum(hi - lo, 0)
    total = int(counts.sum())
    if total == 0:
        return np.empty((0, 2), dtype=int)

    src = np.repeat(np.arange(n), counts)
    first = np.repeat(np.cumsum(counts) - counts, counts)
    dst = np.repeat(lo, counts) + (np.arange(total) - first)

    a = order[src]
    b = order[dst]
    diff = mz[b] - mz[a]
    ref = np.maximum(mz[a], mz[b])
    ok = (a != b) & (np.abs(np.abs(diff) - mass) <= ref * p)
    if not np.any(ok):
        return np.empty((0, 2), dtype=int)

    # Equal masses can surface in both orientations; keep one per unordered pair.
    pairs = np.stack([np.minimum(a[ok], b[ok]), np.maximum(a[ok], b[ok])], axis=1)
    pairs = np.unique(pairs, axis=0)
    # Orient lighter -> heavier (ties keep index order).
    swap = mz[pairs[:, 0]] > mz[pairs[:, 1]]
    pairs[swap] = pairs[swap][:, ::-1]
    return pairs.astype(int, copy=False)


def build_structural(
    features: FeatureInput,
    transformations: TransformationInput = None,
    *,
    ppm: float = 5.0,
    directed: bool = False,
    schema: Optional[SchemaConfig] = None,
) -> AdjacencyMatrix:
    """
    Build a structural adjacency matrix with layers `binary`, `transformation`
    and `mass_difference`.

    Undirected: both cells of a matching pair are set. Directed: an arc i -> j
    is created when the sign of mz[j] - mz[i] equals the transformation
    polarity (`+` = j is heavier). Cells explained by several transformations
    carry every group label, joined by LABEL_SEP in catalog order.
    """
    ft = coerce_features(features, schema)
    catalog = coerce_transformations(transformations)
    try:
        ppm = float(ppm)
    except (TypeError, ValueError) as exc:
        raise InvalidInput(f"ppm must be numeric, got {ppm!r}.") from exc
    if not math.isfinite(ppm) or ppm <= 0:
        raise InvalidInput(f"ppm must be finite and > 0, got {ppm!r}.")

    n = len(ft)
    mz = ft.mz
    binary = np.zeros((n, n), dtype=np.int8)
    cell_labels: Dict[Tuple[int, int], List[str]] = {}

    def _register(i: int, j: int, group: str) -> None:
        binary[i, j] = 1
        labels = cell_labels.setdefault((i, j), [])
        if group not in labels:
            labels.append(group)

    for t in catalog:
        pairs = _matching_pairs(mz, t.mass, ppm)
        if pairs.size == 0:
            continue
        logger.debug("%s (%.6f Da): %d matching pairs", t.group, t.mass, pairs.shape[0])
        for light, heavy in pairs.tolist():
            if not directed:
                _register(light, heavy, t.group)
                _register(heavy, light, t.group)
                continue
            if mz[heavy] == mz[light]:
                continue
            if t.polarity_sign > 0:
                _register(light, heavy, t.group)
            else:
                _register(heavy, light, t.group)

    transformation = np.full((n, n), "", dtype=object)
    mass_difference = np.full((n, n), np.nan, dtype=float)
    for (i, j), labels in cell_labels.items():
        transformation[i, j] = LABEL_SEP.join(labels)
        mass_difference[i, j] = mz[j] - mz[i]

    am = AdjacencyMatrix(
        ids=ft.ids,
        layers={
            "binary": binary,
            "transformation": transformation,
            "mass_difference": mass_difference,
        },
        type=STRUCTURAL,
        directed=bool(directed),
        thresholded=False,
    )
    logger.info(
        "Structural network: %d features, %d transformations, %d edges (ppm=%g, directed=%s)",
        n,
        len(catalog),
        am.n_edges,
        ppm,
        bool(directed),
    )
    return am


def _rt_consistent(
    groups: List[str],
    by_group: Dict[str, List[Transformation]],
    mz_i: float,
    mz_j: float,
    rt_i: float,
    rt_j: float,
) -> bool:
    if not groups or not (math.isfinite(rt_i) and math.isfinite(rt_j)):
        return True
    mass_sign = float(np.sign(mz_j - mz_i))
    for group in groups:
        candidates = by_group.get(group)
        if not candidates:
            return True
        for t in candidates:
            if t.rt == RT_UNCONSTRAINED:
                return True
            # > 0 when RT moves up from substrate to product.
            d = mass_sign * t.polarity_sign * (rt_j - rt_i)
            if (t.rt == RT_INCREASE and d > 0) or (t.rt == RT_DECREASE and d < 0):
                return True
    return False


def rt_correction(
    am: AdjacencyMatrix,
    features: FeatureInput,
    transformations: TransformationInput = None,
    *,
    schema: Optional[SchemaConfig] = None,
) -> AdjacencyMatrix:
    """
    Remove structural edges whose retention-time shift contradicts the expected
    direction of every transformation explaining them.

    Edges with a missing RT on either side, or explained by an unconstrained
    transformation, are kept. Returns a new matrix flagged `thresholded=True`.
    """
    if am.type != STRUCTURAL:
        raise PreconditionViolation(f"rt_correction requires a structural matrix, got {am.type!r}.")
    if am.thresholded:
        raise PreconditionViolation("Adjacency matrix has already been RT-corrected.")
    if "transformation" not in am.layers:
        raise PreconditionViolation("Structural matrix is missing its 'transformation' layer.")

    ft = coerce_features(features, schema)
    if ft.ids != am.ids:
        raise DimensionMismatch("Feature identifiers do not match the adjacency matrix ordering.")
    by_group = catalog_by_group(coerce_transformations(transformations))

    binary = np.array(am.binary, copy=True)
    labels = am.layer("transformation")
    mz, rt = ft.mz, ft.rt

    removed = 0
    rows, cols = np.nonzero(binary)
    for i, j in zip(rows.tolist(), cols.tolist()):
        groups = [g for g in str(labels[i, j]).split(LABEL_SEP) if g]
        if not _rt_consistent(groups, by_group, float(mz[i]), float(mz[j]), float(rt[i]), float(rt[j])):
            binary[i, j] = 0
            removed += 1

    logger.info("RT correction removed %d of %d cells", removed, int(rows.size))
    return am.with_layers({"binary": binary}, thresholded=True)
