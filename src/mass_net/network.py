"""End-to-end network construction: structural -> RT correction -> statistical -> threshold -> combine."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from .adjacency import AdjacencyMatrix
from .combine import combine
from .config import NetworkConfig
from .lcms_utils import FeatureInput, coerce_features
from .statistical import build_statistical, threshold
from .structural import build_structural, rt_correction
from .transformations import TransformationInput, coerce_transformations

logger = logging.getLogger(__name__)


@dataclass
class NetworkResult:
    structural: AdjacencyMatrix
    structural_rt: Optional[AdjacencyMatrix]  # None when RT correction is disabled
    statistical: AdjacencyMatrix
    statistical_thresholded: AdjacencyMatrix
    combined: AdjacencyMatrix


def build_network(
    features: FeatureInput,
    expr: object,
    transformations: TransformationInput = None,
    config: Optional[NetworkConfig] = None,
) -> NetworkResult:
    cfg = config or NetworkConfig()
    ft = coerce_features(features, cfg.schema)
    catalog = coerce_transformations(transformations)

    struct = build_structural(ft, catalog, ppm=cfg.ppm, directed=cfg.directed)
    struct_rt = rt_correction(struct, ft, catalog) if cfg.rt_correction else None

    stat = build_statistical(ft, expr, models=cfg.models, correction=cfg.correction)
    stat_thr = threshold(
        stat,
        cfg.clauses,
        method=cfg.threshold_method,  # type: ignore[arg-type]
        n=cfg.threshold_n,
    )

    final_struct = struct_rt if struct_rt is not None else struct
    combined = combine(final_struct, stat_thr, mode=cfg.combine_mode)  # type: ignore[arg-type]
    logger.info(
        "Network built: %d features; structural=%d, statistical=%d, combined=%d edges",
        len(ft),
        final_struct.n_edges,
        stat_thr.n_edges,
        combined.n_edges,
    )
    return NetworkResult(
        structural=struct,
        structural_rt=struct_rt,
        statistical=stat,
        statistical_thresholded=stat_thr,
        combined=combined,
    )
