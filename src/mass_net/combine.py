from __future__ import annotations

import logging
from typing import Dict, Literal, Tuple

import numpy as np

from .adjacency import COMBINE_BINARY, COMBINED, STATISTICAL, AdjacencyMatrix
from .errors import DimensionMismatch, InvalidInput

logger = logging.getLogger(__name__)

CombineMode = Literal["or", "and"]


def _prefixes(a: AdjacencyMatrix, b: AdjacencyMatrix) -> Tuple[str, str]:
    if a.type != b.type:
        return a.type, b.type
    return f"{a.type}1", f"{b.type}2"


def combine(
    structural: AdjacencyMatrix,
    statistical: AdjacencyMatrix,
    *,
    mode: CombineMode = "or",
) -> AdjacencyMatrix:
    """
    Merge two adjacency matrices over the same feature ordering.

    `combine_binary` is the elementwise OR (default) or AND of both binary
    layers. Every source layer is kept under `<source type>_<layer>`.
    """
    if structural.ids != statistical.ids:
        raise DimensionMismatch(
            "Adjacency matrices must share the identical feature ordering "
            f"({len(structural)} vs {len(statistical)} features)."
        )
    mode = str(mode).strip().lower()
    if mode not in ("or", "and"):
        raise InvalidInput(f"Unsupported combine mode {mode!r}; expected 'or' or 'and'.")

    for am in (structural, statistical):
        if am.type == STATISTICAL and not am.thresholded:
            logger.warning("Combining an unthresholded statistical matrix; its binary layer is empty.")

    b1 = structural.binary.astype(bool)
    b2 = statistical.binary.astype(bool)
    merged = (b1 | b2) if mode == "or" else (b1 & b2)

    p1, p2 = _prefixes(structural, statistical)
    layers: Dict[str, np.ndarray] = {COMBINE_BINARY: merged.astype(np.int8)}
    for prefix, am in ((p1, structural), (p2, statistical)):
        for name, arr in am.layers.items():
            layers[f"{prefix}_{name}"] = arr

    out = AdjacencyMatrix(
        ids=structural.ids,
        layers=layers,
        type=COMBINED,
        directed=structural.directed or statistical.directed,
        thresholded=structural.thresholded and statistical.thresholded,
    )
    logger.info(
        "Combined network (%s): %d edges from %d + %d",
        mode,
        out.n_edges,
        structural.n_edges,
        statistical.n_edges,
    )
    return out
