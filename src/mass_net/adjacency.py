"""Multi-layer adjacency matrices over a fixed feature ordering.

An AdjacencyMatrix holds one or more square layers (binary connectivity plus
per-edge attributes such as transformation labels, mass differences or
correlation coefficients). Objects are immutable: refinement, thresholding and
combination always return a new object so the input stays available as an
audit trail.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple

import networkx as nx
import numpy as np
import pandas as pd

from .errors import DimensionMismatch, InvalidInput

logger = logging.getLogger(__name__)

STRUCTURAL = "structural"
STATISTICAL = "statistical"
COMBINED = "combined"
MATRIX_TYPES = (STRUCTURAL, STATISTICAL, COMBINED)

# Connectivity layer of a combined matrix; source layers are namespaced around it.
COMBINE_BINARY = "combine_binary"

# Separator for cells explained by more than one transformation.
LABEL_SEP = "|"


@dataclass(frozen=True, eq=False)
class AdjacencyMatrix:
    ids: Tuple[str, ...] = field(repr=False)
    layers: Mapping[str, np.ndarray] = field(repr=False)
    type: str = STRUCTURAL
    directed: bool = False
    thresholded: bool = False
    _index: Dict[str, int] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        ids = tuple(str(x) for x in self.ids)
        index = {fid: pos for pos, fid in enumerate(ids)}
        if len(index) != len(ids):
            raise InvalidInput("Adjacency matrix identifiers must be unique.")
        if self.type not in MATRIX_TYPES:
            raise InvalidInput(f"Unsupported matrix type {self.type!r}; expected one of {MATRIX_TYPES}.")

        n = len(ids)
        frozen: Dict[str, np.ndarray] = {}
        for name, arr in self.layers.items():
            a = np.array(arr, copy=True)
            if a.shape != (n, n):
                raise DimensionMismatch(f"Layer {name!r} has shape {a.shape}, expected ({n}, {n}).")
            frozen[str(name)] = a

        bname = COMBINE_BINARY if self.type == COMBINED else "binary"
        if bname not in frozen:
            raise InvalidInput(f"A {self.type} adjacency matrix requires a {bname!r} layer.")
        b = frozen[bname]
        if b.size and not np.all((b == 0) | (b == 1)):
            raise InvalidInput(f"Layer {bname!r} must only contain 0/1 entries.")
        b = b.astype(np.int8)
        if n and np.any(np.diag(b) != 0):
            raise InvalidInput(f"Layer {bname!r} must have a zero diagonal (no self-edges).")
        frozen[bname] = b

        for a in frozen.values():
            a.setflags(write=False)

        object.__setattr__(self, "ids", ids)
        object.__setattr__(self, "layers", MappingProxyType(frozen))
        object.__setattr__(self, "directed", bool(self.directed))
        object.__setattr__(self, "thresholded", bool(self.thresholded))
        object.__setattr__(self, "_index", index)

    def __len__(self) -> int:
        return len(self.ids)

    @property
    def binary_layer_name(self) -> str:
        return COMBINE_BINARY if self.type == COMBINED else "binary"

    @property
    def binary(self) -> np.ndarray:
        return self.layers[self.binary_layer_name]

    @property
    def rt_corrected(self) -> bool:
        return self.type == STRUCTURAL and self.thresholded

    @property
    def n_edges(self) -> int:
        b = self.binary
        if self.directed:
            return int(np.count_nonzero(b))
        return int(np.count_nonzero(np.triu(b, k=1)))

    def layer(self, name: str) -> np.ndarray:
        try:
            return self.layers[name]
        except KeyError:
            raise KeyError(f"Unknown layer {name!r}; available: {list(self.layers)}") from None

    def position(self, feature_id: str) -> int:
        try:
            return self._index[str(feature_id)]
        except KeyError:
            raise KeyError(f"Unknown feature identifier {feature_id!r}.") from None

    def value(self, name: str, source_id: str, target_id: str) -> Any:
        return self.layer(name)[self.position(source_id), self.position(target_id)]

    def with_layers(self, updates: Mapping[str, np.ndarray], **changes: Any) -> "AdjacencyMatrix":
        """Return a new matrix with `updates` merged over the current layers."""
        layers = dict(self.layers)
        layers.update(updates)
        return replace(self, layers=layers, **changes)

    def to_edge_list(self, *, upper_only: bool = False) -> pd.DataFrame:
        """One row per non-zero binary cell, row-major over the matrix."""
        bname = self.binary_layer_name
        order = [bname] + [k for k in self.layers if k != bname]
        rows, cols = np.nonzero(self.binary)
        if upper_only:
            keep = rows < cols
            rows, cols = rows[keep], cols[keep]

        ids = np.asarray(self.ids, dtype=object)
        data: Dict[str, Any] = {
            "source_id": ids[rows],
            "target_id": ids[cols],
        }
        for name in order:
            data[name] = self.layers[name][rows, cols]
        return pd.DataFrame(data, columns=["source_id", "target_id"] + order)


def _label_layer(am: AdjacencyMatrix) -> Tuple[str, np.ndarray]:
    """Return the transformation layer and the binary mask its labels are counted under."""
    if "transformation" in am.layers:
        return "transformation", am.binary.astype(bool)
    for name in am.layers:
        if name.endswith("_transformation"):
            mask = am.binary.astype(bool)
            prefix = name[: -len("transformation")]
            own = am.layers.get(prefix + "binary")
            if own is not None:
                mask = mask & own.astype(bool)
            return name, mask
    raise KeyError("Adjacency matrix has no transformation layer to summarize.")


def _labelled_cells(am: AdjacencyMatrix) -> pd.DataFrame:
    name, mask = _label_layer(am)
    if not am.directed:
        mask = np.triu(mask, k=1)
    rows, cols = np.nonzero(mask)
    labels = am.layers[name][rows, cols]
    mdiff_name = name.replace("transformation", "mass_difference")
    if mdiff_name in am.layers:
        mdiff = am.layers[mdiff_name][rows, cols].astype(float)
    else:
        mdiff = np.full(rows.size, np.nan, dtype=float)

    records = []
    for label, md in zip(labels.tolist(), mdiff.tolist()):
        for group in str(label).split(LABEL_SEP):
            if group:
                records.append((group, md))
    return pd.DataFrame(records, columns=["group", "mass_difference"])


def summarize_transformations(am: AdjacencyMatrix) -> Dict[str, int]:
    """Count edges per transformation group.

    Undirected matrices count each unordered pair once; multi-label cells count
    once for every label they carry.
    """
    cells = _labelled_cells(am)
    if cells.empty:
        return {}
    counts = cells.groupby("group").size()
    ordered = sorted(counts.items(), key=lambda kv: (-int(kv[1]), str(kv[0])))
    return {str(k): int(v) for k, v in ordered}


def mass_difference_summary(am: AdjacencyMatrix) -> pd.DataFrame:
    cells = _labelled_cells(am)
    if cells.empty:
        return pd.DataFrame(columns=["group", "n_edges", "mean_abs_mass_difference"])
    cells["abs_mass_difference"] = cells["mass_difference"].abs()
    out = (
        cells.groupby("group")
        .agg(n_edges=("mass_difference", "size"), mean_abs_mass_difference=("abs_mass_difference", "mean"))
        .reset_index()
    )
    out = out.sort_values(["n_edges", "group"], ascending=[False, True], kind="mergesort")
    return out.reset_index(drop=True)


def format_adjacency(am: AdjacencyMatrix, *, max_ids: int = 5) -> str:
    shown = ", ".join(am.ids[:max_ids])
    if len(am.ids) > max_ids:
        shown += ", ..."
    lines = [
        f"AdjacencyMatrix of type {am.type!r}",
        f"  features: {len(am)} ({shown})",
        f"  directed: {am.directed}",
        f"  thresholded: {am.thresholded}",
        f"  layers: {', '.join(am.layers)}",
        f"  edges: {am.n_edges}",
    ]
    return "\n".join(lines)


def _py(value: Any) -> Any:
    if isinstance(value, np.generic):
        return value.item()
    return value


def to_networkx(am: AdjacencyMatrix, *, graph: Optional[nx.Graph] = None) -> nx.Graph:
    """Convert to a networkx graph; nodes are feature ids, edges carry every layer value."""
    if graph is None:
        graph = nx.DiGraph() if am.directed else nx.Graph()
    graph.add_nodes_from(am.ids)
    edges = am.to_edge_list(upper_only=not am.directed)
    attrs = [c for c in edges.columns if c not in ("source_id", "target_id")]
    for values in edges.to_dict(orient="records"):
        graph.add_edge(
            values["source_id"],
            values["target_id"],
            **{a: _py(values[a]) for a in attrs},
        )
    logger.debug("Converted %s matrix to networkx: %d nodes, %d edges", am.type, graph.number_of_nodes(), graph.number_of_edges())
    return graph
