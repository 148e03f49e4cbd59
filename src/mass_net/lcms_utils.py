from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from .errors import InvalidInput


@dataclass(frozen=True)
class SchemaConfig:
    id_col: Optional[str] = "Compound_ID"  # falls back to the frame index when absent
    mz_col: str = "MZ"
    rt_col: Optional[str] = "RT"


@dataclass(frozen=True)
class Feature:
    feature_id: str
    mz: float
    rt: float = float("nan")  # NaN = no retention time


@dataclass(frozen=True)
class FeatureTable:
    """Validated, ordered feature set used by all network builders."""

    ids: Tuple[str, ...]
    mz: np.ndarray
    rt: np.ndarray

    def __len__(self) -> int:
        return len(self.ids)

    @property
    def has_rt(self) -> np.ndarray:
        return np.isfinite(self.rt)


FeatureInput = Union[pd.DataFrame, Sequence[Feature], FeatureTable]


def _validate(ids: Sequence[str], mz: np.ndarray, rt: np.ndarray) -> FeatureTable:
    if len(ids) == 0:
        raise InvalidInput("At least one feature is required.")

    seen: set[str] = set()
    dupes: list[str] = []
    for fid in ids:
        if fid in seen:
            dupes.append(fid)
        seen.add(fid)
    if dupes:
        raise InvalidInput(f"Duplicate feature identifiers: {sorted(set(dupes))[:10]}")

    bad = ~np.isfinite(mz) | (mz <= 0)
    if np.any(bad):
        first = [ids[i] for i in np.flatnonzero(bad)[:10]]
        raise InvalidInput(f"m/z must be finite and > 0; offending features: {first}")

    mz = np.array(mz, dtype=float)
    rt = np.array(rt, dtype=float)
    # Infinite RT is treated like a missing value.
    rt[~np.isfinite(rt)] = np.nan
    mz.setflags(write=False)
    rt.setflags(write=False)
    return FeatureTable(ids=tuple(ids), mz=mz, rt=rt)


def coerce_features(obj: FeatureInput, schema: Optional[SchemaConfig] = None) -> FeatureTable:
    """Return a validated FeatureTable from a DataFrame or a sequence of Feature.

    DataFrame columns are resolved through `schema`; columns other than id, m/z
    and RT (e.g. sample intensities) are ignored.
    """
    if isinstance(obj, FeatureTable):
        return obj

    cfg = schema or SchemaConfig()
    if isinstance(obj, pd.DataFrame):
        df = obj
        if cfg.mz_col not in df.columns:
            raise InvalidInput(f"Feature table must contain an m/z column {cfg.mz_col!r}.")
        if cfg.id_col and cfg.id_col in df.columns:
            ids = [str(x) for x in df[cfg.id_col].tolist()]
        else:
            ids = [str(x) for x in df.index.tolist()]
        mz = pd.to_numeric(df[cfg.mz_col], errors="coerce").to_numpy(dtype=float)
        if cfg.rt_col and cfg.rt_col in df.columns:
            rt = pd.to_numeric(df[cfg.rt_col], errors="coerce").to_numpy(dtype=float)
        else:
            rt = np.full(len(ids), np.nan, dtype=float)
        return _validate(ids, mz, rt)

    items = list(obj)
    for item in items:
        if not isinstance(item, Feature):
            raise InvalidInput(f"Expected Feature records, got {type(item).__name__}.")
    ids = [str(f.feature_id) for f in items]
    mz = np.array([float(f.mz) for f in items], dtype=float)
    rt = np.array([float(f.rt) if f.rt is not None else math.nan for f in items], dtype=float)
    return _validate(ids, mz, rt)
