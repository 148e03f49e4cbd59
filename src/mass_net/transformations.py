"""Catalog of biochemical transformations used for structural networks.

Each transformation is a characteristic, strictly positive mass shift. The
retention-time direction describes how RT moves from substrate to product
(reversed-phase conventions): `increase`, `decrease` or `unconstrained`.
The polarity states which side of a pair is the product: `+` means the heavier
feature (the transformation adds mass), `-` the lighter one (a loss).
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from typing import Any, Iterable, List, Mapping, Sequence, Union

import pandas as pd

from .errors import InvalidInput

RT_INCREASE = "increase"
RT_DECREASE = "decrease"
RT_UNCONSTRAINED = "unconstrained"

_RT_ALIASES = {
    "+": RT_INCREASE,
    "increase": RT_INCREASE,
    "up": RT_INCREASE,
    "-": RT_DECREASE,
    "decrease": RT_DECREASE,
    "down": RT_DECREASE,
    "?": RT_UNCONSTRAINED,
    "": RT_UNCONSTRAINED,
    "none": RT_UNCONSTRAINED,
    "nan": RT_UNCONSTRAINED,
    "unconstrained": RT_UNCONSTRAINED,
}

# group, formula, monoisotopic mass shift (Da), RT direction
DEFAULT_TRANSFORMATIONS = (
    ("Hydroxylation", "O", 15.9949146221, "-"),
    ("Methylation", "CH2", 14.0156500641, "+"),
    ("Hydrogenation", "H2", 2.0156500641, "?"),
    ("Carboxylation", "CO2", 43.9898292391, "-"),
    ("Acetylation (-H2O)", "C2H2O", 42.0105646837, "+"),
    ("Malonyl group (-H2O)", "C3H2O3", 86.0003939228, "?"),
    ("Glycine conjugation (-H2O)", "C2H3NO", 57.0214637206, "-"),
    ("Sulfation (-H2O)", "SO3", 79.9568148587, "-"),
    ("Phosphorylation (-H2O)", "HPO3", 79.9663305208, "-"),
    ("Pentose (-H2O)", "C5H8O4", 132.0422587348, "-"),
    ("Deoxyhexose (-H2O)", "C6H10O4", 146.0579087989, "-"),
    ("Hexose (-H2O)", "C6H10O5", 162.0528234185, "-"),
    ("Glucuronic acid (-H2O)", "C6H8O6", 176.0320879739, "-"),
    ("Coumaroyl group (-H2O)", "C9H6O2", 146.0367794315, "+"),
    ("Caffeoyl group (-H2O)", "C9H6O3", 162.0316940511, "+"),
    ("Feruloyl group (-H2O)", "C10H8O3", 176.0473441152, "+"),
    ("Sinapoyl group (-H2O)", "C11H10O4", 206.0579087989, "+"),
)


def normalize_rt_direction(raw: object) -> str:
    if raw is None or (isinstance(raw, float) and math.isnan(raw)):
        return RT_UNCONSTRAINED
    key = str(raw).strip().lower()
    if key not in _RT_ALIASES:
        raise InvalidInput(f"Unsupported retention-time direction: {raw!r}")
    return _RT_ALIASES[key]


def normalize_polarity(raw: object) -> str:
    if raw is None or (isinstance(raw, float) and math.isnan(raw)):
        return "+"
    key = str(raw).strip().lower()
    if key in {"+", "forward", "gain", ""}:
        return "+"
    if key in {"-", "reverse", "loss"}:
        return "-"
    raise InvalidInput(f"Unsupported transformation polarity: {raw!r}")


@dataclass(frozen=True)
class Transformation:
    group: str
    formula: str
    mass: float
    rt: str = RT_UNCONSTRAINED
    polarity: str = "+"

    def __post_init__(self) -> None:
        if not str(self.group).strip():
            raise InvalidInput("Transformation group label must be non-empty.")
        try:
            mass = float(self.mass)
        except (TypeError, ValueError) as exc:
            raise InvalidInput(f"{self.group}: mass must be numeric, got {self.mass!r}.") from exc
        if not math.isfinite(mass) or mass <= 0:
            raise InvalidInput(f"{self.group}: mass must be finite and > 0, got {self.mass!r}.")
        object.__setattr__(self, "group", str(self.group))
        formula = self.formula
        if formula is None or (isinstance(formula, float) and math.isnan(formula)):
            formula = ""
        object.__setattr__(self, "formula", str(formula))
        object.__setattr__(self, "mass", mass)
        object.__setattr__(self, "rt", normalize_rt_direction(self.rt))
        object.__setattr__(self, "polarity", normalize_polarity(self.polarity))

    @property
    def polarity_sign(self) -> int:
        return 1 if self.polarity == "+" else -1


TransformationInput = Union[None, pd.DataFrame, Iterable[Union[Transformation, Mapping[str, Any]]]]


def default_transformations() -> List[Transformation]:
    return [Transformation(group=g, formula=f, mass=m, rt=rt) for g, f, m, rt in DEFAULT_TRANSFORMATIONS]


def _from_mapping(row: Mapping[str, Any]) -> Transformation:
    if "group" not in row or "mass" not in row:
        raise InvalidInput(f"Transformation record must define 'group' and 'mass': {dict(row)!r}")
    return Transformation(
        group=row["group"],
        formula=row.get("formula", ""),
        mass=row["mass"],
        rt=row.get("rt", RT_UNCONSTRAINED),
        polarity=row.get("polarity", "+"),
    )


def transformations_from_frame(df: pd.DataFrame) -> List[Transformation]:
    """Read a catalog table with columns group, formula, mass, rt (+ optional polarity)."""
    missing = {"group", "mass"} - set(df.columns)
    if missing:
        raise InvalidInput(f"Transformation table is missing columns {sorted(missing)}.")
    return [_from_mapping(row) for row in df.to_dict(orient="records")]


def transformations_to_frame(transformations: Sequence[Transformation]) -> pd.DataFrame:
    return pd.DataFrame(
        [asdict(t) for t in transformations],
        columns=["group", "formula", "mass", "rt", "polarity"],
    )


def coerce_transformations(obj: TransformationInput) -> List[Transformation]:
    """Return a non-empty list of Transformation (None selects the built-in catalog)."""
    if obj is None:
        return default_transformations()
    if isinstance(obj, pd.DataFrame):
        out = transformations_from_frame(obj)
    else:
        out = []
        for item in obj:
            if isinstance(item, Transformation):
                out.append(item)
            elif isinstance(item, Mapping):
                out.append(_from_mapping(item))
            else:
                raise InvalidInput(f"Unsupported transformation record: {item!r}")
    if not out:
        raise InvalidInput("Transformation catalog must contain at least one entry.")
    return out


def catalog_by_group(transformations: Sequence[Transformation]) -> dict[str, List[Transformation]]:
    out: dict[str, List[Transformation]] = {}
    for t in transformations:
        out.setdefault(t.group, []).append(t)
    return out
