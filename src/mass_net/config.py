from __future__ import annotations

import json
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, List, Optional, Tuple, Union

import yaml

from .lcms_utils import SchemaConfig
from .statistical import Clause, coerce_clauses, pearson_clauses


def _default_clauses() -> List[Clause]:
    return list(pearson_clauses(coef=0.6, pvalue=0.05))


@dataclass
class NetworkConfig:
    """Configuration for building structural, statistical and combined networks."""

    # Structural matching
    ppm: float = 5.0
    directed: bool = False
    # Drop structural edges whose RT shift contradicts the transformation.
    rt_correction: bool = True

    # Statistical network
    models: Tuple[str, ...] = ("pearson", "spearman")
    correction: str = "BH"  # "BH" | "BY" | "bonferroni" | "none"
    threshold_method: str = "threshold"  # "threshold" | "top1" | "top2" | "mean"
    threshold_n: Optional[int] = None
    # AND-joined; default is abs(pearson_coef) > 0.6 & pearson_pvalue < 0.05
    clauses: List[Clause] = field(default_factory=_default_clauses)

    combine_mode: str = "or"  # "or" | "and"

    schema: SchemaConfig = field(default_factory=SchemaConfig)

    def __post_init__(self) -> None:
        if isinstance(self.schema, dict):
            self.schema = SchemaConfig(**self.schema)
        self.models = tuple(str(m) for m in self.models)
        self.clauses = coerce_clauses(self.clauses)

    @classmethod
    def from_dict(cls, data: dict) -> "NetworkConfig":
        # Unknown keys are ignored so shared config files can carry extra sections.
        valid = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in (data or {}).items() if k in valid})

    @classmethod
    def from_file(cls, path: Union[str, Path, None]) -> "NetworkConfig":
        """Load a config from YAML or JSON; values override the defaults."""
        if not path:
            return cls()
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(path)

        suffix = path.suffix.lower().strip()
        if suffix in {".yaml", ".yml"}:
            with open(path, "r", encoding="utf-8") as handle:
                obj = yaml.safe_load(handle) or {}
        elif suffix == ".json":
            obj = json.loads(path.read_text(encoding="utf-8"))
        else:
            raise ValueError(f"Unsupported config type {suffix!r}; expected .yaml/.yml or .json")

        if not isinstance(obj, dict):
            raise ValueError(f"Config file {path} must contain a mapping.")
        return cls.from_dict(obj)

    def to_dict(self) -> dict[str, Any]:
        return {
            "ppm": float(self.ppm),
            "directed": bool(self.directed),
            "rt_correction": bool(self.rt_correction),
            "models": list(self.models),
            "correction": str(self.correction),
            "threshold_method": str(self.threshold_method),
            "threshold_n": self.threshold_n,
            "clauses": [
                {"layer": c.layer, "op": c.op, "value": c.value, "abs": c.absolute} for c in self.clauses
            ],
            "combine_mode": str(self.combine_mode),
            "schema": {
                "id_col": self.schema.id_col,
                "mz_col": self.schema.mz_col,
                "rt_col": self.schema.rt_col,
            },
        }
