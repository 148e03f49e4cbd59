"""
mass_net: structural (mass-difference) and statistical (correlation) networks for LC-MS features.
"""

__version__ = "0.1.0"

from .adjacency import (
    AdjacencyMatrix,
    format_adjacency,
    mass_difference_summary,
    summarize_transformations,
    to_networkx,
)
from .combine import combine
from .config import NetworkConfig
from .errors import DimensionMismatch, InvalidInput, MassNetError, PreconditionViolation
from .lcms_utils import Feature, SchemaConfig
from .network import NetworkResult, build_network
from .statistical import Clause, build_statistical, threshold
from .structural import build_structural, rt_correction
from .transformations import Transformation, default_transformations

__all__ = [
    "AdjacencyMatrix",
    "Clause",
    "DimensionMismatch",
    "Feature",
    "InvalidInput",
    "MassNetError",
    "NetworkConfig",
    "NetworkResult",
    "PreconditionViolation",
    "SchemaConfig",
    "Transformation",
    "build_network",
    "build_statistical",
    "build_structural",
    "combine",
    "default_transformations",
    "format_adjacency",
    "mass_difference_summary",
    "rt_correction",
    "summarize_transformations",
    "threshold",
    "to_networkx",
    "__version__",
]
