"""Error types raised by massNet network builders."""

from __future__ import annotations


class MassNetError(ValueError):
    """Base class for massNet errors (a ValueError, so callers can catch broadly)."""


class InvalidInput(MassNetError):
    """Malformed feature, transformation or parameter input."""


class PreconditionViolation(MassNetError):
    """Operation invoked on an adjacency matrix in the wrong lifecycle state."""


class DimensionMismatch(MassNetError):
    """Adjacency matrices (or features) do not share the same vertex ordering."""
