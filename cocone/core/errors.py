"""Failure kinds reported by the reconstruction pipeline.

Every failure carries a short machine-readable ``kind`` and a human readable
``message`` so that callers (CLI, UI) can show it without a traceback.
"""

from __future__ import annotations


class ReconstructionError(Exception):
    kind: str = "reconstruction"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"{self.kind}: {self.message}"


class DegenerateInputError(ReconstructionError):
    """Too few points, or the points are affinely dependent."""

    kind = "degenerate_input"


class NumericOverflowError(ReconstructionError):
    """Predicate arithmetic does not fit the configured number type."""

    kind = "numeric_overflow"


class CancelledError(ReconstructionError):
    """The caller asked the running request to stop."""

    kind = "cancelled"

    def __init__(self, message: str = "reconstruction cancelled") -> None:
        super().__init__(message)


class EmptyResultError(ReconstructionError):
    """Classification accepted no facets."""

    kind = "empty_result"
