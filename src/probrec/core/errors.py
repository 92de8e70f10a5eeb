"""Core error types with rich context.

Four error types cover every failure the reconciliation core can report.
Each carries a stable error_code, a context dict for debugging, and a
fix hint.
"""

from __future__ import annotations

from typing import Any


class ProbRecError(Exception):
    """Base exception with rich context.

    All errors in probrec use this class with specific error_code
    values instead of creating many subclasses.
    """

    error_code: str = "E_UNKNOWN"
    fix_hint: str = ""

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        fix_hint: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}
        if fix_hint:
            self.fix_hint = fix_hint

    def __str__(self) -> str:
        parts = [f"[{self.error_code}] {self.message}"]
        if self.context:
            parts.append(f"(context: {self.context})")
        if self.fix_hint:
            parts.append(f"[hint: {self.fix_hint}]")
        return " ".join(parts)


class EInvalidHierarchy(ProbRecError):
    """Summing matrix fails structural validation."""

    error_code = "E_INVALID_HIERARCHY"
    fix_hint = "S must be (n x m) with 0/1 entries and its last m rows equal to the identity"


class EDimensionMismatch(ProbRecError):
    """A realization, draw or reconciliation matrix has the wrong shape."""

    error_code = "E_DIMENSION_MISMATCH"
    fix_hint = "Order every vector and sample matrix like the hierarchy's node_names; G must be (m x n)"


class EDidNotConverge(ProbRecError):
    """Optimizer exhausted its iteration cap before meeting the tolerance."""

    error_code = "E_DID_NOT_CONVERGE"
    fix_hint = "Increase max_iter or relax tol; the best-seen result is in context['result']"


class EDegenerateSample(ProbRecError):
    """Sample draws cannot produce a finite score."""

    error_code = "E_DEGENERATE_SAMPLE"
    fix_hint = "Check the sample generator for NaN/Inf output"


# Names used throughout the reconciliation literature
InvalidHierarchy = EInvalidHierarchy
DimensionMismatch = EDimensionMismatch
DidNotConverge = EDidNotConverge
DegenerateSample = EDegenerateSample

# Error registry for lookup
ERROR_REGISTRY: dict[str, type[ProbRecError]] = {
    "E_INVALID_HIERARCHY": EInvalidHierarchy,
    "E_DIMENSION_MISMATCH": EDimensionMismatch,
    "E_DID_NOT_CONVERGE": EDidNotConverge,
    "E_DEGENERATE_SAMPLE": EDegenerateSample,
}


def get_error_class(error_code: str) -> type[ProbRecError]:
    """Get error class by code."""
    return ERROR_REGISTRY.get(error_code, ProbRecError)
