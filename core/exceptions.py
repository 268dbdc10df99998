"""Error and warning types raised by statboot.

``InvalidArgument`` and ``NumericError`` abort the current call. A
``ConvergenceWarning`` is emitted through :mod:`warnings` and never aborts.
"""
from __future__ import annotations

__all__ = ["ConvergenceWarning", "InvalidArgument", "NumericError"]


class InvalidArgument(ValueError):
    """Raised for malformed inputs (non-positive sizes, bad ``dim``, shapes)."""


class NumericError(ArithmeticError, ValueError):
    """Raised when data or statistics contain NaN or infinite values."""


class ConvergenceWarning(RuntimeWarning):
    """Root finding stopped at the iteration cap before reaching tolerance."""
