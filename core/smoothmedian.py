"""Smoothed median M-estimator.

The smoothed median of Brown, Hall and Young (2001) minimises

    S(M) = sum_{i<j} sqrt((x_i - M)^2 + (x_j - M)^2)

over the pairs of a sample. It trades a little robustness of the ordinary
median (breakdown point 0.341 instead of 0.5) for efficiency (Pitman
efficacy 0.865 instead of 0.637) and, unlike kernel smoothing, needs no
bandwidth. Bootstrap intervals built on it cover the ordinary population
median well.

The minimiser is the unique root of S'(M), found here with a Newton step
safeguarded by a shrinking bisection bracket that starts at the data range.

Reference: Brown, Hall and Young (2001) The smoothed median and the
bootstrap. Biometrika 88(2):519-534.
"""
from __future__ import annotations

import logging
import math
import warnings
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import numpy as np

from .backend import asarray
from .exceptions import ConvergenceWarning, InvalidArgument, NumericError

if TYPE_CHECKING:
    from numpy.typing import NDArray

__all__ = [
    "DEFAULT_MAX_ITER",
    "DEFAULT_REL_TOL",
    "SmoothedMedianFit",
    "SmoothedMedianSolver",
    "ordinary_median",
    "smoothmedian",
]

_LOGGER = logging.getLogger(__name__)

# Iterations after the initial pass (20 passes in total).
DEFAULT_MAX_ITER: int = 19
# Default tolerance relative to the data range.
DEFAULT_REL_TOL: float = 1e-4
# Upper bound on the number of pair terms held in memory at once.
_PAIR_BLOCK: int = 1 << 20


@dataclass
class SmoothedMedianFit:
    """Outcome of the root search on one row or column."""

    estimate: float
    n_iter: int
    converged: bool
    tol: float
    bracket_widths: list[float] = field(default_factory=list)


def ordinary_median(xvec: NDArray[np.float64]) -> float:
    """Median of an ascending-sorted vector (mean of the middle pair if even)."""
    m = int(xvec.size)
    mid = m // 2
    if m % 2:
        return float(xvec[mid])
    return 0.5 * (float(xvec[mid - 1]) + float(xvec[mid]))


def _derivatives(xvec: NDArray[np.float64], M: float) -> tuple[float, float]:
    """First and second derivative of S at M over all pairs i < j.

    Pairs where both values equal M have no defined derivative and are left
    out of both sums.
    """
    m = int(xvec.size)
    T = 0.0
    U = 0.0
    rows = max(1, _PAIR_BLOCK // max(m, 1))
    for lo in range(1, m, rows):
        hi = min(lo + rows, m)
        xj = xvec[lo:hi, None]
        xi = xvec[None, : hi - 1]
        upper = np.arange(hi - 1)[None, :] < np.arange(lo, hi)[:, None]
        D = (xi - M) ** 2 + (xj - M) ** 2
        keep = upper & (D != 0.0)
        if not np.any(keep):
            continue
        Dk = D[keep]
        R = np.sqrt(Dk)
        si = np.broadcast_to(xi, D.shape)[keep]
        sj = np.broadcast_to(xj, D.shape)[keep]
        T += float(np.sum((2.0 * M - si - sj) / R))
        U += float(np.sum((si - sj) ** 2 * R / Dk**2))
    return T, U


class SmoothedMedianSolver:
    """Newton-Bisection solver for the smoothed median.

    Parameters
    ----------
    tol : float, optional
        Stopping tolerance on the bracket width and on the Newton step size.
        Defaults to ``range * 1e-4`` computed separately for each row/column.
        Non-positive or non-finite values are rejected.
    max_iter : int, default 19
        Iterations allowed after the initial pass.

    """

    def __init__(self, tol: float | None = None, max_iter: int = DEFAULT_MAX_ITER) -> None:
        if tol is not None:
            tol = float(tol)
            if not (math.isfinite(tol) and tol > 0.0):
                msg = f"tol must be a positive finite number; got {tol}"
                raise InvalidArgument(msg)
        if int(max_iter) < 0:
            msg = f"max_iter must be non-negative; got {max_iter}"
            raise InvalidArgument(msg)
        self.tol = tol
        self.max_iter = int(max_iter)

    def fit_vector(self, xvec: Any, index: int = 1) -> SmoothedMedianFit:
        """Run the root search on one sample.

        ``index`` is the 1-based row/column number used in the convergence
        warning.
        """
        xvec = np.sort(asarray(xvec).ravel())
        if xvec.size == 0:
            raise InvalidArgument("cannot compute the smoothed median of an empty vector")
        M = ordinary_median(xvec)
        a = float(xvec[0])
        b = float(xvec[-1])
        width = b - a
        tol = width * DEFAULT_REL_TOL if self.tol is None else self.tol
        widths = [width]
        for it in range(self.max_iter + 1):
            if math.isfinite(width) and width <= tol:
                return SmoothedMedianFit(M, it, True, tol, widths)
            if not np.all(np.isfinite(xvec)):
                msg = f"x cannot contain NaN or Inf (vector {index})"
                raise NumericError(msg)
            T, U = _derivatives(xvec, M)
            step = T / U if U != 0.0 else math.nan
            if abs(step) < tol:
                return SmoothedMedianFit(M, it, True, tol, widths)
            if step < 0:
                a = M
            elif step > 0:
                b = M
            width = b - a
            widths.append(width)
            newton = M - step
            if a < newton < b:
                M = newton
            else:
                M = 0.5 * (a + b)
        msg = f"Root finding failed to reach tolerance for vector {index}"
        _LOGGER.warning(msg)
        warnings.warn(msg, ConvergenceWarning, stacklevel=2)
        return SmoothedMedianFit(M, self.max_iter + 1, False, tol, widths)

    def solve_vector(self, xvec: Any, index: int = 1) -> float:
        """Smoothed median of one sample."""
        return self.fit_vector(xvec, index=index).estimate

    def solve(self, x: Any, dim: int = 1) -> NDArray[np.float64]:
        """Smoothed median of each column (``dim=1``) or row (``dim=2``).

        A 1-D input, or a 2-D input with a single row, is always treated as one
        row vector: ``dim`` is then forced to 2 and one value is returned.
        Arrays with more than two dimensions are not supported.
        """
        if dim not in (1, 2):
            msg = f"dim must be 1 (column-wise) or 2 (row-wise); got {dim!r}"
            raise InvalidArgument(msg)
        arr = asarray(x)
        if arr.ndim > 2:
            msg = f"x must be a vector or a matrix; got {arr.ndim} dimensions"
            raise InvalidArgument(msg)
        arr = np.atleast_2d(arr)
        if arr.size == 0:
            raise InvalidArgument("x must not be empty")
        if arr.shape[0] == 1:
            dim = 2
        slots = arr.T if dim == 1 else arr
        out = np.empty(slots.shape[0], dtype=np.float64)
        for k in range(slots.shape[0]):
            fit = self.fit_vector(slots[k], index=k + 1)
            _LOGGER.debug("smoothmedian vector %d: %d iterations", k + 1, fit.n_iter)
            out[k] = fit.estimate
        return out


def smoothmedian(x: Any, dim: int = 1, tol: float | None = None) -> NDArray[np.float64]:
    """Smoothed median of the columns (``dim=1``) or rows (``dim=2``) of ``x``.

    Parameters
    ----------
    x : array-like
        Vector or matrix of finite values.
    dim : {1, 2}, default 1
        1 for one estimate per column, 2 for one estimate per row. Inputs with
        a single row are always reduced along that row.
    tol : float, optional
        Stopping tolerance; defaults to ``range * 1e-4`` per row/column.

    Returns
    -------
    M : (k,) ndarray
        One smoothed median per column or row.

    Raises
    ------
    InvalidArgument
        If ``dim`` is not 1 or 2, or ``x`` is empty or has more than 2 dims.
    NumericError
        If a row/column that needs iterating contains NaN or Inf.

    """
    return SmoothedMedianSolver(tol=tol).solve(x, dim=dim)
