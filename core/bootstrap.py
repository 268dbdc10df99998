"""Bootstrap distribution summaries.

Helpers that turn a set of bootstrap statistics into standard errors and
confidence limits: an empirical CDF with tied values ranked competitively,
percentiles by linear interpolation, percentiles of a Gaussian kernel density
estimate, and Student-t expansion of tail probabilities.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Any

import numpy as np
from scipy.optimize import brentq
from scipy.stats import norm
from scipy.stats import t as student_t

from .backend import asarray
from .exceptions import InvalidArgument, NumericError

if TYPE_CHECKING:
    from numpy.typing import NDArray

__all__ = [
    "DEFAULT_BOOTSTRAP_ITERATIONS",
    "bootstrap_se",
    "empcdf",
    "expand_probs",
    "kdeinv",
    "percentile_interp",
    "proportion_below",
]

# Default bootstrap replications
DEFAULT_BOOTSTRAP_ITERATIONS: int = 2000

# Half-width of the root-finding bracket, in bandwidths beyond the data.
_KDE_BRACKET_BW: float = 40.0


def empcdf(
    y: Any, trim: bool = True, m: int = 0,
) -> tuple[NDArray[np.float64], NDArray[np.float64], NDArray[np.float64]]:
    """Empirical CDF of ``y`` in the presence of ties.

    Ties are handled by competition ranking: every copy of a value gets the
    CDF of the last copy. NaNs are discarded.

    Parameters
    ----------
    y : array-like
        1-D sample.
    trim : bool, default True
        Return each distinct value once.
    m : {0, 1}, default 0
        The CDF denominator is ``N + m``. With ``m = 1`` quantiles interpolated
        from (x, F) follow Hyndman and Fan (1996) definition 6.

    Returns
    -------
    x : ndarray
        Sorted values.
    F : ndarray
        Empirical CDF at ``x``.
    P : ndarray
        Upper-tail proportion ``P(Y >= x)``.

    """
    if m not in (0, 1):
        raise InvalidArgument("m must be either 0 or 1")
    arr = asarray(y)
    if arr.ndim > 1 and min(arr.shape) > 1:
        raise InvalidArgument("y must be a vector")
    arr = arr.ravel()
    x = np.sort(arr[~np.isnan(arr)])
    N = int(x.size)
    if N == 0:
        raise InvalidArgument("y must contain at least one non-NaN value")
    uniq, first, inverse = np.unique(x, return_index=True, return_inverse=True)
    # number of values <= each distinct value
    last = np.append(first[1:], N)
    if trim:
        return uniq, last / (N + m), 1.0 - first / N
    return x, last[inverse] / (N + m), 1.0 - first[inverse] / N


def percentile_interp(bootstat: Any, probs: Any) -> NDArray[np.float64]:
    """Percentiles of ``bootstat`` by linear interpolation of its CDF.

    Probabilities beyond the first or last CDF value map to the minimum or
    maximum of the bootstrap statistics.
    """
    x, F, _ = empcdf(bootstat, trim=True, m=1)
    return np.interp(asarray(probs), F, x).astype(np.float64)


def proportion_below(bootstat: Any, ref: Any) -> NDArray[np.float64]:
    """Proportion of each row of ``bootstat`` at or below ``ref``.

    The count is interpolated linearly between the largest value at or below
    the reference and the smallest value above it, so the result moves
    continuously with ``ref``.

    Parameters
    ----------
    bootstat : (K, B) array
        Bootstrap draws of K statistics.
    ref : (K,) array-like
        Reference value for each statistic.

    """
    arr = np.atleast_2d(asarray(bootstat))
    refs = np.atleast_1d(asarray(ref)).ravel()
    K, B = arr.shape
    if refs.size != K:
        msg = f"ref must hold one value per statistic; got {refs.size} for {K}"
        raise InvalidArgument(msg)
    out = np.empty(K, dtype=np.float64)
    for j in range(K):
        y = arr[j]
        below = y <= refs[j]
        pr = int(below.sum())
        lo = max(y.min(), y[below].max()) if pr > 0 else y.min()
        hi = min(y.max(), y[~below].min()) if pr < B else y.max()
        dt = hi - lo
        if pr < B and dt > 0:
            out[j] = pr + (refs[j] - lo) / dt
        else:
            out[j] = pr
    return out / B


def kdeinv(probs: Any, y: Any, bw: float, cf: float = 1.0) -> NDArray[np.float64]:
    """Inverse CDF of a Gaussian kernel density estimate of ``y``.

    Parameters
    ----------
    probs : array-like
        Probabilities in [0, 1]. 0 and 1 map to -inf and +inf.
    y : array-like
        Sample the density is estimated from.
    bw : float
        Kernel bandwidth (standard deviation), must be positive.
    cf : float, default 1.0
        Shrinkage factor applied to the variance of ``y`` before smoothing.

    Raises
    ------
    ValueError
        If the bandwidth is not positive or a root cannot be bracketed.

    """
    Y = asarray(y).ravel()
    P = np.atleast_1d(asarray(probs))
    bw = float(bw)
    if not (np.isfinite(bw) and bw > 0.0):
        msg = f"kdeinv bandwidth must be positive and finite; got {bw}"
        raise ValueError(msg)
    if np.any((P < 0.0) | (P > 1.0)):
        raise ValueError("kdeinv probabilities must lie in [0, 1]")
    mu = float(np.mean(Y))
    Y = (Y - mu) * np.sqrt(cf) + mu
    lo = float(Y.min()) - _KDE_BRACKET_BW * bw
    hi = float(Y.max()) + _KDE_BRACKET_BW * bw
    out = np.empty(P.shape, dtype=np.float64)
    for i, p in enumerate(P):
        if p == 0.0:
            out[i] = -np.inf
        elif p == 1.0:
            out[i] = np.inf
        else:
            out[i] = brentq(lambda v, p=p: float(np.mean(norm.cdf((v - Y) / bw))) - p, lo, hi)
    return out


def expand_probs(p: Any, df: float) -> NDArray[np.float64]:
    """Expand tail probabilities as if the statistic followed Student's t.

    Returns ``Phi(t_df^{-1}(p))``: small probabilities get smaller and large
    ones larger, widening percentile intervals for small samples.
    """
    if not float(df) > 0.0:
        msg = f"df must be positive; got {df}"
        raise InvalidArgument(msg)
    return norm.cdf(student_t.ppf(asarray(p), df)).astype(np.float64)


def bootstrap_se(bootstat: NDArray[np.float64]) -> NDArray[np.float64]:
    """Bootstrap standard errors from bootstrap statistics.

    This function is intentionally strict:

    - Requires at least 2 bootstrap draws.
    - Rejects any non-finite (NaN/Inf) values.
    - Uses ddof=1 (unbiased sample standard deviation).

    Parameters
    ----------
    bootstat : (K, B) array
        Bootstrap draws of K statistics.

    Returns
    -------
    se : (K,) array
        Bootstrap standard errors.

    """
    arr = asarray(bootstat)
    if arr.ndim == 1:
        arr = arr.reshape(1, -1)
    if arr.ndim != 2:
        raise InvalidArgument("bootstat must be a 2-D array of shape (K, B).")
    _, B = arr.shape
    if B < 2:
        msg = f"bootstrap_se requires at least 2 draws; got B={B}."
        raise InvalidArgument(msg)
    if not np.isfinite(arr).all():
        bad = np.argwhere(~np.isfinite(arr))
        msg = (
            "Non-finite bootstrap statistics detected (showing up to 10 [k,b] indices): "
            f"{bad[:10].tolist()}."
        )
        raise NumericError(msg)
    return np.std(arr, axis=1, ddof=1).astype(np.float64)
