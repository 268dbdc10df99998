"""Balanced bootknife estimates of bias, precision and confidence intervals.

Bootknife resampling (Hesterberg 2004) draws each resample of size n from a
leave-one-out jackknife sample, which makes the bootstrap standard error
unbiased for small n. Resampling is balanced so that each row is used
equally often overall, reducing Monte Carlo error in the bias.

Intervals are percentiles of a kernel density estimate of the bootstrap
statistics (with shrinkage correction). A scalar ``alpha`` gives equal-tailed
percentile intervals; a pair gives bias-corrected and accelerated (BCa)
intervals. When the statistic is the mean, the tail probabilities are first
expanded with Student's t on n - K degrees of freedom (K strata).

Passing ``nboot=(B, C)`` with ``C > 0`` runs an iterated (double) bootstrap:
every first-level resample is itself resampled C times. The second level
gives a corrected bias, a calibrated standard error and calibrated
percentile intervals (Efron and Tibshirani 1993, algorithm 18.1; Hall, Lee
and Young 2000).
"""
from __future__ import annotations

import logging
import warnings
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

import numpy as np
from scipy.stats import norm

from statboot.core import bootstrap as bt
from statboot.core import sampling
from statboot.core.backend import asarray, make_rng
from statboot.core.exceptions import InvalidArgument, NumericError
from statboot.core.smoothmedian import smoothmedian
from statboot.estimators.base import BootConfig, BootknifeResult, normalize_alpha

if TYPE_CHECKING:
    from numpy.typing import NDArray

__all__ = ["bootknife"]

_LOGGER = logging.getLogger(__name__)

Statistic = Callable[[Any], Any]


def _named_statistics(tol: float | None) -> dict[str, Statistic]:
    return {
        "mean": lambda X: np.mean(X, axis=0),
        "median": lambda X: np.median(X, axis=0),
        "smoothmedian": lambda X: smoothmedian(np.reshape(X, (X.shape[0], -1)), 1, tol),
        "std": lambda X: np.std(X, axis=0, ddof=1),
        "var": lambda X: np.var(X, axis=0, ddof=1),
    }


def _resolve_bootfun(bootfun: str | Statistic, tol: float | None) -> tuple[Statistic, str]:
    if isinstance(bootfun, str):
        key = bootfun.lower().strip()
        named = _named_statistics(tol)
        if key not in named:
            msg = f"Unknown bootfun {bootfun!r}. Allowed: {sorted(named)} or a callable"
            raise InvalidArgument(msg)
        return named[key], key
    if callable(bootfun):
        return bootfun, getattr(bootfun, "__name__", type(bootfun).__name__)
    raise InvalidArgument("bootfun must be a statistic name or a callable")


def _resolve_nboot(cfg: BootConfig, nboot: Any) -> BootConfig:
    """Apply ``nboot`` (an int, or an (outer, inner) pair) to the configuration."""
    if nboot is None:
        return cfg
    sizes = np.atleast_1d(np.asarray(nboot)).ravel()
    if sizes.size not in (1, 2):
        msg = f"nboot must be an integer or an (outer, inner) pair; got {sizes.size} values"
        raise InvalidArgument(msg)
    inner = sizes[1].item() if sizes.size == 2 else 0
    cfg = cfg.with_updates(n_boot=sizes[0].item(), n_boot_inner=inner)
    return cfg.with_updates(n_boot=int(cfg.n_boot), n_boot_inner=int(cfg.n_boot_inner))


def _evaluate(func: Statistic, X: NDArray[np.float64]) -> NDArray[np.float64]:
    return np.atleast_1d(np.asarray(func(X), dtype=np.float64)).ravel()


def _draw_bootsam(
    cfg: BootConfig,
    n: int,
    strata_codes: NDArray[np.intp] | None,
    gen: np.random.Generator,
) -> NDArray[np.int32]:
    """Balanced indices (1-based), resampled within strata if given."""
    if strata_codes is None:
        return cfg.make_bootsam(n, rng=gen).astype(np.int32)
    bootsam = np.zeros((n, int(cfg.n_boot)), dtype=np.int32)
    for k in range(int(strata_codes.max()) + 1):
        rows = np.flatnonzero(strata_codes == k)
        if rows.size > 1:
            local = sampling.boot(rows.size, int(cfg.n_boot), cfg.unbiased, rng=gen).astype(np.intp) - 1
            bootsam[rows, :] = rows[local] + 1
        else:
            bootsam[rows, :] = rows[0] + 1
    return bootsam


def _statistics(
    func: Statistic, x: NDArray[np.float64], idx: NDArray[np.int32],
) -> NDArray[np.float64]:
    """Evaluate ``func`` on every column of 1-based indices, one column per resample."""
    return np.column_stack(
        [_evaluate(func, x[idx[:, b].astype(np.intp) - 1]) for b in range(idx.shape[1])],
    )


def _std_error(bootstat: NDArray[np.float64]) -> NDArray[np.float64]:
    # a single resample has no spread
    if bootstat.shape[1] < 2:
        return np.zeros(bootstat.shape[0])
    return bt.bootstrap_se(bootstat)


def _drop_non_finite(
    bootstat: NDArray[np.float64],
) -> tuple[NDArray[np.float64], NDArray[np.bool_]]:
    dropped = ~np.all(np.isfinite(bootstat), axis=0)
    if np.all(dropped):
        raise NumericError("bootfun returned NaN or Inf for every bootstrap resample")
    return bootstat[:, ~dropped], dropped


def _acceleration(
    func: Statistic,
    x: NDArray[np.float64],
    m: int,
    group_sizes: NDArray[np.float64] | None,
) -> NDArray[np.float64]:
    """Jackknife estimate of the BCa acceleration constant."""
    n = x.shape[0]
    rows = np.arange(n)
    T = np.column_stack([_evaluate(func, x[rows != i]) for i in range(n)])
    if T.shape[0] != m:
        msg = f"bootfun returned {T.shape[0]} values on a jackknife sample; expected {m}"
        raise ValueError(msg)
    centered = np.mean(T, axis=1, keepdims=True) - T
    if group_sizes is not None:
        U = (group_sizes - 1.0)[None, :] * centered
    else:
        U = (n - 1) * centered
    with np.errstate(invalid="ignore", divide="ignore"):
        a = np.sum(U**3, axis=1) / (6.0 * np.sum(U**2, axis=1) ** 1.5)
    # no jackknife variation: no skewness correction
    return np.where(np.isfinite(a), a, 0.0)


def _second_level(  # noqa: PLR0913
    func: Statistic,
    x: NDArray[np.float64],
    idx: NDArray[np.int32],
    inner_cfg: BootConfig,
    strata_codes: NDArray[np.intp] | None,
    gen: np.random.Generator,
    T0: NDArray[np.float64],
) -> tuple[NDArray[np.float64], NDArray[np.float64], NDArray[np.float64]]:
    """Resample each first-level resample again.

    Returns, per statistic (rows) and first-level resample (columns), the
    mean and variance of the second-level statistics and the proportion of
    them at or below the original estimate ``T0``.
    """
    m, B = T0.size, idx.shape[1]
    mu = np.empty((m, B))
    V = np.empty((m, B))
    Pr = np.empty((m, B))
    for b in range(B):
        xb = x[idx[:, b].astype(np.intp) - 1]
        inner, _ = _drop_non_finite(
            _statistics(func, xb, _draw_bootsam(inner_cfg, xb.shape[0], strata_codes, gen)),
        )
        mu[:, b] = np.mean(inner, axis=1)
        V[:, b] = _std_error(inner) ** 2
        Pr[:, b] = bt.proportion_below(inner, T0)
    _LOGGER.debug("Second-level resampling: %d x %d resamples", B, inner_cfg.n_boot)
    return mu, V, Pr


def _calibrated_probs(U: NDArray[np.float64], alpha_t: tuple[float, ...]) -> NDArray[np.float64]:
    """Percentile probabilities calibrated by the second-level proportions ``U``."""
    if len(alpha_t) == 1:
        # calibrate central coverage, then split it equally between the tails
        v, F, _ = bt.empcdf(np.abs(2.0 * U - 1.0), trim=True, m=1)
        vk = float(np.interp(1.0 - alpha_t[0], F, v))
        return np.array([0.5 * (1.0 - vk), 0.5 * (1.0 + vk)])
    u, F, _ = bt.empcdf(U, trim=True, m=1)
    return np.interp(np.asarray(alpha_t), F, u)


def _bca_probs(  # noqa: PLR0913
    func: Statistic,
    x: NDArray[np.float64],
    bootstat: NDArray[np.float64],
    T0: NDArray[np.float64],
    expan_alpha: NDArray[np.float64],
    group_sizes: NDArray[np.float64] | None,
) -> tuple[NDArray[np.float64], str]:
    m = T0.size
    ci_type = "bca"
    try:
        acc = _acceleration(func, x, m, group_sizes)
    except Exception as exc:  # noqa: BLE001 - user statistic may fail arbitrarily
        _LOGGER.debug("Jackknife evaluation failed: %s", exc)
        warnings.warn(
            "bootfun failed during jackknife calculations; acceleration constant set to 0",
            RuntimeWarning,
            stacklevel=3,
        )
        acc = np.zeros(m)
        ci_type = "bc"
    with np.errstate(divide="ignore"):
        z0 = norm.ppf(np.sum(bootstat < T0[:, None], axis=1) / bootstat.shape[1])
    if not np.all(np.isfinite(z0)):
        warnings.warn(
            "Unable to calculate the bias correction constant; reverting to percentile intervals",
            RuntimeWarning,
            stacklevel=3,
        )
        return np.tile(expan_alpha, (m, 1)), "percentile"
    z = norm.ppf(expan_alpha)
    probs = np.column_stack(
        [norm.cdf(z0 + (z0 + zk) / (1.0 - acc * (z0 + zk))) for zk in z],
    )
    return probs, ci_type


def bootknife(  # noqa: PLR0913
    data: Any,
    nboot: int | tuple[int, int] | None = None,
    bootfun: str | Statistic = "mean",
    alpha: Any = (0.025, 0.975),
    *,
    strata: Any = None,
    bootsam: Any = None,
    seed: int | None = None,
    rng: np.random.Generator | None = None,
    boot: BootConfig | None = None,
) -> BootknifeResult:
    """Balanced bootknife estimates for a statistic of ``data``.

    Parameters
    ----------
    data : array-like
        Column vector or matrix; rows are observations (at least 2).
    nboot : int or (int, int), optional
        Number of resamples, or a pair ``(B, C)`` of first- and second-level
        resamples for the iterated bootstrap (``C = 0`` disables iteration,
        otherwise ``C >= 2``). Defaults to ``boot.n_boot`` and
        ``boot.n_boot_inner`` (2000 and 0).
    bootfun : str or callable, default "mean"
        ``"mean"``, ``"median"``, ``"smoothmedian"``, ``"std"``, ``"var"`` or a
        callable receiving the (resampled) data with the same dimensionality
        as ``data`` and returning a scalar or vector.
    alpha : float, pair of floats or None, default (0.025, 0.975)
        Scalar: two-tailed probability of equal-tailed percentile intervals.
        Pair: lower and upper percentile probabilities of BCa intervals (or
        of calibrated percentile intervals when iterating). None: no
        intervals.
    strata : array-like, optional
        Group labels, one per row, for stratified resampling.
    bootsam : array-like, optional
        Precomputed (n x B) 1-based resampling indices; replaces generation
        of the first-level resamples.
    seed, rng : optional
        Random seed or generator for the resampling.
    boot : BootConfig, optional
        Supplies ``n_boot``, ``n_boot_inner``, ``seed``, ``unbiased`` and the
        smoothed median ``tol`` when the explicit arguments are not given.

    Returns
    -------
    BootknifeResult

    Notes
    -----
    Resamples whose statistic is NaN or infinite are dropped before any
    summary is computed; the count is reported in ``extra["n_dropped"]``.

    """
    cfg = _resolve_nboot((boot or BootConfig()).validate(), nboot)
    x = asarray(data)
    if x.ndim == 0 or x.ndim > 2:
        msg = f"data must be a vector or a matrix; got {x.ndim} dimensions"
        raise InvalidArgument(msg)
    n = int(x.shape[0])
    if n < 2:
        raise InvalidArgument("data must contain more than one row")

    func, bootfun_name = _resolve_bootfun(bootfun, cfg.tol)
    alpha_t = normalize_alpha(alpha)

    # Strata
    strata_codes = None
    group_sizes = None
    K = 1
    if strata is not None:
        labels = np.asarray(strata).ravel()
        if labels.shape[0] != n:
            msg = f"strata must have one label per row of data; got {labels.shape[0]} for {n} rows"
            raise InvalidArgument(msg)
        _, strata_codes, sizes = np.unique(labels, return_inverse=True, return_counts=True)
        strata_codes = strata_codes.ravel()
        K = int(sizes.size)
        group_sizes = sizes[strata_codes].astype(np.float64)
    if n - K < 1:
        raise InvalidArgument("strata must leave at least one degree of freedom (n > K)")

    T0 = _evaluate(func, x)
    if not np.all(np.isfinite(T0)):
        raise NumericError("bootfun returned NaN or Inf with the data provided")
    m = int(T0.size)

    # Resampling indices
    gen = make_rng(cfg.seed if seed is None else seed, rng)
    if bootsam is None:
        idx = _draw_bootsam(cfg, n, strata_codes, gen)
    else:
        idx = np.asarray(bootsam)
        if idx.ndim == 1:
            idx = idx.reshape(-1, 1)
        if idx.ndim != 2 or idx.shape[0] != n:
            raise InvalidArgument("bootsam must have the same number of rows as data")
        if idx.min() < 1 or idx.max() > n:
            msg = f"bootsam indices must lie in 1..{n}"
            raise InvalidArgument(msg)
        idx = idx.astype(np.int32)
    B = int(idx.shape[1])
    C = int(cfg.n_boot_inner)

    # Statistic on each resample
    bootstat_all = _statistics(func, x, idx)
    if bootstat_all.shape[0] != m:
        msg = f"bootfun returned {bootstat_all.shape[0]} values on a resample; expected {m}"
        raise InvalidArgument(msg)
    bootstat, dropped = _drop_non_finite(bootstat_all)
    if np.any(dropped):
        _LOGGER.info("Dropping %d resamples with NaN or Inf statistics", int(dropped.sum()))

    ci = np.full((m, 2), np.nan)
    probs = None
    ci_type = None
    if C > 0:
        inner_cfg = cfg.with_updates(n_boot=C, n_boot_inner=0)
        mu, V, Pr = _second_level(func, x, idx[:, ~dropped], inner_cfg, strata_codes, gen, T0)
        mean_bs = np.mean(bootstat, axis=1)
        # first-level bias minus the second-level estimate of its own bias
        bias = (mean_bs - T0) - (np.mean(mu, axis=1) - 2.0 * mean_bs + T0)
        with np.errstate(invalid="ignore", divide="ignore"):
            se = np.sqrt(_std_error(bootstat) ** 4 / np.mean(V, axis=1))
        if alpha_t is not None:
            ci_type = "calibrated percentile"
            probs = np.vstack([_calibrated_probs(Pr[j], alpha_t) for j in range(m)])
            for j in range(m):
                ci[j, :] = bt.percentile_interp(bootstat[j], probs[j])
    else:
        bias = np.mean(bootstat, axis=1) - T0
        se = _std_error(bootstat)
        if alpha_t is not None:
            nalpha = len(alpha_t)
            expanded = bootfun_name == "mean"
            a_arr = np.asarray(alpha_t, dtype=np.float64)
            if expanded:
                expan_alpha = (3 - nalpha) * bt.expand_probs(a_arr / (3 - nalpha), n - K)
            else:
                expan_alpha = a_arr
            if nalpha == 1:
                probs = np.tile([expan_alpha[0] / 2.0, 1.0 - expan_alpha[0] / 2.0], (m, 1))
                ci_type = "percentile"
            else:
                probs, ci_type = _bca_probs(func, x, bootstat, T0, expan_alpha, group_sizes)
            if expanded:
                ci_type = f"expanded {ci_type}"
            for j in range(m):
                try:
                    ci[j, :] = bt.kdeinv(
                        probs[j], bootstat[j], se[j] * np.sqrt(1.0 / (n - K)), 1.0 - 1.0 / (n - K),
                    )
                except (ValueError, RuntimeError) as exc:
                    _LOGGER.info(
                        "Falling back to linear interpolation to calculate percentiles "
                        "for interval pair %d (%s)",
                        j + 1,
                        exc,
                    )
                    ci[j, :] = bt.percentile_interp(bootstat[j], probs[j])

    return BootknifeResult(
        original=T0,
        bias=bias,
        std_error=se,
        ci_lower=ci[:, 0],
        ci_upper=ci[:, 1],
        bootstat=bootstat_all,
        bootsam=idx,
        n_boot=B,
        n_boot_inner=C,
        alpha=alpha_t,
        probs=probs,
        bootfun=bootfun_name,
        ci_type=ci_type,
        stratified=strata_codes is not None,
        unbiased=cfg.unbiased,
        extra={"n_dropped": int(dropped.sum()), "n_strata": K},
    )
