"""Bootstrap configuration and results containers."""

# statboot/estimators/base.py
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any

import numpy as np
import pandas as pd

from statboot.core import bootstrap as bt
from statboot.core import sampling
from statboot.core.exceptions import InvalidArgument

if TYPE_CHECKING:  # import-only typing
    from numpy.typing import NDArray

__all__ = [
    "BootConfig",
    "BootknifeResult",
    "normalize_alpha",
]


def normalize_alpha(alpha: Any) -> tuple[float, ...] | None:
    """Validate ``alpha`` for confidence intervals.

    Returns None (no intervals), a 1-tuple holding a two-tailed probability,
    or an ascending pair of percentile probabilities.
    """
    if alpha is None:
        return None
    arr = np.atleast_1d(np.asarray(alpha, dtype=np.float64)).ravel()
    if arr.size == 0 or np.all(np.isnan(arr)):
        return None
    if arr.size > 2:
        msg = (
            "alpha must be a scalar (two-tailed probability) or a pair of "
            f"probabilities; got {arr.size} values"
        )
        raise InvalidArgument(msg)
    if np.any(np.isnan(arr)) or np.any((arr < 0.0) | (arr > 1.0)):
        raise InvalidArgument("Value(s) in alpha must be between 0 and 1")
    if arr.size == 2 and arr[0] > arr[1]:
        raise InvalidArgument("The pair of probabilities must be in ascending numeric order")
    return tuple(float(a) for a in arr)


# ---------------------------------------------------------------------
# Bootstrap configuration
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class BootConfig:
    """Resampling configuration shared by estimators.

    Notes
    -----
    - Replications: default is 2000 (project-wide).
    - ``n_boot_inner > 0`` requests an iterated (double) bootstrap with that
      many second-level resamples per first-level resample; 0 disables it.
    - ``unbiased=True`` selects bootknife resampling, ``False`` plain
      balanced bootstrap resampling.
    - ``tol`` is forwarded to the smoothed median when it is the statistic.

    Reproducibility:
        * Use ``seed`` to initialise the Mersenne Twister generator
          deterministically. Without it the ``STATBOOT_SEED`` environment
          variable is consulted, then OS entropy.

    """

    n_boot: int = bt.DEFAULT_BOOTSTRAP_ITERATIONS
    n_boot_inner: int = 0
    seed: int | None = None
    unbiased: bool = True
    tol: float | None = None

    def validate(self) -> BootConfig:
        """Check field values, returning ``self`` for chaining."""
        if isinstance(self.n_boot, bool) or int(self.n_boot) != self.n_boot or self.n_boot < 1:
            msg = f"n_boot must be a positive integer; got {self.n_boot!r}"
            raise InvalidArgument(msg)
        inner = self.n_boot_inner
        if isinstance(inner, bool) or int(inner) != inner or inner < 0 or inner == 1:
            msg = f"n_boot_inner must be 0 (no iteration) or an integer >= 2; got {inner!r}"
            raise InvalidArgument(msg)
        if self.seed is not None and int(self.seed) < 0:
            msg = f"seed must be a non-negative integer; got {self.seed!r}"
            raise InvalidArgument(msg)
        if self.tol is not None and not (np.isfinite(self.tol) and self.tol > 0):
            msg = f"tol must be a positive finite number; got {self.tol!r}"
            raise InvalidArgument(msg)
        return self

    def with_updates(self, **changes: Any) -> BootConfig:
        """Return a validated copy with ``changes`` applied."""
        return replace(self, **changes).validate()

    def make_bootsam(
        self, n_obs: int, *, rng: np.random.Generator | None = None,
    ) -> NDArray[np.int16]:
        """Draw the (n_obs x n_boot) balanced index matrix for this configuration."""
        self.validate()
        return sampling.boot(n_obs, self.n_boot, self.unbiased, seed=self.seed, rng=rng)


# ---------------------------------------------------------------------
# Results container
# ---------------------------------------------------------------------
@dataclass
class BootknifeResult:
    """Container for bootknife estimates.

    Stores the statistic on the original data, its bootstrap bias and
    standard error, and the confidence limits, one entry per statistic.
    """

    original: NDArray[np.float64]
    bias: NDArray[np.float64]
    std_error: NDArray[np.float64]
    ci_lower: NDArray[np.float64]
    ci_upper: NDArray[np.float64]
    bootstat: NDArray[np.float64]
    bootsam: NDArray[np.int32]
    n_boot: int
    n_boot_inner: int = 0
    alpha: tuple[float, ...] | None = None
    probs: NDArray[np.float64] | None = None
    bootfun: str = "mean"
    ci_type: str | None = None
    stratified: bool = False
    unbiased: bool = True
    extra: dict[str, Any] = field(default_factory=dict)
    """Dictionary for diagnostics such as the number of dropped resamples."""

    def __repr__(self) -> str:  # pragma: no cover - convenience only
        return (
            f"BootknifeResult(bootfun={self.bootfun!r}, k={len(self.original)}, "
            f"n_boot={self.n_boot}, n_boot_inner={self.n_boot_inner}, ci_type={self.ci_type!r})"
        )

    @property
    def coverage(self) -> float | None:
        """Nominal central coverage of the intervals (None without intervals)."""
        if self.alpha is None:
            return None
        if len(self.alpha) == 2:
            return abs(self.alpha[1] - self.alpha[0])
        return 1.0 - self.alpha[0]

    def to_frame(self) -> pd.DataFrame:
        """Return the estimates as a DataFrame, one row per statistic."""
        return pd.DataFrame(
            {
                "original": self.original,
                "bias": self.bias,
                "std_error": self.std_error,
                "CI_lower": self.ci_lower,
                "CI_upper": self.ci_upper,
            },
        )
