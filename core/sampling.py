"""Balanced bootstrap and bootknife resampling indices.

Balanced resampling draws all ``n * nboot`` indices from one shared pool in
which every original row starts with ``nboot`` copies, so that across the
whole index matrix each row is used exactly ``nboot`` times. The pool is
sampled without replacement by walking the cumulative counts.

In bootknife (``unbiased=True``) mode, row ``r = b mod n`` is withheld from
every draw of resample ``b`` as long as the remaining pool is not made up of
row ``r`` alone. Hesterberg (2004) shows that drawing resamples from the
leave-one-out jackknife samples removes the small-sample bias of the
bootstrap variance. Balance over the whole matrix is preserved.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import numpy as np

from .backend import asarray, make_rng
from .exceptions import InvalidArgument

if TYPE_CHECKING:
    from numpy.typing import NDArray

__all__ = ["MAX_SAMPLE_SIZE", "BalancedSampler", "boot", "resample"]

_LOGGER = logging.getLogger(__name__)

# Indices are returned as int16, so the number of rows is capped.
MAX_SAMPLE_SIZE: int = int(np.iinfo(np.int16).max)
_INT32_MAX: int = int(np.iinfo(np.int32).max)


def _positive_int(value: Any, name: str) -> int:
    if isinstance(value, (bool, np.bool_)):
        msg = f"{name} must be a positive integer; got {value!r}"
        raise InvalidArgument(msg)
    try:
        ivalue = int(value)
    except (TypeError, ValueError, OverflowError):
        msg = f"{name} must be a positive integer; got {value!r}"
        raise InvalidArgument(msg) from None
    if ivalue != value or ivalue < 1:
        msg = f"{name} must be a positive integer; got {value!r}"
        raise InvalidArgument(msg)
    return ivalue


class BalancedSampler:
    """Generator of balanced bootstrap (or bootknife) resampling indices.

    Parameters
    ----------
    n : int
        Number of rows in the data; at most ``MAX_SAMPLE_SIZE`` (32767).
    nboot : int
        Number of resamples (columns of the index matrix).
    unbiased : bool, default False
        Use bootknife resampling instead of plain balanced bootstrap.

    """

    def __init__(self, n: int, nboot: int, unbiased: bool = False) -> None:
        self.n = _positive_int(n, "n")
        self.nboot = _positive_int(nboot, "nboot")
        if self.n > MAX_SAMPLE_SIZE:
            msg = f"n must not exceed {MAX_SAMPLE_SIZE} (int16 indices); got {self.n}"
            raise InvalidArgument(msg)
        if self.n * self.nboot > _INT32_MAX:
            msg = (
                f"n * nboot must not exceed {_INT32_MAX}; "
                f"got {self.n} * {self.nboot} = {self.n * self.nboot}"
            )
            raise InvalidArgument(msg)
        self.unbiased = bool(unbiased)

    def __repr__(self) -> str:  # pragma: no cover - trivial
        return f"BalancedSampler(n={self.n}, nboot={self.nboot}, unbiased={self.unbiased})"

    def generate(
        self,
        *,
        seed: int | None = None,
        rng: np.random.Generator | None = None,
    ) -> NDArray[np.int16]:
        """Draw an (n x nboot) matrix of 1-based row indices.

        Every value in ``1..n`` appears exactly ``nboot`` times. The counter
        pool lives only for the duration of this call, so concurrent calls on
        separate generators share no state.
        """
        gen = make_rng(seed, rng)
        n, nboot = self.n, self.nboot
        bootsam = np.empty((n, nboot), dtype=np.int16)
        counts = np.full(n, nboot, dtype=np.int64)
        # running prefix sums of counts, kept in step with every draw
        cum = np.cumsum(counts)
        remaining = n * nboot
        for b in range(nboot):
            r = b % n if self.unbiased else -1
            for i in range(n):
                withheld = 0
                # Leave row r out unless it holds every remaining draw.
                if r >= 0 and counts[r] != remaining:
                    withheld = int(counts[r])
                pool = remaining - withheld
                k = min(int(gen.random() * pool), pool - 1)
                # skip over the withheld block of row r
                if withheld and k >= cum[r] - withheld:
                    k += withheld
                j = int(np.searchsorted(cum, k, side="right"))
                bootsam[i, b] = j + 1
                counts[j] -= 1
                cum[j:] -= 1
                remaining -= 1
        _LOGGER.debug(
            "Generated %d x %d balanced %s indices",
            n,
            nboot,
            "bootknife" if self.unbiased else "bootstrap",
        )
        return bootsam


def boot(
    n: int,
    nboot: int,
    unbiased: bool = False,
    *,
    seed: int | None = None,
    rng: np.random.Generator | None = None,
) -> NDArray[np.int16]:
    """Balanced bootstrap resampling indices: (n x nboot), values in 1..n."""
    return BalancedSampler(n, nboot, unbiased).generate(seed=seed, rng=rng)


def resample(
    x: Any,
    nboot: int,
    unbiased: bool = False,
    *,
    seed: int | None = None,
    rng: np.random.Generator | None = None,
) -> NDArray[np.float64]:
    """Return balanced resamples of the values of a 1-D sample.

    Column ``b`` of the (n x nboot) result holds resample ``b`` of ``x``.
    """
    arr = asarray(x)
    if arr.ndim != 1:
        msg = f"x must be a 1-D sample; got an array with shape {arr.shape}"
        raise InvalidArgument(msg)
    if arr.size == 0:
        raise InvalidArgument("x must contain at least one value")
    idx = boot(arr.size, nboot, unbiased, seed=seed, rng=rng)
    return arr[idx.astype(np.intp) - 1]
