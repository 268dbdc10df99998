"""Random generator and array backend.

Every resampling routine obtains its generator from :func:`make_rng`, which
wraps a Mersenne Twister (MT19937) bit generator. Without an explicit seed
the generator is seeded from operating-system entropy, unless the
``STATBOOT_SEED`` environment variable holds an integer.
"""
from __future__ import annotations

import logging
import os
from typing import Any

import numpy as np

from .exceptions import InvalidArgument

_LOGGER = logging.getLogger(__name__)

SEED_ENV_VAR = "STATBOOT_SEED"


def env_seed() -> int | None:
    """Return the integer seed requested through ``STATBOOT_SEED`` (or None)."""
    raw = str(os.environ.get(SEED_ENV_VAR, "")).strip()
    if not raw:
        return None
    try:
        seed = int(raw)
    except ValueError:
        _LOGGER.warning("Ignoring %s=%r; expected a non-negative integer.", SEED_ENV_VAR, raw)
        return None
    if seed < 0:
        _LOGGER.warning("Ignoring %s=%r; expected a non-negative integer.", SEED_ENV_VAR, raw)
        return None
    return seed


def make_rng(
    seed: int | None = None, rng: np.random.Generator | None = None,
) -> np.random.Generator:
    """Return a Mersenne Twister backed generator.

    An explicit ``rng`` is returned untouched so that callers can thread one
    generator through several draws. Otherwise ``seed`` (or the environment
    seed) initialises a fresh MT19937 stream; with neither, fresh entropy is
    pulled from the OS.
    """
    if rng is not None:
        if not isinstance(rng, np.random.Generator):
            msg = f"rng must be a numpy.random.Generator; got {type(rng).__name__}"
            raise InvalidArgument(msg)
        return rng
    if seed is None:
        seed = env_seed()
        if seed is not None:
            _LOGGER.debug("Seeding MT19937 from %s=%d", SEED_ENV_VAR, seed)
    elif int(seed) < 0:
        msg = f"seed must be a non-negative integer; got {seed}"
        raise InvalidArgument(msg)
    return np.random.Generator(np.random.MT19937(seed))


def asarray(x: Any, dtype=np.float64, copy: bool = False) -> np.ndarray:
    """Convert to a NumPy array (default float64)."""
    if copy:
        return np.array(x, dtype=dtype, copy=True)
    return np.asarray(x, dtype=dtype)
