from __future__ import annotations

import numpy as np
import pytest

# Univariate sample used throughout the bootknife tests.
SAMPLE_DATA = np.array(
    [48, 36, 20, 29, 42, 42, 20, 42, 22, 41, 45, 14, 6,
     0, 33, 28, 34, 4, 32, 24, 47, 41, 24, 26, 30, 41],
    dtype=np.float64,
)


@pytest.fixture
def rng():
    return np.random.default_rng(12345)


@pytest.fixture
def sample_data():
    return SAMPLE_DATA.copy()


@pytest.fixture(autouse=True)
def _clear_env_seed(monkeypatch):
    monkeypatch.delenv("STATBOOT_SEED", raising=False)
