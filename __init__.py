"""statboot: balanced bootstrap resampling and the smoothed median.

This package provides balanced bootstrap / bootknife resampling indices, the
smoothed median M-estimator of Brown, Hall and Young (2001), and bootknife
estimates of bias, standard error and confidence intervals built on them.
"""
from __future__ import annotations

from importlib import import_module
from typing import Any

__version__ = "0.1.0"

__all__ = [
    "BalancedSampler",
    "BootConfig",
    "BootknifeResult",
    "ConvergenceWarning",
    "InvalidArgument",
    "NumericError",
    "SmoothedMedianSolver",
    "boot",
    "bootknife",
    "resample",
    "smoothmedian",
    "format_summary",
]

_LAZY_IMPORTS: dict[str, tuple[str, str]] = {
    "BalancedSampler": ("statboot.core.sampling", "BalancedSampler"),
    "boot": ("statboot.core.sampling", "boot"),
    "resample": ("statboot.core.sampling", "resample"),
    "SmoothedMedianSolver": ("statboot.core.smoothmedian", "SmoothedMedianSolver"),
    "smoothmedian": ("statboot.core.smoothmedian", "smoothmedian"),
    "ConvergenceWarning": ("statboot.core.exceptions", "ConvergenceWarning"),
    "InvalidArgument": ("statboot.core.exceptions", "InvalidArgument"),
    "NumericError": ("statboot.core.exceptions", "NumericError"),
    "BootConfig": ("statboot.estimators.base", "BootConfig"),
    "BootknifeResult": ("statboot.estimators.base", "BootknifeResult"),
    "bootknife": ("statboot.estimators.bootstats", "bootknife"),
    "format_summary": ("statboot.output.summary", "format_summary"),
}


def __getattr__(name: str) -> Any:
    """Lazily import public functions and classes on first access."""
    if name in _LAZY_IMPORTS:
        module_name, attr_name = _LAZY_IMPORTS[name]
        module = import_module(module_name)
        attr = getattr(module, attr_name)
        globals()[name] = attr
        return attr
    raise AttributeError(f"module 'statboot' has no attribute '{name}'")


def __dir__() -> list[str]:
    """Ensure dir() exposes lazily imported names."""
    return sorted(set(globals()) | set(__all__))
