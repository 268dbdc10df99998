"""Estimator exports with lazy loading.

Public estimators and result containers. Uses lazy imports so that the
numerical kernels in ``statboot.core`` load without pandas.
"""
from __future__ import annotations

from importlib import import_module
from typing import Any

__all__ = [
    "BootConfig",
    "BootknifeResult",
    "bootknife",
]

_LAZY_IMPORTS: dict[str, tuple[str, str]] = {
    "BootConfig": ("statboot.estimators.base", "BootConfig"),
    "BootknifeResult": ("statboot.estimators.base", "BootknifeResult"),
    "bootknife": ("statboot.estimators.bootstats", "bootknife"),
}


def __getattr__(name: str) -> Any:
    """Lazily import estimators and shared containers."""
    if name in _LAZY_IMPORTS:
        module_name, attr_name = _LAZY_IMPORTS[name]
        module = import_module(module_name)
        attr = getattr(module, attr_name)
        globals()[name] = attr
        return attr
    raise AttributeError(f"module 'statboot.estimators' has no attribute '{name}'")


def __dir__() -> list[str]:
    """Expose lazily loaded attributes to ``dir()``."""
    return sorted(set(globals()) | set(__all__))
