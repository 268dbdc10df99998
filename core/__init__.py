# statboot/core/__init__.py
"""Core computational modules for statboot."""
from . import backend, bootstrap, exceptions, sampling, smoothmedian

__all__ = ["backend", "bootstrap", "exceptions", "sampling", "smoothmedian"]
