# statboot/output/__init__.py
"""Output module for bootstrap results."""
from .summary import format_summary

__all__ = ["format_summary"]
