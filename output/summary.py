"""Text summary of bootknife results."""

from __future__ import annotations

from typing import cast

import numpy as np
from tabulate import tabulate

from statboot.estimators.base import BootknifeResult

__all__ = ["format_summary"]

_CI_LABELS = {
    "percentile": "Percentile",
    "bc": "Bias-corrected (BC)",
    "bca": "Bias-corrected and accelerated (BCa)",
    "calibrated percentile": "Calibrated percentile",
}

_HEADERS = ["original", "bias", "std_error", "CI_lower", "CI_upper"]


def _ci_label(result: BootknifeResult) -> str:
    kind = result.ci_type or ""
    expanded = kind.startswith("expanded ")
    label = _CI_LABELS.get(kind.removeprefix("expanded "), kind)
    if expanded:
        label = f"Expanded {label[0].lower()}{label[1:]}"
    if result.alpha is not None and len(result.alpha) == 1:
        label += " (equal-tailed)"
    return label


def _method_label(result: BootknifeResult) -> str:
    parts = []
    if result.n_boot_inner > 0:
        parts.append("iterated")
    if result.stratified:
        parts.append("stratified")
    parts.append("balanced")
    label = ", ".join(parts)
    label = label[0].upper() + label[1:]
    if result.unbiased:
        return f"{label}, bootknife resampling"
    return f"{label} bootstrap resampling"


def format_summary(result: BootknifeResult, *, floatfmt: str = ".4g", tablefmt: str = "simple") -> str:
    """Render a bootknife result as text.

    The header lists the statistic, the resampling scheme, the number of
    resamples and the interval type with its nominal coverage; the body is a
    table of ``original, bias, std_error, CI_lower, CI_upper``.
    """
    lines = [
        "Summary of nonparametric bootstrap estimates of bias and precision",
        "",
        "Bootstrap settings:",
        f" Function: {result.bootfun}",
        f" Resampling method: {_method_label(result)}",
        f" Number of resamples (outer): {result.n_boot}",
        f" Number of resamples (inner): {result.n_boot_inner}",
    ]
    if result.extra.get("n_dropped"):
        lines.append(f" Resamples dropped (NaN or Inf statistic): {result.extra['n_dropped']}")
    if result.alpha is not None and result.probs is not None:
        lines.append(f" Confidence interval (CI) type: {_ci_label(result)}")
        coverage = 100.0 * cast("float", result.coverage)
        probs = np.asarray(result.probs)
        if np.all(probs == probs[0]):
            lines.append(
                f" Nominal coverage (and the percentiles used): {coverage:.3g}% "
                f"({100 * probs[0, 0]:.1f}%, {100 * probs[0, 1]:.1f}%)",
            )
        else:
            lines.append(f" Nominal coverage: {coverage:.3g}%")
    rows = result.to_frame()[_HEADERS].to_numpy().tolist()
    table = cast("str", tabulate(rows, headers=_HEADERS, floatfmt=floatfmt, tablefmt=tablefmt))
    lines.extend(["", "Bootstrap statistics:", table])
    return "\n".join(lines)
