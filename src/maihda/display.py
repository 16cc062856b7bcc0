"""Formatted ASCII table display utilities for MAIHDA results.

Every ``print_*`` function writes an 80-column table bordered with
``=`` rules, in the spirit of the statsmodels summary layout: a header
panel with model metadata followed by one or more column panels.
"""

from __future__ import annotations

import math
import textwrap
from typing import TYPE_CHECKING

import pandas as pd

from .engines import resolve_engine

if TYPE_CHECKING:
    from ._results import FittedModel, MaihdaSummary, PvcResult, StrataResult

W = 80


def _truncate(name: str, max_len: int) -> str:
    """Truncate *name* to *max_len*, appending ``'...'`` if needed."""
    if len(name) <= max_len:
        return name
    return name[: max_len - 3] + "..."


def _fmt_val(val: object, digits: int = 4) -> str:
    """Format a number for display; ``None`` and ``nan`` become ``'N/A'``."""
    if val is None:
        return "N/A"
    if isinstance(val, float):
        if math.isnan(val):
            return "N/A"
        return f"{val:.{digits}f}"
    return str(val)


def _wrap(text: str, width: int = W, indent: int = 2) -> str:
    """Word-wrap *text*, indenting only the continuation lines."""
    return textwrap.fill(
        text,
        width=width,
        initial_indent="",
        subsequent_indent=" " * indent,
    )


def _title(title: str) -> None:
    print("=" * W)
    for line in textwrap.wrap(title, width=W - 2):
        print(f"{line:^{W}}")
    print("=" * W)


def print_strata_table(
    strata: StrataResult | pd.DataFrame,
    *,
    max_rows: int | None = 20,
    title: str = "Intersectional Strata",
) -> None:
    """Print stratum metadata from :func:`~maihda.make_strata`.

    Args:
        strata: A ``StrataResult`` or its ``strata_info`` table.
        max_rows: Maximum number of strata to list (``None`` for all).
        title: Title for the output table.
    """
    if isinstance(strata, pd.DataFrame):
        info = strata
        n_rows = n_assigned = None
    else:
        info = strata.strata_info
        n_rows = len(strata.data)
        n_assigned = strata.n_assigned

    _title(title)
    lw = 20
    print(f"  {'No. Strata:':<{lw}}{len(info)}")
    if n_rows is not None:
        print(f"  {'Rows assigned:':<{lw}}{n_assigned} of {n_rows}")
    if len(info) > 0:
        print(f"  {'Stratum sizes:':<{lw}}min {info['n'].min()}, max {info['n'].max()}")
    print("-" * W)

    lc = W - 8 - 10
    print(f"{'Stratum':>8}  {'Label':<{lc - 2}}{'N':>10}")
    print("-" * W)
    shown = info if max_rows is None else info.head(max_rows)
    for row in shown.itertuples(index=False):
        label = _truncate(str(row.label), lc - 2)
        print(f"{row.stratum:>8}  {label:<{lc - 2}}{row.n:>10}")
    if len(shown) < len(info):
        print(f"  ... and {len(info) - len(shown)} more strata")
    print("=" * W)
    print()


def print_model_table(
    model: FittedModel,
    *,
    title: str = "MAIHDA Model",
) -> None:
    """Print the specification and fixed effects of a fitted model."""
    handle = model.model
    engine = resolve_engine(model.engine)

    _title(title)
    col1 = 40
    col2 = 38
    print(
        f"{'Engine:':<16}{model.engine:<{col1 - 16}}"
        f"{'No. Observations:':>{col2 - 11}} {handle.n_obs:>10}"
    )
    print(
        f"{'Family:':<16}{model.family.name:<{col1 - 16}}"
        f"{'No. Strata:':>{col2 - 11}} {len(handle.levels):>10}"
    )
    print(
        f"{'Link:':<16}{model.family.link:<{col1 - 16}}"
        f"{'Converged:':>{col2 - 11}} {'yes' if handle.converged else 'no':>10}"
    )
    print(_wrap(f"{'Formula:':<16}{model.formula.text}", indent=16))
    print("-" * W)

    fc = 40
    print(f"{'Term':<{fc}}{'Estimate':>20}{'Std. Err.':>20}")
    print("-" * W)
    for row in engine.fixed_effects(handle).itertuples(index=False):
        print(f"{_truncate(str(row.term), fc):<{fc}}{_fmt_val(row.estimate):>20}{_fmt_val(row.se):>20}")
    print("-" * W)
    between = engine.between_variance(handle)
    print(f"{'Between-stratum variance:':<{fc}}{_fmt_val(between, 6):>20}")
    scale = engine.scale(handle)
    if scale is not None:
        print(f"{'Residual variance:':<{fc}}{_fmt_val(scale, 6):>20}")
    print("=" * W)
    print()


def print_summary_table(
    summary: MaihdaSummary,
    *,
    max_strata: int = 10,
    title: str = "MAIHDA Model Summary",
) -> None:
    """Print a :class:`~maihda.MaihdaSummary`.

    Shows the VPC (with its bootstrap interval when present), the
    variance components, the fixed effects and the first *max_strata*
    stratum estimates.
    """
    v = summary.vpc
    _title(title)
    col1 = 40
    col2 = 38
    print(
        f"{'Engine:':<16}{summary.engine:<{col1 - 16}}"
        f"{'No. Observations:':>{col2 - 11}} {summary.n_obs:>10}"
    )
    print(_wrap(f"{'Formula:':<16}{summary.formula.text}", indent=16))
    print("-" * W)

    print("Variance Partition Coefficient (VPC/ICC):")
    if v.bootstrap:
        print(f"  Estimate: {v.estimate:.4f} [{v.ci_lower:.4f}, {v.ci_upper:.4f}]")
        print(
            f"  (Bootstrap {v.conf_level * 100:.0f}% CI, "
            f"{v.n_successful}/{v.n_boot} replicates)"
        )
    else:
        print(f"  Estimate: {v.estimate:.4f}")
    print("-" * W)

    cc = 32
    print(f"{'Component':<{cc}}{'Variance':>16}{'SD':>16}{'Proportion':>16}")
    print("-" * W)
    for row in summary.variance_components.itertuples(index=False):
        print(
            f"{row.component:<{cc}}{_fmt_val(row.variance):>16}"
            f"{_fmt_val(row.sd):>16}{_fmt_val(row.proportion):>16}"
        )
    print("-" * W)

    fc = 40
    print(f"{'Term':<{fc}}{'Estimate':>20}{'Std. Err.':>20}")
    print("-" * W)
    for row in summary.fixed_effects.itertuples(index=False):
        print(f"{_truncate(str(row.term), fc):<{fc}}{_fmt_val(row.estimate):>20}{_fmt_val(row.se):>20}")

    est = summary.stratum_estimates
    if est is not None and len(est) > 0:
        print("-" * W)
        print(f"Stratum Estimates (first {min(max_strata, len(est))}):")
        lc = 28
        print(
            f"{'Stratum':>8}  {'Label':<{lc}}{'Effect':>10}{'SE':>10}"
            f"{'Lower 95':>11}{'Upper 95':>11}"
        )
        has_label = "label" in est.columns
        for row in est.head(max_strata).itertuples(index=False):
            label = _truncate(str(row.label), lc - 1) if has_label else ""
            print(
                f"{row.stratum!s:>8}  {label:<{lc}}{_fmt_val(row.random_effect):>10}"
                f"{_fmt_val(row.se):>10}{_fmt_val(row.lower_95):>11}"
                f"{_fmt_val(row.upper_95):>11}"
            )
        if len(est) > max_strata:
            print(f"  ... and {len(est) - max_strata} more strata")
    print("=" * W)
    print()


def print_pvc_table(
    result: PvcResult,
    *,
    title: str = "Proportional Change in Variance (PVC)",
) -> None:
    """Print a :class:`~maihda.PvcResult`."""
    _title(title)
    if result.bootstrap:
        conf_pct = result.conf_level * 100 if result.conf_level is not None else 95
        print(f"PVC: {result.pvc:.4f} [{result.ci_lower:.4f}, {result.ci_upper:.4f}]")
        print(f"(Bootstrap {conf_pct:.0f}% CI)")
    else:
        print(f"PVC: {result.pvc:.4f}")
    print("-" * W)
    print("Between-stratum variance:")
    print(f"  Model 1: {result.var_model1:.6f}")
    print(f"  Model 2: {result.var_model2:.6f}")
    print(f"  Change:  {result.change:.6f} ({result.percent_change:.2f}%)")
    print("-" * W)
    print("Interpretation:")
    print("  " + _wrap(result.interpretation(), width=W - 2, indent=2))
    print("=" * W)
    print()


def print_comparison_table(
    comparison: pd.DataFrame,
    *,
    title: str = "Model Comparison (VPC)",
) -> None:
    """Print the table returned by :func:`~maihda.compare_models`."""
    _title(title)
    has_ci = {"ci_lower", "ci_upper"} <= set(comparison.columns)
    mc = 32
    if has_ci:
        print(f"{'Model':<{mc}}{'VPC':>16}{'CI Lower':>16}{'CI Upper':>16}")
    else:
        print(f"{'Model':<{mc}}{'VPC':>16}")
    print("-" * W)
    for row in comparison.itertuples(index=False):
        name = _truncate(str(row.model), mc - 1)
        if has_ci:
            print(
                f"{name:<{mc}}{_fmt_val(row.vpc):>16}"
                f"{_fmt_val(row.ci_lower):>16}{_fmt_val(row.ci_upper):>16}"
            )
        else:
            print(f"{name:<{mc}}{_fmt_val(row.vpc):>16}")
    print("=" * W)
    print()
