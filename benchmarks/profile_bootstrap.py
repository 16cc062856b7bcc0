"""Bootstrap benchmark — VPC and PVC intervals end to end.

Measures wall time for bootstrap intervals (index draws → refits →
variance extraction → percentile interval) across dataset sizes,
families, engines and thread counts.

Key questions this benchmark answers
-------------------------------------
1. How does the cost of one replicate scale with n for REML and for
   the Laplace / variational GLMM fits?
2. How much does ``n_jobs`` buy for refit-dominated replicates, given
   that joblib runs them on threads?
3. How does a PVC replicate (two refits) compare with a VPC replicate?

Usage::

    python benchmarks/profile_bootstrap.py          # full suite
    python benchmarks/profile_bootstrap.py --quick  # reduced

Outputs:
    benchmarks/results/bootstrap_profile.csv
"""

from __future__ import annotations

import argparse
import platform
import sys
import time
import warnings
from pathlib import Path

import numpy as np
import pandas as pd

# Ensure the package is importable when running from the repo root.
sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))
from maihda import (  # noqa: E402
    calculate_pvc,
    fit_maihda,
    make_strata,
    simulate_maihda_data,
    summarize,
)

RANDOM_STATE = 42
REPEATS = 2

# ====================================================================== #
#  Scenario definitions                                                   #
# ====================================================================== #
#
# Each scenario is a dict with:
#   name:     Human-readable label
#   n:        Number of simulated individuals
#   family:   "gaussian" or "binomial"
#   engine:   Registered engine name
#   target:   "vpc" (one refit per replicate) or "pvc" (two refits)

SCENARIOS: list[dict] = [
    {"name": "gauss_vpc_n500", "n": 500, "family": "gaussian", "engine": "statsmodels", "target": "vpc"},
    {"name": "gauss_vpc_n2000", "n": 2000, "family": "gaussian", "engine": "statsmodels", "target": "vpc"},
    {"name": "gauss_pvc_n500", "n": 500, "family": "gaussian", "engine": "statsmodels", "target": "pvc"},
    {"name": "gauss_pvc_n2000", "n": 2000, "family": "gaussian", "engine": "statsmodels", "target": "pvc"},
    {"name": "binom_vpc_n1000", "n": 1000, "family": "binomial", "engine": "statsmodels", "target": "vpc"},
    {"name": "binom_vpc_vb_n1000", "n": 1000, "family": "binomial", "engine": "variational", "target": "vpc"},
    {"name": "binom_pvc_n1000", "n": 1000, "family": "binomial", "engine": "statsmodels", "target": "pvc"},
]

QUICK_NAMES = {"gauss_vpc_n500", "gauss_pvc_n500", "binom_vpc_n1000"}

N_BOOT = 50
N_BOOT_FULL = 200
N_JOBS = [1, 4]

NULL_RHS = "1"
MAIN_RHS = "age + gender + race + education"


# ====================================================================== #
#  Data and models                                                        #
# ====================================================================== #


def _build_models(scenario: dict) -> tuple:
    """Simulate data and fit the null (and main-effects) model."""
    data = simulate_maihda_data(n=scenario["n"], random_state=RANDOM_STATE)
    if scenario["family"] == "binomial":
        data["outcome"] = (data["health_outcome"] < 70).astype(int)
    else:
        data["outcome"] = data["health_outcome"]
    strata = make_strata(data, ["gender", "race", "education"], min_count=5)

    kwargs = {"engine": scenario["engine"], "family": scenario["family"]}
    null = fit_maihda(f"outcome ~ {NULL_RHS} + (1 | stratum)", strata, **kwargs)
    main = None
    if scenario["target"] == "pvc":
        main = fit_maihda(f"outcome ~ {MAIN_RHS} + (1 | stratum)", strata, **kwargs)
    return null, main


# ====================================================================== #
#  Single-run executor                                                    #
# ====================================================================== #


def _run_single(scenario: dict, null, main, n_boot: int, n_jobs: int) -> dict:
    """Time one bootstrap interval; returns a row for the results table."""
    t0 = time.perf_counter()
    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        if scenario["target"] == "vpc":
            est = summarize(
                null,
                bootstrap=True,
                n_boot=n_boot,
                random_state=RANDOM_STATE,
                n_jobs=n_jobs,
            ).vpc
        else:
            est = calculate_pvc(
                null,
                main,
                bootstrap=True,
                n_boot=n_boot,
                random_state=RANDOM_STATE,
                n_jobs=n_jobs,
            )
    elapsed = time.perf_counter() - t0

    return {
        "scenario": scenario["name"],
        "family": scenario["family"],
        "engine": scenario["engine"],
        "target": scenario["target"],
        "n": scenario["n"],
        "n_boot": n_boot,
        "n_jobs": n_jobs,
        "n_successful": est.n_successful,
        "time_s": elapsed,
    }


# ====================================================================== #
#  Benchmark runner                                                       #
# ====================================================================== #


def run_benchmark(scenarios: list[dict], n_boot: int) -> pd.DataFrame:
    """Run all scenario × n_jobs combinations and return results."""
    total = len(scenarios) * len(N_JOBS)

    print("=" * 72)
    print("BOOTSTRAP BENCHMARK")
    print("=" * 72)
    print(f"Python:   {sys.version}")
    print(f"Platform: {platform.platform()}")
    print(f"n_boot:   {n_boot}")
    print(f"n_jobs:   {N_JOBS}")
    print(f"Repeats:  {REPEATS}")
    print()

    print("Running benchmarks...")
    print("-" * 72)

    rows: list[dict] = []
    run_idx = 0
    for s in scenarios:
        # Fit once per scenario; every n_jobs setting bootstraps the same models.
        null, main = _build_models(s)
        for n_jobs in N_JOBS:
            times = []
            for _rep in range(REPEATS):
                row = _run_single(s, null, main, n_boot, n_jobs)
                times.append(row["time_s"])
            run_idx += 1

            median_time = float(np.median(times))
            row["time_s"] = median_time
            row["time_min"] = min(times)
            row["time_max"] = max(times)
            rows.append(row)
            print(
                f"  [{run_idx:>3}/{total}] {s['name']:<22} n_jobs={n_jobs:>2}  "
                f"ok={row['n_successful']:>4}/{n_boot}  time={median_time:>8.3f}s"
            )

    print("-" * 72)
    print()
    return pd.DataFrame(rows)


def _print_summary(df: pd.DataFrame) -> None:
    """Print per-replicate cost and thread speed-up per scenario."""
    print("=" * 72)
    print("RESULTS SUMMARY")
    print("=" * 72)
    print(f"  {'Scenario':<22} {'ms/replicate (1 job)':>22} {'Speed-up':>10}")
    print(f"  {'-' * 56}")
    for name, sub in df.groupby("scenario", sort=False):
        t = sub.set_index("n_jobs")["time_s"]
        per_rep = 1000 * t[1] / sub["n_boot"].iloc[0]
        speedup = t[1] / t[max(N_JOBS)]
        print(f"  {name:<22} {per_rep:>22.1f} {speedup:>9.2f}x")
    print("=" * 72)


# ====================================================================== #
#  Main                                                                   #
# ====================================================================== #


def main() -> None:
    parser = argparse.ArgumentParser(description="Bootstrap benchmark")
    parser.add_argument(
        "--quick",
        action="store_true",
        help="Run a reduced scenario set for faster iteration",
    )
    args = parser.parse_args()

    if args.quick:
        scenarios = [s for s in SCENARIOS if s["name"] in QUICK_NAMES]
        n_boot = N_BOOT
    else:
        scenarios = SCENARIOS
        n_boot = N_BOOT_FULL

    df = run_benchmark(scenarios, n_boot)

    results_dir = Path(__file__).resolve().parent / "results"
    results_dir.mkdir(parents=True, exist_ok=True)
    csv_path = results_dir / "bootstrap_profile.csv"
    df.to_csv(csv_path, index=False)
    print(f"Saved results to {csv_path}")

    _print_summary(df)


if __name__ == "__main__":
    main()
