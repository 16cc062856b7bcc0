"""Non-parametric bootstrap engine.

The engine is generic: callers supply a *scoring closure* that takes
an array of ``n`` row indices (drawn with replacement), refits whatever
model(s) it needs on those rows, and returns a number.  The engine

1. draws every replicate's index set up front from a single
   :class:`numpy.random.Generator`, so a seed reproduces the exact
   resample sequence regardless of execution order;
2. runs the closure once per replicate, sequentially or with
   ``joblib.Parallel(prefer="threads")`` when ``n_jobs != 1``;
3. discards failed replicates (the closure raised, returned ``None``
   or a non-finite value) instead of aborting, with convergence and
   runtime warnings from the refits silenced for the whole run;
4. reports the empirical ``(1 - conf_level) / 2`` and
   ``1 - (1 - conf_level) / 2`` quantiles of the survivors.

Fewer than 50% survivors triggers a
:class:`~maihda.exceptions.BootstrapUnreliable` warning; zero survivors
raises :class:`~maihda.exceptions.BootstrapFailed`.

Quantiles use NumPy's default linear interpolation, which matches R's
``quantile(type = 7)``.
"""

from __future__ import annotations

import logging
import math
import warnings
from collections.abc import Callable

import numpy as np
from joblib import Parallel, delayed
from statsmodels.tools.sm_exceptions import ConvergenceWarning

from .exceptions import BootstrapFailed, BootstrapUnreliable, InvalidArgument

logger = logging.getLogger(__name__)

ScoreFn = Callable[[np.ndarray], "float | None"]

# Optimiser noise from replicate refits; failures are counted instead.
_REPLICATE_WARNINGS = (ConvergenceWarning, RuntimeWarning)


def _check_positive_int(value: object, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, np.integer)) or value < 1:
        msg = f"'{name}' must be a positive integer, got {value!r}."
        raise InvalidArgument(msg)
    return int(value)


def check_conf_level(conf_level: float) -> float:
    """Validate a two-sided confidence level in ``(0, 1)``."""
    if isinstance(conf_level, bool) or not isinstance(conf_level, (int, float, np.floating)):
        msg = f"'conf_level' must be a number, got {conf_level!r}."
        raise InvalidArgument(msg)
    if not 0 < conf_level < 1:
        msg = f"'conf_level' must be between 0 and 1, got {conf_level!r}."
        raise InvalidArgument(msg)
    return float(conf_level)


def draw_bootstrap_indices(
    n: int,
    n_boot: int,
    random_state: int | np.random.Generator | None = None,
) -> np.ndarray:
    """Draw ``n_boot`` index sets of size ``n`` with replacement.

    Returns:
        Integer array of shape ``(n_boot, n)`` with values in ``0..n-1``.
    """
    n = _check_positive_int(n, "n")
    n_boot = _check_positive_int(n_boot, "n_boot")
    rng = np.random.default_rng(random_state)
    return rng.integers(0, n, size=(n_boot, n))


def _run_replicate(score: ScoreFn, indices: np.ndarray, b: int) -> float | None:
    """Score one replicate, mapping every failure to ``None``."""
    try:
        value = score(indices)
        if value is None:
            return None
        value = float(value)
    except Exception as exc:  # noqa: BLE001
        logger.debug("bootstrap replicate %d failed: %s: %s", b, type(exc).__name__, exc)
        return None
    if not math.isfinite(value):
        logger.debug("bootstrap replicate %d returned a non-finite value", b)
        return None
    return value


def bootstrap_distribution(
    score: ScoreFn,
    n: int,
    n_boot: int = 1000,
    *,
    random_state: int | np.random.Generator | None = None,
    n_jobs: int = 1,
) -> np.ndarray:
    """Run the bootstrap and return the surviving replicate values.

    Args:
        score: Scoring closure, called with an index array of length *n*.
        n: Number of rows in the data being resampled.
        n_boot: Number of replicates.
        random_state: Seed or generator for the index draws.
        n_jobs: Number of worker threads.  ``1`` runs sequentially;
            ``-1`` uses all cores.

    Returns:
        1-D float array of the successful replicate values, in
        replicate order.
    """
    indices = draw_bootstrap_indices(n, n_boot, random_state)

    # Warning filters are process-wide; only the calling thread may
    # install and restore them.
    with warnings.catch_warnings():
        for category in _REPLICATE_WARNINGS:
            warnings.filterwarnings("ignore", category=category)
        if n_jobs == 1:
            values = [_run_replicate(score, indices[b], b) for b in range(n_boot)]
        else:
            # Each replicate owns its index row and its refitted model.
            values = Parallel(n_jobs=n_jobs, prefer="threads")(
                delayed(_run_replicate)(score, indices[b], b) for b in range(n_boot)
            )

    kept = np.array([v for v in values if v is not None], dtype=float)
    logger.debug("bootstrap: %d/%d replicates succeeded", len(kept), n_boot)
    return kept


def percentile_interval(values: np.ndarray, conf_level: float = 0.95) -> tuple[float, float]:
    """Two-sided empirical quantile interval of *values*."""
    conf_level = check_conf_level(conf_level)
    alpha = 1 - conf_level
    lower, upper = np.quantile(np.asarray(values, dtype=float), [alpha / 2, 1 - alpha / 2])
    return float(lower), float(upper)


def replicate_interval(
    values: np.ndarray, n_boot: int, conf_level: float = 0.95
) -> tuple[float, float]:
    """Interval from surviving replicates, applying the failure policy.

    Raises:
        BootstrapFailed: If *values* is empty.

    Warns:
        BootstrapUnreliable: If fewer than half of *n_boot* survived.
    """
    n_ok = len(values)
    if n_ok == 0:
        msg = f"All {n_boot} bootstrap replicates failed; no confidence interval can be computed."
        raise BootstrapFailed(msg)
    if n_ok < n_boot * 0.5:
        warnings.warn(
            "More than 50% of bootstrap samples failed. CI may be unreliable. "
            f"Only {n_ok}/{n_boot} successful.",
            BootstrapUnreliable,
            stacklevel=3,
        )
    return percentile_interval(values, conf_level)


def bootstrap_ci(
    score: ScoreFn,
    n: int,
    n_boot: int = 1000,
    conf_level: float = 0.95,
    *,
    random_state: int | np.random.Generator | None = None,
    n_jobs: int = 1,
) -> tuple[float, float]:
    """Percentile bootstrap confidence interval ``(lower, upper)``.

    See :func:`bootstrap_distribution` for the arguments.

    Raises:
        BootstrapFailed: If every replicate failed.

    Warns:
        BootstrapUnreliable: If fewer than half of the replicates
            succeeded.
    """
    conf_level = check_conf_level(conf_level)
    values = bootstrap_distribution(
        score, n, n_boot, random_state=random_state, n_jobs=n_jobs
    )
    return replicate_interval(values, n_boot, conf_level)
