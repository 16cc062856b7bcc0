"""Proportional change in between-stratum variance (PVC).

Compares the between-stratum variance of a reference model (model 1,
typically intercept-only) with that of a model adding main effects
(model 2)::

    PVC = (var_model1 - var_model2) / var_model1

A positive PVC means the added effects explain part of the
intersectional variance present under model 1; what remains in model
2 is attributed to interaction (intersectional) effects.  A negative
PVC means the between-stratum variance increased.

Bootstrap intervals resample the rows of model 1's data once per
replicate and refit *both* models on that same draw.  When the models
were fitted on differently sized tables the second model's formula is
refitted on model 1's resampled rows instead, with a
:class:`~maihda.exceptions.SizeMismatch` warning.
"""

from __future__ import annotations

import logging
import math
import warnings

import numpy as np

from ._results import FittedModel, PvcResult
from .bootstrap import bootstrap_distribution, check_conf_level, replicate_interval
from .exceptions import (
    EngineMismatch,
    InvalidVariance,
    NonPositiveVariance,
    SizeMismatch,
)
from .fit import refit
from .variance import _check_model, between_stratum_variance

logger = logging.getLogger(__name__)


def _bootstrap_pvc(
    model1: FittedModel,
    model2: FittedModel,
    n_boot: int,
    random_state: int | np.random.Generator | None,
    n_jobs: int,
) -> np.ndarray:
    data1 = model1.data
    data2 = model2.data
    same_size = len(data1) == len(data2)

    def score(indices: np.ndarray) -> float | None:
        boot1 = data1.iloc[indices]
        boot2 = data2.iloc[indices] if same_size else boot1
        var1 = between_stratum_variance(refit(model1, boot1))
        if var1 <= 0:
            return None
        var2 = between_stratum_variance(refit(model2, boot2))
        return (var1 - var2) / var1

    return bootstrap_distribution(
        score, len(data1), n_boot, random_state=random_state, n_jobs=n_jobs
    )


def calculate_pvc(
    model1: FittedModel,
    model2: FittedModel,
    bootstrap: bool = False,
    n_boot: int = 1000,
    conf_level: float = 0.95,
    *,
    random_state: int | np.random.Generator | None = None,
    n_jobs: int = 1,
) -> PvcResult:
    """Proportional change in between-stratum variance from *model1* to *model2*.

    Args:
        model1: Reference model.
        model2: Comparison model, fitted with the same engine.
        bootstrap: Whether to compute a percentile bootstrap interval.
        n_boot: Number of bootstrap replicates.
        conf_level: Two-sided confidence level of the interval.
        random_state: Seed or generator for the resampling draws.
        n_jobs: Worker threads for bootstrap refits.

    Returns:
        A :class:`~maihda.PvcResult`.

    Raises:
        InvalidArgument: If either model is not a ``FittedModel``.
        EngineMismatch: If the models were fitted with different engines.
        InvalidVariance: If a between-stratum variance is not finite.
        NonPositiveVariance: If model 1's between-stratum variance is
            zero or negative.
        BootstrapFailed: If every bootstrap replicate failed.

    Warns:
        SizeMismatch: If the models were fitted on tables of different
            sizes.
        BootstrapUnreliable: If fewer than half of the replicates
            succeeded.
    """
    model1 = _check_model(model1, "model1")
    model2 = _check_model(model2, "model2")
    if model1.engine != model2.engine:
        msg = (
            "Both models must use the same engine, got "
            f"{model1.engine!r} and {model2.engine!r}."
        )
        raise EngineMismatch(msg)
    if bootstrap:
        conf_level = check_conf_level(conf_level)

    if model1.n_obs != model2.n_obs:
        msg = (
            "Models were fit on data with different numbers of observations "
            f"({model1.n_obs} vs {model2.n_obs}). Results may not be meaningful."
        )
        if bootstrap:
            msg += " Using model1's data size for bootstrap."
        warnings.warn(msg, SizeMismatch, stacklevel=2)

    var1 = between_stratum_variance(model1)
    var2 = between_stratum_variance(model2)
    if not (math.isfinite(var1) and math.isfinite(var2)):
        msg = (
            "Unable to extract variance components from one or both models "
            f"(var_model1={var1}, var_model2={var2})."
        )
        raise InvalidVariance(msg)
    if var1 <= 0:
        msg = (
            f"Between-stratum variance in model1 is zero or negative ({var1}). "
            "PVC cannot be calculated. This may indicate a singular fit or no "
            "between-stratum variation."
        )
        raise NonPositiveVariance(msg)

    pvc = (var1 - var2) / var1
    logger.debug("calculate_pvc: var1=%.6g var2=%.6g pvc=%.4f", var1, var2, pvc)
    if not bootstrap:
        return PvcResult(pvc=pvc, var_model1=var1, var_model2=var2)

    values = _bootstrap_pvc(model1, model2, n_boot, random_state, n_jobs)
    lower, upper = replicate_interval(values, n_boot, conf_level)
    # The reported interval always contains the point estimate.
    return PvcResult(
        pvc=pvc,
        var_model1=var1,
        var_model2=var2,
        bootstrap=True,
        ci_lower=min(lower, pvc),
        ci_upper=max(upper, pvc),
        raw_ci_lower=lower,
        raw_ci_upper=upper,
        conf_level=conf_level,
        n_boot=n_boot,
        n_successful=len(values),
    )
