"""Variance extraction and the variance partition coefficient.

The between-stratum variance is the variance of the random intercept;
the within-stratum (residual) variance comes from the model family
(see :mod:`maihda.families`).  The VPC is their ratio::

    VPC = between / (between + residual)

The between-stratum variance is returned exactly as the engine reports
it.  A boundary fit can give zero (or a tiny negative number through
rounding); callers such as :func:`~maihda.calculate_pvc` decide
whether that value is usable.
"""

from __future__ import annotations

import logging

import numpy as np
import pandas as pd

from ._results import FittedModel
from .engines import MixedModelFitter, resolve_engine
from .exceptions import (
    ExtractionError,
    InvalidArgument,
    InvalidVariance,
    UnsupportedEngine,
)

logger = logging.getLogger(__name__)

COMPONENT_LABELS = (
    "Between-stratum (random)",
    "Within-stratum (residual)",
    "Total",
)


def _check_model(model: object, name: str = "model") -> FittedModel:
    if not isinstance(model, FittedModel):
        msg = f"'{name}' must be a FittedModel from fit_maihda(), got {type(model).__name__}."
        raise InvalidArgument(msg)
    return model


def _engine_for(model: FittedModel) -> MixedModelFitter:
    try:
        return resolve_engine(model.engine)
    except UnsupportedEngine as exc:
        msg = f"Unsupported engine: {model.engine!r}. No variance structure can be extracted."
        raise ExtractionError(msg) from exc


def between_stratum_variance(model: FittedModel) -> float:
    """Variance of the random intercept of *model*.

    Raises:
        InvalidArgument: If *model* is not a ``FittedModel``.
        ExtractionError: If the engine is unknown or its fit handle has
            no recognisable variance structure.
    """
    model = _check_model(model)
    engine = _engine_for(model)
    try:
        value = engine.between_variance(model.model)
    except (AttributeError, IndexError, KeyError, TypeError, ValueError) as exc:
        msg = f"Could not extract the between-stratum variance: {exc}"
        raise ExtractionError(msg) from exc
    return float(value)


def residual_variance(model: FittedModel) -> float:
    """Individual-level variance of *model* on the latent scale."""
    model = _check_model(model)
    engine = _engine_for(model)
    between = between_stratum_variance(model)
    try:
        scale = engine.scale(model.model)
    except (AttributeError, TypeError, ValueError) as exc:
        msg = f"Could not extract the residual variance: {exc}"
        raise ExtractionError(msg) from exc
    return float(model.family.residual_variance(between, model.model.mean_eta, scale))


def _partition(model: FittedModel) -> tuple[float, float]:
    between = between_stratum_variance(model)
    residual = residual_variance(model)
    if not (np.isfinite(between) and np.isfinite(residual)):
        msg = f"Non-finite variance components: between={between}, residual={residual}."
        raise InvalidVariance(msg)
    if between + residual <= 0:
        msg = f"Total variance must be positive, got {between + residual}."
        raise InvalidVariance(msg)
    return between, residual


def vpc(model: FittedModel) -> float:
    """Variance partition coefficient (ICC) of *model*."""
    between, residual = _partition(model)
    return between / (between + residual)


def variance_components(model: FittedModel) -> pd.DataFrame:
    """Three-row variance table: between, within and total.

    Columns are ``component, variance, sd, proportion``.  The between
    and within proportions sum to one.
    """
    between, residual = _partition(model)
    total = between + residual
    variances = np.array([between, residual, total])
    with np.errstate(invalid="ignore"):
        sds = np.sqrt(variances)
    logger.debug(
        "variance_components: between=%.6g residual=%.6g (%s)",
        between,
        residual,
        model.family.name,
    )
    return pd.DataFrame(
        {
            "component": list(COMPONENT_LABELS),
            "variance": variances,
            "sd": sds,
            "proportion": [between / total, residual / total, 1.0],
        }
    )
