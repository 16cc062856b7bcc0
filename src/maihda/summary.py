"""Summaries, predictions and model comparison.

These functions sit on top of the variance extractor and the bootstrap
engine and turn a :class:`~maihda.FittedModel` into tables:

* :func:`summarize` — VPC (optionally with a bootstrap interval), the
  variance-components table, fixed effects and per-stratum estimates.
* :func:`predict` — individual predictions (fixed part plus the row's
  stratum effect) or the per-stratum effect table.
* :func:`compare_models` — VPC of several models side by side.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Literal

import numpy as np
import pandas as pd
from scipy import stats

from ._compat import DataFrameLike, _ensure_pandas_df
from ._results import FittedModel, MaihdaSummary, VpcEstimate
from .bootstrap import bootstrap_distribution, check_conf_level, replicate_interval
from .exceptions import EngineMismatch, InvalidArgument
from .fit import refit
from .variance import _check_model, _engine_for, variance_components, vpc

logger = logging.getLogger(__name__)

# Normal quantile used for the per-stratum 95% intervals.
_Z95 = float(stats.norm.ppf(0.975))


def stratum_estimates(model: FittedModel) -> pd.DataFrame:
    """Per-stratum random intercepts with 95% intervals.

    Columns are ``stratum, [label,] random_effect, se, lower_95,
    upper_95``.  The ``label`` column is present when the model
    carries stratum metadata.
    """
    model = _check_model(model)
    re = _engine_for(model).random_effects(model.model)
    est = re["estimate"].to_numpy(dtype=float)
    se = re["se"].to_numpy(dtype=float)
    out = pd.DataFrame(
        {
            "stratum": re["level"].to_numpy(),
            "random_effect": est,
            "se": se,
            "lower_95": est - _Z95 * se,
            "upper_95": est + _Z95 * se,
        }
    )
    info = model.strata_info
    if info is not None and {"stratum", "label"} <= set(info.columns):
        labels = dict(zip(info["stratum"].tolist(), info["label"].tolist()))
        out.insert(1, "label", [labels.get(s) for s in out["stratum"].tolist()])
    return out


def bootstrap_vpc(
    model: FittedModel,
    n_boot: int = 1000,
    *,
    random_state: int | np.random.Generator | None = None,
    n_jobs: int = 1,
) -> np.ndarray:
    """Bootstrap distribution of the VPC (successful replicates only)."""
    model = _check_model(model)
    data = model.data

    def score(indices: np.ndarray) -> float:
        return vpc(refit(model, data.iloc[indices]))

    return bootstrap_distribution(
        score, len(data), n_boot, random_state=random_state, n_jobs=n_jobs
    )


def summarize(
    model: FittedModel,
    bootstrap: bool = False,
    n_boot: int = 1000,
    conf_level: float = 0.95,
    *,
    random_state: int | np.random.Generator | None = None,
    n_jobs: int = 1,
) -> MaihdaSummary:
    """Summarise a fitted MAIHDA model.

    Args:
        model: Result of :func:`~maihda.fit_maihda`.
        bootstrap: Whether to compute a bootstrap interval for the VPC.
        n_boot: Number of bootstrap replicates.
        conf_level: Two-sided confidence level of the interval.
        random_state: Seed or generator for the resampling draws.
        n_jobs: Worker threads for bootstrap refits.

    Returns:
        A :class:`~maihda.MaihdaSummary`.
    """
    model = _check_model(model)
    if bootstrap:
        conf_level = check_conf_level(conf_level)

    components = variance_components(model)
    estimate = float(components["proportion"].iloc[0])

    if bootstrap:
        values = bootstrap_vpc(model, n_boot, random_state=random_state, n_jobs=n_jobs)
        lower, upper = replicate_interval(values, n_boot, conf_level)
        vpc_result = VpcEstimate(
            estimate=estimate,
            bootstrap=True,
            ci_lower=min(lower, estimate),
            ci_upper=max(upper, estimate),
            raw_ci_lower=lower,
            raw_ci_upper=upper,
            conf_level=conf_level,
            n_boot=n_boot,
            n_successful=len(values),
        )
    else:
        vpc_result = VpcEstimate(estimate=estimate)

    return MaihdaSummary(
        vpc=vpc_result,
        variance_components=components,
        fixed_effects=_engine_for(model).fixed_effects(model.model),
        stratum_estimates=stratum_estimates(model),
        engine=model.engine,
        family=model.family,
        formula=model.formula,
        n_obs=model.n_used,
    )


def predict(
    model: FittedModel,
    newdata: DataFrameLike | None = None,
    type: Literal["individual", "strata"] = "individual",
    scale: Literal["link", "response"] = "link",
) -> pd.Series | pd.DataFrame:
    """Predict from a fitted model.

    Args:
        model: Result of :func:`~maihda.fit_maihda`.
        newdata: Rows to predict for.  Defaults to the model's data.
        type: ``"individual"`` for one prediction per row (fixed part
            plus the row's stratum effect) or ``"strata"`` for the
            per-stratum effect table (see :func:`stratum_estimates`).
        scale: ``"link"`` for the linear predictor or ``"response"``
            to apply the inverse link.  Individual predictions only.

    Returns:
        A Series aligned with *newdata* for ``type="individual"``; a
        DataFrame for ``type="strata"``.

    Rows whose stratum is missing or was not seen during fitting get
    the population (fixed-part only) prediction.  Rows with missing
    predictors get ``NaN``.
    """
    model = _check_model(model)
    if type not in ("individual", "strata"):
        msg = f"'type' must be 'individual' or 'strata', got {type!r}."
        raise InvalidArgument(msg)
    if scale not in ("link", "response"):
        msg = f"'scale' must be 'link' or 'response', got {scale!r}."
        raise InvalidArgument(msg)

    if type == "strata":
        if scale != "link":
            msg = "scale='response' applies to individual predictions only."
            raise InvalidArgument(msg)
        return stratum_estimates(model)

    df = model.data if newdata is None else _ensure_pandas_df(newdata, name="newdata")
    group = model.group
    if group not in df.columns:
        msg = f"'newdata' has no grouping column {group!r}."
        raise InvalidArgument(msg)

    engine = _engine_for(model)
    eta = engine.fixed_linear_predictor(model.model, df)
    re = engine.random_effects(model.model)
    effects = dict(zip(re["level"].tolist(), re["estimate"].tolist()))
    offsets = np.array(
        [0.0 if pd.isna(g) else effects.get(g, 0.0) for g in df[group].tolist()],
        dtype=float,
    )
    eta = eta + offsets
    if scale == "response":
        eta = model.family.inverse_link(eta)
    return pd.Series(eta, index=df.index, name="predicted")


def compare_models(
    *models: FittedModel,
    model_names: Sequence[str] | None = None,
    bootstrap: bool = False,
    n_boot: int = 1000,
    conf_level: float = 0.95,
    random_state: int | np.random.Generator | None = None,
    n_jobs: int = 1,
) -> pd.DataFrame:
    """VPC of several models in one table.

    Args:
        *models: Fitted models (a single list or tuple is also accepted).
        model_names: Display names; defaults to ``Model1``, ``Model2``, ...
        bootstrap: Add ``ci_lower`` and ``ci_upper`` columns from a
            bootstrap of each model's VPC.
        n_boot: Number of bootstrap replicates per model.
        conf_level: Two-sided confidence level of the intervals.
        random_state: Seed or generator shared by all models' draws.
        n_jobs: Worker threads for bootstrap refits.

    Returns:
        DataFrame with columns ``model, vpc`` (plus ``ci_lower,
        ci_upper`` when bootstrapping).

    Raises:
        InvalidArgument: If no models are given, an argument is not a
            ``FittedModel``, or the names do not match the models.
        EngineMismatch: If the models were fitted with different engines.
    """
    if len(models) == 1 and isinstance(models[0], (list, tuple)):
        models = tuple(models[0])
    if len(models) == 0:
        raise InvalidArgument("At least one model must be provided.")
    if not all(isinstance(m, FittedModel) for m in models):
        raise InvalidArgument("All arguments must be FittedModel objects from fit_maihda().")

    if model_names is None:
        names = [f"Model{i + 1}" for i in range(len(models))]
    else:
        names = [str(n) for n in model_names]
        if len(names) != len(models):
            msg = (
                f"Length of model_names ({len(names)}) must match number of "
                f"models ({len(models)})."
            )
            raise InvalidArgument(msg)

    engines = sorted({m.engine for m in models})
    if len(engines) > 1:
        msg = f"All models must use the same engine, got {', '.join(engines)}."
        raise EngineMismatch(msg)

    rng = np.random.default_rng(random_state) if bootstrap else None
    rows = []
    for name, m in zip(names, models):
        s = summarize(
            m,
            bootstrap=bootstrap,
            n_boot=n_boot,
            conf_level=conf_level,
            random_state=rng,
            n_jobs=n_jobs,
        )
        row = {"model": name, "vpc": s.vpc.estimate}
        if bootstrap:
            row["ci_lower"] = s.vpc.ci_lower
            row["ci_upper"] = s.vpc.ci_upper
        rows.append(row)
    logger.debug("compare_models: %d models (bootstrap=%s)", len(rows), bootstrap)
    return pd.DataFrame(rows)
