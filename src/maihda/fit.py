"""Model fit adapter.

:func:`fit_maihda` is a thin façade over the registered fitting
engines: it parses the formula, resolves the family and engine,
delegates the numerical work, and bundles everything downstream
consumers need into an immutable :class:`~maihda.FittedModel`.

Convergence warnings raised by the underlying fitter are passed
through to the caller unchanged; nothing here retries or adjusts
optimiser settings.
"""

from __future__ import annotations

import logging
from typing import Any

import pandas as pd

from ._compat import DataFrameLike, _ensure_pandas_df
from ._results import FittedModel, StrataResult
from .engines import MixedModelFitter, resolve_engine
from .exceptions import InvalidArgument, UnsupportedFamily
from .families import MaihdaFamily, resolve_family
from .formula import MaihdaFormula, parse_formula

logger = logging.getLogger(__name__)


def fit_maihda(
    formula: str | MaihdaFormula,
    data: DataFrameLike | StrataResult,
    engine: str | MixedModelFitter | None = None,
    family: str | MaihdaFamily | Any = "gaussian",
    *,
    strata_info: pd.DataFrame | None = None,
    **fit_kwargs: Any,
) -> FittedModel:
    """Fit a random-intercept MAIHDA model.

    Args:
        formula: lme4-style formula with one random intercept, e.g.
            ``"health_outcome ~ age + (1 | stratum)"``.
        data: Observation table, or the result of
            :func:`~maihda.make_strata` (its stratum metadata is then
            carried along as well).
        engine: Engine name or instance.  ``None`` uses
            :func:`~maihda.get_engine`.
        family: ``"gaussian"``, ``"binomial"``, ``"poisson"``, a
            :class:`~maihda.families.MaihdaFamily` instance or a
            statsmodels family object.
        strata_info: Stratum metadata used to label per-stratum
            estimates.  Overrides the metadata of a ``StrataResult``.
        **fit_kwargs: Passed to the engine (e.g. ``reml=False`` for
            gaussian models, ``vcp_p`` or ``minim_opts`` for GLMMs).
            Stored on the result and reused by bootstrap refits.

    Returns:
        The fitted :class:`~maihda.FittedModel`.

    Raises:
        InvalidArgument: If the formula or data are malformed.
        UnsupportedFamily: If the family is unknown or the engine
            cannot fit it.
        UnsupportedEngine: If the engine is unknown.
    """
    parsed = parse_formula(formula)
    if isinstance(data, StrataResult):
        if strata_info is None:
            strata_info = data.strata_info
        data = data.data
    df = _ensure_pandas_df(data, name="data")
    if len(df) == 0:
        raise InvalidArgument("'data' must contain at least one row.")
    if parsed.group not in df.columns:
        msg = f"Grouping variable {parsed.group!r} not found in data."
        raise InvalidArgument(msg)

    fam = resolve_family(family)
    fitter = resolve_engine(engine)
    # Extraction looks engines up by name, so they must be registered.
    resolve_engine(fitter.name)
    if not fitter.supports(fam):
        msg = f"Engine {fitter.name!r} does not support family {fam.name!r}."
        raise UnsupportedFamily(msg)

    handle = fitter.fit(parsed, df, fam, **fit_kwargs)
    logger.debug(
        "fit_maihda: %s via %s/%s used %d of %d rows (converged=%s)",
        parsed.text,
        fitter.name,
        fam.name,
        handle.n_obs,
        len(df),
        handle.converged,
    )
    return FittedModel(
        model=handle,
        engine=fitter.name,
        formula=parsed,
        data=df,
        family=fam,
        strata_info=strata_info,
        fit_kwargs=dict(fit_kwargs),
    )


def refit(model: FittedModel, data: pd.DataFrame) -> FittedModel:
    """Fit *model*'s specification again on *data*.

    Formula, engine, family, stratum metadata and extra engine
    arguments are all taken from *model*.  Warnings from the fitter
    are passed through, as in :func:`fit_maihda`.
    """
    return fit_maihda(
        model.formula,
        data,
        engine=model.engine,
        family=model.family,
        strata_info=model.strata_info,
        **model.fit_kwargs,
    )
