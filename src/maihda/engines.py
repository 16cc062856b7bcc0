"""Mixed-model fitting engines.

Every engine implements the :class:`MixedModelFitter` protocol: it
fits a random-intercept model described by a
:class:`~maihda.formula.MaihdaFormula` and exposes the handful of
quantities the summary, VPC and PVC layers consume (fixed effects,
per-group random effects with conditional standard errors, the
between-group variance, the residual scale, and the fixed-part linear
predictor for new data).  Higher layers dispatch through
:func:`resolve_engine` instead of testing engine names.

Two engines are registered:

* ``"statsmodels"`` — REML :class:`~statsmodels.regression.mixed_linear_model.MixedLM`
  for gaussian responses, and the posterior-mode (Laplace)
  approximation of :class:`~statsmodels.genmod.bayes_mixed_glm.BinomialBayesMixedGLM`
  / ``PoissonBayesMixedGLM`` for binary and count responses.
* ``"variational"`` — the mean-field variational Bayes fit of the same
  GLMMs (``fit_vb``).  Gaussian models are not supported.

Design matrices are built with patsy from the fixed part of the
formula.  Rows with a missing response, fixed-effect variable or
grouping value are dropped before fitting; the caller's table is left
untouched.  The patsy ``DesignInfo`` is kept on the fit handle so the
fixed part can be re-evaluated on new data.

Adding an engine requires a class implementing the protocol and a
:func:`register_engine` call.  Nothing else in the package changes.
"""

from __future__ import annotations

import inspect
import logging
import math
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

import numpy as np
import pandas as pd
import patsy
from scipy import sparse
from statsmodels.genmod.bayes_mixed_glm import (
    BinomialBayesMixedGLM,
    PoissonBayesMixedGLM,
)
from statsmodels.regression.mixed_linear_model import MixedLM

from ._config import get_engine
from .exceptions import (
    ExtractionError,
    InvalidArgument,
    UnsupportedEngine,
    UnsupportedFamily,
)
from .families import MaihdaFamily
from .formula import MaihdaFormula

logger = logging.getLogger(__name__)

# Keyword arguments accepted by the Bayes GLMM constructors rather
# than by ``fit_map`` / ``fit_vb``.
_BAYES_MODEL_KWARGS = frozenset({"vcp_p", "fe_p"})

# Seed for the random starting values of the Bayes optimisers, passed
# when the installed statsmodels accepts one.
_DEFAULT_BAYES_RNG = 0

# ------------------------------------------------------------------ #
# Fit handle
# ------------------------------------------------------------------ #


@dataclass(frozen=True, eq=False)
class MixedFit:
    """Engine-neutral handle on one fitted random-intercept model.

    Attributes:
        result: The underlying statsmodels results object.
        design_info: patsy ``DesignInfo`` of the fixed-effect design.
        fe_names: Fixed-effect column names, in coefficient order.
        group: Name of the grouping field.
        levels: Group levels in the order the engine reports them.
        n_obs: Number of rows used by the fit.
        mean_eta: Mean of the fixed-part linear predictor over those rows.
        converged: Whether the optimiser reported convergence.
    """

    result: Any
    design_info: Any
    fe_names: tuple[str, ...]
    group: str
    levels: tuple[Any, ...]
    n_obs: int
    mean_eta: float
    converged: bool


# ------------------------------------------------------------------ #
# MixedModelFitter protocol
# ------------------------------------------------------------------ #


@runtime_checkable
class MixedModelFitter(Protocol):
    """Interface that every fitting engine must implement.

    Attributes:
        name: Registry key, stored on every
            :class:`~maihda.FittedModel` the engine produces.
    """

    @property
    def name(self) -> str: ...

    def supports(self, family: MaihdaFamily) -> bool:
        """Whether the engine can fit models of *family*."""
        ...

    def fit(
        self,
        formula: MaihdaFormula,
        data: pd.DataFrame,
        family: MaihdaFamily,
        **kwargs: Any,
    ) -> MixedFit:
        """Fit the model and return an engine-neutral handle."""
        ...

    def fixed_effects(self, fit: MixedFit) -> pd.DataFrame:
        """``term, estimate, se`` for every fixed-effect coefficient."""
        ...

    def random_effects(self, fit: MixedFit) -> pd.DataFrame:
        """``level, estimate, se``: conditional mode/mean and SE per group."""
        ...

    def between_variance(self, fit: MixedFit) -> float:
        """Estimated variance of the random intercept."""
        ...

    def scale(self, fit: MixedFit) -> float | None:
        """Residual variance for gaussian fits, ``None`` otherwise."""
        ...

    def fixed_linear_predictor(self, fit: MixedFit, data: pd.DataFrame) -> np.ndarray:
        """Fixed part of the linear predictor for every row of *data*.

        Rows whose predictors are missing yield ``NaN``.
        """
        ...


# ------------------------------------------------------------------ #
# Design construction
# ------------------------------------------------------------------ #


def _model_frame(
    formula: MaihdaFormula, data: pd.DataFrame
) -> tuple[np.ndarray, pd.DataFrame, np.ndarray]:
    """Build ``(y, X, groups)`` for the complete rows of *data*."""
    if formula.group not in data.columns:
        msg = f"Grouping variable {formula.group!r} not found in data."
        raise InvalidArgument(msg)

    # Bootstrap resamples carry duplicate index labels.
    frame = data.reset_index(drop=True)
    frame = frame.loc[frame[formula.group].notna().to_numpy()]
    if len(frame) == 0:
        msg = f"No rows with a non-missing {formula.group!r} value."
        raise InvalidArgument(msg)

    try:
        y, X = patsy.dmatrices(
            formula.fixed, frame, NA_action="drop", return_type="dataframe"
        )
    except patsy.PatsyError as exc:
        msg = f"Could not build the design for {formula.fixed!r}: {exc}"
        raise InvalidArgument(msg) from exc

    if y.shape[1] != 1:
        msg = (
            f"Response {formula.response!r} must be a single numeric column; "
            f"it expands to {y.shape[1]} columns."
        )
        raise InvalidArgument(msg)
    if len(X) == 0:
        msg = f"No complete rows for {formula.fixed!r}."
        raise InvalidArgument(msg)

    groups = frame.loc[X.index, formula.group]
    if pd.api.types.is_integer_dtype(groups.dtype):
        groups = groups.astype("int64")
    return y.iloc[:, 0].to_numpy(dtype=float), X, groups.to_numpy()


def _check_response(y: np.ndarray, family: MaihdaFamily) -> None:
    if family.name == "binomial":
        values = np.unique(y)
        if not np.all(np.isin(values, [0.0, 1.0])):
            msg = "Binomial responses must be coded 0/1."
            raise InvalidArgument(msg)
        if len(values) < 2:
            msg = "Binomial response has only one observed value."
            raise InvalidArgument(msg)
    elif family.name == "poisson":
        if np.any(y < 0) or np.any(np.mod(y, 1) != 0):
            msg = "Poisson responses must be non-negative integers."
            raise InvalidArgument(msg)


def _indicator_matrix(groups: np.ndarray) -> tuple[sparse.csr_array, tuple[Any, ...]]:
    """One-hot group indicators (n × K) and the sorted group levels."""
    levels, codes = np.unique(groups, return_inverse=True)
    n = len(groups)
    Z = sparse.csr_array(
        (np.ones(n), (np.arange(n), codes)), shape=(n, len(levels))
    )
    return Z, tuple(levels.tolist())


# ------------------------------------------------------------------ #
# statsmodels engine
# ------------------------------------------------------------------ #


class StatsmodelsEngine:
    """REML linear mixed models and Laplace-approximated GLMMs."""

    _GLMM_CLASSES: dict[str, type] = {
        "binomial": BinomialBayesMixedGLM,
        "poisson": PoissonBayesMixedGLM,
    }

    @property
    def name(self) -> str:
        return "statsmodels"

    def supports(self, family: MaihdaFamily) -> bool:
        return family.is_gaussian or family.name in self._GLMM_CLASSES

    def fit(
        self,
        formula: MaihdaFormula,
        data: pd.DataFrame,
        family: MaihdaFamily,
        **kwargs: Any,
    ) -> MixedFit:
        if not self.supports(family):
            msg = f"Engine {self.name!r} does not support family {family.name!r}."
            raise UnsupportedFamily(msg)

        y, X, groups = _model_frame(formula, data)
        _check_response(y, family)
        logger.debug(
            "%s: fitting %s (%s) on %d rows (%d dropped), %d groups",
            self.name,
            formula.text,
            family.name,
            len(y),
            len(data) - len(y),
            len(np.unique(groups)),
        )
        if family.is_gaussian:
            return self._fit_linear(formula, y, X, groups, **kwargs)
        return self._fit_glmm(formula, y, X, groups, family, **kwargs)

    def _fit_linear(
        self,
        formula: MaihdaFormula,
        y: np.ndarray,
        X: pd.DataFrame,
        groups: np.ndarray,
        **kwargs: Any,
    ) -> MixedFit:
        kwargs.setdefault("reml", True)
        exog = X.to_numpy(dtype=float)
        result = MixedLM(y, exog, groups).fit(**kwargs)
        beta = np.asarray(result.fe_params, dtype=float)
        return MixedFit(
            result=result,
            design_info=X.design_info,
            fe_names=tuple(X.columns),
            group=formula.group,
            levels=tuple(result.model.group_labels),
            n_obs=len(y),
            mean_eta=float(np.mean(exog @ beta)),
            converged=bool(result.converged),
        )

    def _glmm_fit_method(self, model: Any) -> Any:
        return model.fit_map

    def _fit_glmm(
        self,
        formula: MaihdaFormula,
        y: np.ndarray,
        X: pd.DataFrame,
        groups: np.ndarray,
        family: MaihdaFamily,
        **kwargs: Any,
    ) -> MixedFit:
        model_kwargs = {k: kwargs.pop(k) for k in list(kwargs) if k in _BAYES_MODEL_KWARGS}

        Z, levels = _indicator_matrix(groups)
        exog = X.to_numpy(dtype=float)
        model = self._GLMM_CLASSES[family.name](
            y,
            exog,
            Z,
            np.zeros(Z.shape[1], dtype=np.int64),
            fep_names=list(X.columns),
            vcp_names=[formula.group],
            vc_names=[f"{formula.group}[{lev}]" for lev in levels],
            **model_kwargs,
        )
        fit_method = self._glmm_fit_method(model)
        # ``rng`` exists on statsmodels >= 0.15 only.
        if "rng" in inspect.signature(fit_method).parameters:
            kwargs.setdefault("rng", _DEFAULT_BAYES_RNG)
        result = fit_method(**kwargs)
        retvals = getattr(result, "optim_retvals", None)
        converged = bool(getattr(retvals, "success", True))
        beta = np.asarray(result.fe_mean, dtype=float)
        return MixedFit(
            result=result,
            design_info=X.design_info,
            fe_names=tuple(X.columns),
            group=formula.group,
            levels=levels,
            n_obs=len(y),
            mean_eta=float(np.mean(exog @ beta)),
            converged=converged,
        )

    # ---- Extraction ------------------------------------------------

    @staticmethod
    def _is_linear(fit: MixedFit) -> bool:
        return isinstance(fit.result.model, MixedLM)

    def fixed_effects(self, fit: MixedFit) -> pd.DataFrame:
        if self._is_linear(fit):
            est = np.asarray(fit.result.fe_params, dtype=float)
            se = np.asarray(fit.result.bse_fe, dtype=float)
        else:
            est = np.asarray(fit.result.fe_mean, dtype=float)
            se = np.asarray(fit.result.fe_sd, dtype=float)
        return pd.DataFrame({"term": list(fit.fe_names), "estimate": est, "se": se})

    def random_effects(self, fit: MixedFit) -> pd.DataFrame:
        if not self._is_linear(fit):
            return pd.DataFrame(
                {
                    "level": list(fit.levels),
                    "estimate": np.asarray(fit.result.vc_mean, dtype=float),
                    "se": np.asarray(fit.result.vc_sd, dtype=float),
                }
            )

        # A zero variance estimate leaves every group at the population mean.
        if self.between_variance(fit) <= 0:
            zeros = np.zeros(len(fit.levels))
            return pd.DataFrame({"level": list(fit.levels), "estimate": zeros, "se": zeros})
        try:
            re = fit.result.random_effects
            re_cov = fit.result.random_effects_cov
        except ValueError as exc:
            msg = f"Could not extract random effects: {exc}"
            raise ExtractionError(msg) from exc
        est = [float(np.asarray(re[lev])[0]) for lev in fit.levels]
        se = [math.sqrt(max(float(np.asarray(re_cov[lev])[0, 0]), 0.0)) for lev in fit.levels]
        return pd.DataFrame({"level": list(fit.levels), "estimate": est, "se": se})

    def between_variance(self, fit: MixedFit) -> float:
        if self._is_linear(fit):
            return float(np.asarray(fit.result.cov_re)[0, 0])
        # vcp_mean holds the log standard deviation.
        return float(np.exp(2 * np.asarray(fit.result.vcp_mean)[0]))

    def scale(self, fit: MixedFit) -> float | None:
        if self._is_linear(fit):
            return float(fit.result.scale)
        return None

    def fixed_linear_predictor(self, fit: MixedFit, data: pd.DataFrame) -> np.ndarray:
        frame = data.reset_index(drop=True)
        try:
            (X,) = patsy.build_design_matrices(
                [fit.design_info], frame, NA_action="drop", return_type="dataframe"
            )
        except patsy.PatsyError as exc:
            msg = f"Could not evaluate the fixed effects on new data: {exc}"
            raise InvalidArgument(msg) from exc
        X = X.reindex(frame.index)
        beta = self.fixed_effects(fit)["estimate"].to_numpy()
        return X.to_numpy(dtype=float) @ beta


class VariationalEngine(StatsmodelsEngine):
    """Mean-field variational Bayes GLMMs (binomial and poisson only)."""

    @property
    def name(self) -> str:
        return "variational"

    def supports(self, family: MaihdaFamily) -> bool:
        return family.name in self._GLMM_CLASSES

    def _glmm_fit_method(self, model: Any) -> Any:
        return model.fit_vb


# ------------------------------------------------------------------ #
# Registry
# ------------------------------------------------------------------ #

_ENGINES: dict[str, MixedModelFitter] = {}
"""Registry mapping engine names to engine instances."""


def register_engine(name: str, engine: MixedModelFitter) -> None:
    """Register *engine* under *name*.

    Raises:
        TypeError: If *engine* does not implement ``MixedModelFitter``.
    """
    if not isinstance(engine, MixedModelFitter):
        msg = f"{engine!r} does not implement the MixedModelFitter protocol."
        raise TypeError(msg)
    _ENGINES[name.strip().lower()] = engine


def resolve_engine(engine: str | MixedModelFitter | None = None) -> MixedModelFitter:
    """Return the engine for *engine*.

    ``None`` selects the configured default (see
    :func:`~maihda.get_engine`).  Engine instances are returned as-is.

    Raises:
        UnsupportedEngine: If no engine is registered under the name.
    """
    if engine is None:
        engine = get_engine()
    if isinstance(engine, MixedModelFitter):
        return engine
    if not isinstance(engine, str):
        msg = f"'engine' must be a name or an engine object, got {type(engine).__name__}."
        raise UnsupportedEngine(msg)
    key = engine.strip().lower()
    if key not in _ENGINES:
        available = ", ".join(sorted(_ENGINES))
        msg = f"Unsupported engine {engine!r}.  Available engines: {available}."
        raise UnsupportedEngine(msg)
    return _ENGINES[key]


register_engine("statsmodels", StatsmodelsEngine())
register_engine("variational", VariationalEngine())
