"""Shared fixtures: simulated clustered data and a scripted stub engine."""

from __future__ import annotations

import os

import numpy as np
import pandas as pd
import pytest

import maihda._config as _cfg
from maihda.engines import _ENGINES, MixedFit, register_engine

# ------------------------------------------------------------------ #
# Data
# ------------------------------------------------------------------ #


def make_clustered(
    seed: int = 42,
    n_groups: int = 12,
    n_per_group: int = 25,
    tau: float = 2.0,
    sigma: float = 1.0,
) -> pd.DataFrame:
    """Gaussian outcome with a random stratum intercept ~ N(0, tau²)."""
    rng = np.random.default_rng(seed)
    stratum = np.repeat(np.arange(1, n_groups + 1), n_per_group)
    u = rng.normal(0, tau, size=n_groups)
    x = rng.standard_normal(len(stratum))
    y = 1.0 + 0.5 * x + u[stratum - 1] + rng.normal(0, sigma, size=len(stratum))
    return pd.DataFrame({"y": y, "x": x, "stratum": stratum})


@pytest.fixture()
def clustered():
    return make_clustered()


@pytest.fixture()
def binary_clustered():
    """Binary outcome, 15 strata × 40 rows, random intercept SD 1."""
    rng = np.random.default_rng(7)
    stratum = np.repeat(np.arange(1, 16), 40)
    u = rng.normal(0, 1.0, size=15)
    x = rng.standard_normal(len(stratum))
    eta = -0.3 + 0.8 * x + u[stratum - 1]
    y = rng.binomial(1, 1 / (1 + np.exp(-eta)))
    return pd.DataFrame({"y": y, "x": x, "stratum": stratum})


@pytest.fixture()
def count_clustered():
    """Poisson outcome, 15 strata × 40 rows, random intercept SD 0.7."""
    rng = np.random.default_rng(11)
    stratum = np.repeat(np.arange(1, 16), 40)
    u = rng.normal(0, 0.7, size=15)
    y = rng.poisson(np.exp(0.5 + u[stratum - 1]))
    return pd.DataFrame({"y": y, "stratum": stratum})


# ------------------------------------------------------------------ #
# Engine configuration
# ------------------------------------------------------------------ #


@pytest.fixture(autouse=True)
def _reset_engine_config():
    _cfg._engine_override = None
    os.environ.pop("MAIHDA_ENGINE", None)
    yield
    _cfg._engine_override = None
    os.environ.pop("MAIHDA_ENGINE", None)


class StubEngine:
    """Engine whose variance components are scripted through fit kwargs.

    ``between`` (and ``scale``) may be numbers or callables taking the
    data being fitted, so bootstrap refits can be steered per replicate.
    ``fail`` may be a callable returning True for data that should make
    the fit raise.
    """

    def __init__(self, name: str = "stub") -> None:
        self._name = name
        self.fit_calls = 0

    @property
    def name(self) -> str:
        return self._name

    def supports(self, family):
        return True

    def fit(self, formula, data, family, between=1.0, scale=1.0, fail=None):
        self.fit_calls += 1
        if fail is not None and fail(data):
            raise RuntimeError("scripted failure")
        between = between(data) if callable(between) else between
        scale = scale(data) if callable(scale) else scale
        levels = tuple(sorted(data[formula.group].dropna().unique().tolist()))
        return MixedFit(
            result={"between": between, "scale": scale},
            design_info=None,
            fe_names=("Intercept",),
            group=formula.group,
            levels=levels,
            n_obs=len(data),
            mean_eta=0.0,
            converged=True,
        )

    def fixed_effects(self, fit):
        return pd.DataFrame({"term": ["Intercept"], "estimate": [0.0], "se": [1.0]})

    def random_effects(self, fit):
        k = len(fit.levels)
        return pd.DataFrame(
            {
                "level": list(fit.levels),
                "estimate": np.linspace(-1, 1, k) if k else np.zeros(0),
                "se": np.full(k, 0.5),
            }
        )

    def between_variance(self, fit):
        return fit.result["between"]

    def scale(self, fit):
        return fit.result["scale"]

    def fixed_linear_predictor(self, fit, data):
        return np.zeros(len(data))


@pytest.fixture()
def stub_engine():
    engine = StubEngine()
    register_engine("stub", engine)
    yield engine
    _ENGINES.pop("stub", None)
