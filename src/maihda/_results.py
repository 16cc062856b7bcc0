"""Typed result objects for the MAIHDA workflow.

Frozen dataclasses that provide:

* **Attribute access** — ``result.pvc``, ``summary.vpc``, etc.
* **Dict-like access** — ``result["pvc"]``, ``result.get("key")``,
  ``"key" in result`` for consumers that prefer bracket syntax.
* **Serialisation** — ``.to_dict()`` returns a plain ``dict[str, Any]``
  with NumPy scalars and pandas tables converted to native Python.

Five concrete types mirror the stages of an analysis:

* :class:`StrataResult` — augmented table plus stratum metadata from
  :func:`~maihda.make_strata`.
* :class:`FittedModel` — the immutable bundle produced by
  :func:`~maihda.fit_maihda`.
* :class:`VpcEstimate` and :class:`MaihdaSummary` — variance partition
  and per-stratum estimates from :func:`~maihda.summarize`.
* :class:`PvcResult` — proportional change in between-stratum variance
  from :func:`~maihda.calculate_pvc`.

All types are frozen: results are a snapshot of a completed step and
are safe to hand to several downstream consumers.  Containers that
hold tables share them by reference rather than copying.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import TYPE_CHECKING, Any, ClassVar

import numpy as np
import pandas as pd

if TYPE_CHECKING:
    from collections.abc import Iterator

    from .engines import MixedFit
    from .families import MaihdaFamily
    from .formula import MaihdaFormula

# ------------------------------------------------------------------ #
# Serialisation helper
# ------------------------------------------------------------------ #


def _numpy_to_python(obj: Any) -> Any:
    """Recursively convert NumPy/pandas objects to Python-native types.

    Handles nested dicts, lists, DataFrames (as lists of records),
    Series, np.ndarray, np.integer, np.floating and ``pd.NA`` so that
    :meth:`to_dict` returns a fully JSON-serialisable structure.
    """
    if isinstance(obj, pd.DataFrame):
        return [_numpy_to_python(rec) for rec in obj.to_dict(orient="records")]
    if isinstance(obj, pd.Series):
        return _numpy_to_python(obj.to_dict())
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    if isinstance(obj, (np.integer, np.bool_)):
        return int(obj)
    if isinstance(obj, np.floating):
        return float(obj)
    if obj is pd.NA:
        return None
    if isinstance(obj, dict):
        return {k: _numpy_to_python(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        converted = [_numpy_to_python(item) for item in obj]
        return type(obj)(converted)
    return obj


# ------------------------------------------------------------------ #
# Dict-compatibility mixin
# ------------------------------------------------------------------ #


class _DictAccessMixin:
    """Dict-like access convenience for result dataclasses.

    Supports three access patterns:

    1. ``result["key"]``     — raises ``KeyError`` on miss
    2. ``result.get(key, d)`` — returns *d* on miss (default ``None``)
    3. ``"key" in result``   — membership test

    Subclasses may override ``_SERIALIZERS`` to register custom
    conversion functions for non-primitive fields (e.g.
    ``MaihdaFamily`` → ``str``).  Serializers compose with
    :func:`_numpy_to_python`.
    """

    _SERIALIZERS: ClassVar[dict[str, Any]] = {
        "family": lambda f: f.name,
        "formula": lambda f: f.text,
    }

    # Fields to exclude from to_dict() serialisation.
    _EXCLUDE_FROM_DICT: ClassVar[frozenset[str]] = frozenset()

    def __getitem__(self, key: str) -> Any:
        """Attribute lookup via bracket syntax."""
        try:
            return getattr(self, key)
        except AttributeError:
            raise KeyError(key) from None

    def get(self, key: str, default: Any = None) -> Any:
        """Attribute lookup with a fallback default."""
        return getattr(self, key, default)

    def __contains__(self, key: object) -> bool:
        """Membership test: ``"key" in result``."""
        if not isinstance(key, str):
            return False
        return hasattr(self, key)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a plain dictionary.

        Applies per-field serializers from ``_SERIALIZERS``, then runs
        :func:`_numpy_to_python` on every value so the returned dict
        is fully JSON-serialisable.
        """
        result: dict[str, Any] = {}
        for f in fields(self):  # type: ignore[arg-type]
            if f.name in self._EXCLUDE_FROM_DICT:
                continue
            val = getattr(self, f.name)
            if f.name in self._SERIALIZERS and val is not None:
                val = self._SERIALIZERS[f.name](val)
            result[f.name] = _numpy_to_python(val)
        return result


# ------------------------------------------------------------------ #
# StrataResult
# ------------------------------------------------------------------ #


@dataclass(frozen=True, eq=False)
class StrataResult(_DictAccessMixin):
    """Augmented table and stratum metadata from :func:`~maihda.make_strata`.

    Unpacks as a pair, so both styles work::

        strata = make_strata(df, ["gender", "race"])
        data, strata_info = make_strata(df, ["gender", "race"])
    """

    data: pd.DataFrame
    """Copy of the input with an added nullable-integer ``stratum`` column."""

    strata_info: pd.DataFrame
    """One row per valid stratum: ``stratum, label, n, <vars...>``."""

    vars: tuple[str, ...]
    """Stratum variables, in label order."""

    sep: str
    """Separator used to join values into labels."""

    min_count: int
    """Minimum number of complete rows for a combination to be kept."""

    def __iter__(self) -> Iterator[pd.DataFrame]:
        yield self.data
        yield self.strata_info

    @property
    def n_strata(self) -> int:
        """Number of valid strata (K)."""
        return len(self.strata_info)

    @property
    def n_assigned(self) -> int:
        """Number of rows with a non-null stratum."""
        return int(self.data["stratum"].notna().sum())


# ------------------------------------------------------------------ #
# FittedModel
# ------------------------------------------------------------------ #


@dataclass(frozen=True, eq=False)
class FittedModel(_DictAccessMixin):
    """Immutable bundle returned by :func:`~maihda.fit_maihda`.

    The original ``data`` is held by reference, not copied, so passing
    the container to summaries, PVC and bootstrap routines costs
    nothing.
    """

    _EXCLUDE_FROM_DICT: ClassVar[frozenset[str]] = frozenset({"model", "data"})

    model: MixedFit
    """Engine-specific fitted model handle."""

    engine: str
    """Name of the engine that produced ``model``."""

    formula: MaihdaFormula
    """Parsed model formula."""

    data: pd.DataFrame
    """The data passed to the fit (before missing-value row removal)."""

    family: MaihdaFamily
    """Resolved distributional family."""

    strata_info: pd.DataFrame | None = None
    """Stratum metadata from :func:`~maihda.make_strata`, if supplied."""

    fit_kwargs: dict[str, Any] = field(default_factory=dict)
    """Extra engine arguments, reused when the model is refitted."""

    @property
    def n_obs(self) -> int:
        """Number of rows in ``data``."""
        return len(self.data)

    @property
    def n_used(self) -> int:
        """Number of rows actually used by the fit (after NA removal)."""
        return self.model.n_obs

    @property
    def group(self) -> str:
        """Name of the random-intercept grouping field."""
        return self.formula.group


# ------------------------------------------------------------------ #
# Summary results
# ------------------------------------------------------------------ #


@dataclass(frozen=True)
class VpcEstimate(_DictAccessMixin):
    """Variance partition coefficient with an optional bootstrap interval."""

    estimate: float
    """Point estimate, between / (between + residual)."""

    bootstrap: bool = False
    """Whether a bootstrap interval was computed."""

    ci_lower: float | None = None
    """Lower bound of the bootstrap interval, lowered to the estimate if needed."""

    ci_upper: float | None = None
    """Upper bound of the bootstrap interval, raised to the estimate if needed."""

    raw_ci_lower: float | None = None
    """Empirical lower quantile of the replicates."""

    raw_ci_upper: float | None = None
    """Empirical upper quantile of the replicates."""

    conf_level: float | None = None
    """Confidence level of the interval."""

    n_boot: int | None = None
    """Number of bootstrap replicates requested."""

    n_successful: int | None = None
    """Number of bootstrap replicates that fitted successfully."""


@dataclass(frozen=True, eq=False)
class MaihdaSummary(_DictAccessMixin):
    """Result of :func:`~maihda.summarize`."""

    vpc: VpcEstimate
    """Variance partition coefficient (ICC)."""

    variance_components: pd.DataFrame
    """Three rows (between, within, total): ``component, variance, sd, proportion``."""

    fixed_effects: pd.DataFrame
    """``term, estimate, se`` for every fixed-effect coefficient."""

    stratum_estimates: pd.DataFrame | None
    """Per-stratum random intercepts with 95% intervals (and labels when known)."""

    engine: str
    """Engine that fitted the model."""

    family: MaihdaFamily
    """Distributional family of the model."""

    formula: MaihdaFormula
    """Model formula."""

    n_obs: int
    """Rows used by the fit."""

    def to_dict(self) -> dict[str, Any]:
        """Convert to a plain dictionary (the VPC is expanded in place)."""
        out = super().to_dict()
        out["vpc"] = self.vpc.to_dict()
        return out


# ------------------------------------------------------------------ #
# PVC result
# ------------------------------------------------------------------ #


@dataclass(frozen=True)
class PvcResult(_DictAccessMixin):
    """Proportional change in between-stratum variance between two models.

    ``pvc = (var_model1 - var_model2) / var_model1``.  Positive values
    mean model 2 explains part of the between-stratum variance present
    under model 1; negative values mean the variance increased.
    """

    pvc: float
    """Point estimate of the proportional change."""

    var_model1: float
    """Between-stratum variance of the reference model."""

    var_model2: float
    """Between-stratum variance of the comparison model."""

    bootstrap: bool = False
    """Whether a bootstrap interval was computed."""

    ci_lower: float | None = None
    """Lower bound of the bootstrap interval, lowered to the estimate if needed."""

    ci_upper: float | None = None
    """Upper bound of the bootstrap interval, raised to the estimate if needed."""

    raw_ci_lower: float | None = None
    """Empirical lower quantile of the replicates."""

    raw_ci_upper: float | None = None
    """Empirical upper quantile of the replicates."""

    conf_level: float | None = None
    """Confidence level of the interval."""

    n_boot: int | None = None
    """Number of bootstrap replicates requested."""

    n_successful: int | None = None
    """Number of bootstrap replicates that fitted successfully."""

    @property
    def change(self) -> float:
        """Absolute change ``var_model1 - var_model2``."""
        return self.var_model1 - self.var_model2

    @property
    def percent_change(self) -> float:
        """PVC expressed as a percentage."""
        return self.pvc * 100

    def interpretation(self) -> str:
        """One-sentence reading of the sign of PVC."""
        if self.pvc > 0:
            return (
                f"Model 2 explains {self.pvc * 100:.1f}% of the between-stratum "
                "variance present in Model 1 (variance reduction)."
            )
        if self.pvc < 0:
            return (
                f"Model 2 has {abs(self.pvc) * 100:.1f}% more between-stratum "
                "variance than Model 1 (variance increase)."
            )
        return "No change in between-stratum variance between models."
