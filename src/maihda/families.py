"""Distributional family protocol and resolution logic.

The ``MaihdaFamily`` protocol captures the few things the rest of the
package needs to know about a response distribution: its link, how to
map a linear predictor back to the response scale, and what the
individual-level (residual) variance is on the scale where the
between-stratum variance lives.  The last point is what makes the VPC
comparable across families:

* **gaussian** (identity link) — the residual variance is the fitted
  error variance.
* **binomial** (logit link) — the latent-response formulation fixes
  the level-1 variance at π²/3 ≈ 3.29.
* **poisson** (log link) — the lognormal approximation
  ``ln(1 + 1/λ)`` with ``λ = exp(mean fixed predictor + between / 2)``
  (Nakagawa & Schielzeth, 2010).

Families are small stateless dataclasses registered in ``_FAMILIES``;
engines, summaries and the PVC routine program against the protocol
rather than branching on family names.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

import numpy as np
from scipy.special import expit

from .exceptions import UnsupportedFamily

# ------------------------------------------------------------------ #
# MaihdaFamily protocol
# ------------------------------------------------------------------ #


@runtime_checkable
class MaihdaFamily(Protocol):
    """Interface that every response family must implement.

    Attributes:
        name: Short identifier used in results and display headers
            (``"gaussian"``, ``"binomial"``, ``"poisson"``).
        link: Name of the link function.
        is_gaussian: ``True`` for linear mixed models.  Engines use it
            to choose between a linear and a generalised fit.
    """

    @property
    def name(self) -> str: ...

    @property
    def link(self) -> str: ...

    @property
    def is_gaussian(self) -> bool: ...

    def inverse_link(self, eta: np.ndarray) -> np.ndarray:
        """Map a linear predictor to the response scale."""
        ...

    def residual_variance(
        self, between: float, mean_eta: float, scale: float | None
    ) -> float:
        """Individual-level variance on the latent (link) scale.

        Args:
            between: Between-stratum variance of the fitted model.
            mean_eta: Mean of the fixed-part linear predictor over the
                rows used by the fit.
            scale: Residual scale reported by the engine (only
                meaningful for gaussian fits).
        """
        ...


# ------------------------------------------------------------------ #
# Concrete families
# ------------------------------------------------------------------ #


@dataclass(frozen=True)
class GaussianFamily:
    """Normal response with identity link."""

    @property
    def name(self) -> str:
        return "gaussian"

    @property
    def link(self) -> str:
        return "identity"

    @property
    def is_gaussian(self) -> bool:
        return True

    def inverse_link(self, eta: np.ndarray) -> np.ndarray:
        return np.asarray(eta, dtype=float)

    def residual_variance(
        self, between: float, mean_eta: float, scale: float | None
    ) -> float:
        if scale is None:
            msg = "Gaussian residual variance requires the fitted scale."
            raise ValueError(msg)
        return float(scale)


@dataclass(frozen=True)
class BinomialFamily:
    """Binary response with logit link (latent-scale partitioning)."""

    @property
    def name(self) -> str:
        return "binomial"

    @property
    def link(self) -> str:
        return "logit"

    @property
    def is_gaussian(self) -> bool:
        return False

    def inverse_link(self, eta: np.ndarray) -> np.ndarray:
        return expit(np.asarray(eta, dtype=float))

    def residual_variance(
        self, between: float, mean_eta: float, scale: float | None
    ) -> float:
        # Variance of the standard logistic distribution.
        return math.pi**2 / 3


@dataclass(frozen=True)
class PoissonFamily:
    """Count response with log link (lognormal approximation)."""

    @property
    def name(self) -> str:
        return "poisson"

    @property
    def link(self) -> str:
        return "log"

    @property
    def is_gaussian(self) -> bool:
        return False

    def inverse_link(self, eta: np.ndarray) -> np.ndarray:
        return np.exp(np.asarray(eta, dtype=float))

    def residual_variance(
        self, between: float, mean_eta: float, scale: float | None
    ) -> float:
        lam = math.exp(mean_eta + max(between, 0.0) / 2)
        return math.log1p(1 / lam)


# ------------------------------------------------------------------ #
# Registry
# ------------------------------------------------------------------ #

_FAMILIES: dict[str, type] = {}
"""Registry mapping family name strings to concrete MaihdaFamily classes."""

# statsmodels family class names → registry keys.
_STATSMODELS_NAMES = {
    "gaussian": "gaussian",
    "binomial": "binomial",
    "poisson": "poisson",
}


def register_family(name: str, cls: type) -> None:
    """Register a concrete ``MaihdaFamily`` class under *name*.

    Raises:
        TypeError: If *cls* does not satisfy the ``MaihdaFamily``
            protocol.
    """
    try:
        instance = cls()
    except Exception:  # noqa: BLE001
        msg = f"{cls!r} could not be instantiated for protocol check."
        raise TypeError(msg) from None
    if not isinstance(instance, MaihdaFamily):
        msg = f"{cls!r} does not implement the MaihdaFamily protocol."
        raise TypeError(msg)
    _FAMILIES[name] = cls


def _statsmodels_family_name(family: Any) -> str | None:
    """Registry key for a ``statsmodels.genmod.families.Family`` instance."""
    from statsmodels.genmod.families import Family

    if not isinstance(family, Family):
        return None
    return _STATSMODELS_NAMES.get(type(family).__name__.lower())


def resolve_family(family: str | MaihdaFamily | Any) -> MaihdaFamily:
    """Resolve a family name or object to a ``MaihdaFamily`` instance.

    Instances of the protocol are returned as-is.  Strings are looked
    up case-insensitively.  statsmodels ``Family`` objects
    (``sm.families.Binomial()`` etc.) are mapped by class name.

    Raises:
        UnsupportedFamily: If *family* cannot be mapped to a registered
            family.
    """
    if isinstance(family, MaihdaFamily):
        return family
    if isinstance(family, str):
        key = family.strip().lower()
    else:
        key = _statsmodels_family_name(family)
        if key is None:
            msg = f"Unsupported family object {family!r}."
            raise UnsupportedFamily(msg)
    if key not in _FAMILIES:
        available = ", ".join(sorted(_FAMILIES))
        msg = f"Unsupported family {family!r}.  Available families: {available}."
        raise UnsupportedFamily(msg)
    instance: MaihdaFamily = _FAMILIES[key]()
    return instance


register_family("gaussian", GaussianFamily)
register_family("binomial", BinomialFamily)
register_family("poisson", PoissonFamily)
