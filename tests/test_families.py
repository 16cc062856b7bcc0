"""Tests for the MaihdaFamily protocol and the concrete families."""

import math

import numpy as np
import pytest
import statsmodels.api as sm

from maihda.exceptions import InvalidArgument, UnsupportedFamily
from maihda.families import (
    _FAMILIES,
    BinomialFamily,
    GaussianFamily,
    MaihdaFamily,
    PoissonFamily,
    register_family,
    resolve_family,
)

# ------------------------------------------------------------------ #
# Protocol conformance
# ------------------------------------------------------------------ #


class TestProtocolConformance:
    @pytest.mark.parametrize("cls", [GaussianFamily, BinomialFamily, PoissonFamily])
    def test_isinstance_check(self, cls):
        assert isinstance(cls(), MaihdaFamily)

    def test_names_and_links(self):
        assert (GaussianFamily().name, GaussianFamily().link) == ("gaussian", "identity")
        assert (BinomialFamily().name, BinomialFamily().link) == ("binomial", "logit")
        assert (PoissonFamily().name, PoissonFamily().link) == ("poisson", "log")

    def test_is_gaussian(self):
        assert GaussianFamily().is_gaussian
        assert not BinomialFamily().is_gaussian
        assert not PoissonFamily().is_gaussian

    def test_frozen_dataclass(self):
        with pytest.raises(AttributeError):
            GaussianFamily().name = "other"


# ------------------------------------------------------------------ #
# Inverse links
# ------------------------------------------------------------------ #


class TestInverseLink:
    def test_identity(self):
        eta = np.array([-1.0, 0.0, 2.5])
        np.testing.assert_array_equal(GaussianFamily().inverse_link(eta), eta)

    def test_logistic(self):
        p = BinomialFamily().inverse_link(np.array([0.0, math.log(3)]))
        np.testing.assert_allclose(p, [0.5, 0.75])

    def test_exp(self):
        mu = PoissonFamily().inverse_link(np.array([0.0, 1.0]))
        np.testing.assert_allclose(mu, [1.0, math.e])


# ------------------------------------------------------------------ #
# Residual variance
# ------------------------------------------------------------------ #


class TestResidualVariance:
    def test_gaussian_uses_scale(self):
        assert GaussianFamily().residual_variance(2.0, 0.0, 1.7) == 1.7

    def test_gaussian_requires_scale(self):
        with pytest.raises(ValueError, match="scale"):
            GaussianFamily().residual_variance(2.0, 0.0, None)

    def test_binomial_latent_variance(self):
        v = BinomialFamily().residual_variance(0.5, -1.0, None)
        assert v == pytest.approx(math.pi**2 / 3)
        assert v == pytest.approx(3.289868, abs=1e-6)

    def test_binomial_ignores_between(self):
        fam = BinomialFamily()
        assert fam.residual_variance(0.1, 0.0, None) == fam.residual_variance(5.0, 2.0, None)

    def test_poisson_lognormal_approximation(self):
        between, mean_eta = 0.4, 0.5
        lam = math.exp(mean_eta + between / 2)
        v = PoissonFamily().residual_variance(between, mean_eta, None)
        assert v == pytest.approx(math.log(1 + 1 / lam))

    def test_poisson_negative_between_treated_as_zero(self):
        fam = PoissonFamily()
        assert fam.residual_variance(-0.01, 1.0, None) == pytest.approx(
            math.log1p(math.exp(-1.0))
        )

    def test_poisson_decreases_with_mean(self):
        fam = PoissonFamily()
        assert fam.residual_variance(0.2, 2.0, None) < fam.residual_variance(0.2, 0.0, None)


# ------------------------------------------------------------------ #
# Registry
# ------------------------------------------------------------------ #


class TestRegistry:
    def test_builtins_registered(self):
        assert {"gaussian", "binomial", "poisson"} <= set(_FAMILIES)

    @pytest.mark.parametrize(
        "name, cls",
        [("gaussian", GaussianFamily), ("Binomial", BinomialFamily), (" poisson ", PoissonFamily)],
    )
    def test_resolve_by_name(self, name, cls):
        assert isinstance(resolve_family(name), cls)

    def test_instance_passes_through(self):
        fam = BinomialFamily()
        assert resolve_family(fam) is fam

    @pytest.mark.parametrize(
        "sm_family, cls",
        [
            (sm.families.Gaussian(), GaussianFamily),
            (sm.families.Binomial(), BinomialFamily),
            (sm.families.Poisson(), PoissonFamily),
        ],
    )
    def test_resolve_statsmodels_family(self, sm_family, cls):
        assert isinstance(resolve_family(sm_family), cls)

    def test_unknown_name_raises(self):
        with pytest.raises(UnsupportedFamily, match="Available families"):
            resolve_family("gamma")

    def test_unsupported_statsmodels_family_raises(self):
        with pytest.raises(UnsupportedFamily):
            resolve_family(sm.families.Gamma())

    def test_unknown_object_raises(self):
        with pytest.raises(UnsupportedFamily):
            resolve_family(3.14)

    def test_unsupported_family_is_invalid_argument(self):
        with pytest.raises(InvalidArgument):
            resolve_family("negative_binomial")

    def test_register_non_protocol_raises(self):
        class NotAFamily:
            pass

        with pytest.raises(TypeError, match="does not implement"):
            register_family("bad", NotAFamily)
        assert "bad" not in _FAMILIES

    def test_register_uninstantiable_raises(self):
        class NeedsArgs:
            def __init__(self, x):
                self.x = x

        with pytest.raises(TypeError, match="could not be instantiated"):
            register_family("needs_args", NeedsArgs)

    def test_register_custom_family(self):
        class Probit(BinomialFamily):
            @property
            def name(self) -> str:
                return "probit"

            @property
            def link(self) -> str:
                return "probit"

            def residual_variance(self, between, mean_eta, scale):
                return 1.0

        register_family("probit", Probit)
        try:
            fam = resolve_family("probit")
            assert fam.name == "probit"
            assert fam.residual_variance(0.3, 0.0, None) == 1.0
        finally:
            _FAMILIES.pop("probit", None)
