"""Tests for random-intercept formula parsing."""

import pytest

from maihda.exceptions import InvalidArgument
from maihda.formula import MaihdaFormula, _cleanup_rhs, parse_formula


class TestParseFormula:
    def test_intercept_only(self):
        f = parse_formula("y ~ 1 + (1 | stratum)")
        assert f.response == "y"
        assert f.group == "stratum"
        assert f.fixed == "y ~ 1"
        assert f.intercept_only

    def test_random_term_alone(self):
        f = parse_formula("y ~ (1|stratum)")
        assert f.fixed == "y ~ 1"
        assert f.intercept_only

    def test_main_effects(self):
        f = parse_formula("health_outcome ~ age + gender + race + (1 | stratum)")
        assert f.fixed == "health_outcome ~ age + gender + race"
        assert f.rhs == "age + gender + race"
        assert not f.intercept_only

    def test_random_term_in_middle(self):
        f = parse_formula("y ~ age + (1 | g) + C(race)")
        assert f.fixed == "y ~ age + C(race)"
        assert f.group == "g"

    def test_double_bar_accepted(self):
        f = parse_formula("y ~ x + (1 || stratum)")
        assert f.group == "stratum"
        assert f.fixed == "y ~ x"

    def test_whitespace_normalised(self):
        f = parse_formula("  y~x+   ( 1 |  stratum )  ")
        assert f.fixed == "y ~ x"
        assert f.group == "stratum"

    def test_text_preserved(self):
        text = "y ~ x + (1 | stratum)"
        f = parse_formula(text)
        assert f.text == text
        assert str(f) == text

    def test_transformed_response(self):
        f = parse_formula("np.log(y) ~ x + (1 | stratum)")
        assert f.response == "np.log(y)"
        assert f.fixed == "np.log(y) ~ x"

    def test_parsed_formula_passes_through(self):
        f = parse_formula("y ~ x + (1 | stratum)")
        assert parse_formula(f) is f

    def test_frozen(self):
        f = parse_formula("y ~ (1 | stratum)")
        with pytest.raises(AttributeError):
            f.group = "other"

    def test_equality(self):
        assert parse_formula("y ~ (1 | g)") == MaihdaFormula("y", "y ~ 1", "g", "y ~ (1 | g)")


class TestParseFormulaErrors:
    def test_not_a_string(self):
        with pytest.raises(InvalidArgument, match="must be a string"):
            parse_formula(42)

    def test_no_tilde(self):
        with pytest.raises(InvalidArgument, match="exactly one '~'"):
            parse_formula("y + (1 | stratum)")

    def test_two_tildes(self):
        with pytest.raises(InvalidArgument, match="exactly one '~'"):
            parse_formula("y ~ x ~ (1 | stratum)")

    def test_no_response(self):
        with pytest.raises(InvalidArgument, match="no response"):
            parse_formula("~ x + (1 | stratum)")

    def test_no_random_term(self):
        with pytest.raises(InvalidArgument, match="random-intercept term"):
            parse_formula("y ~ x")

    def test_two_grouping_terms(self):
        with pytest.raises(InvalidArgument, match="Only one grouping term"):
            parse_formula("y ~ (1 | a) + (1 | b)")

    def test_random_slope(self):
        with pytest.raises(InvalidArgument, match="Only random intercepts"):
            parse_formula("y ~ x + (x | stratum)")

    def test_nested_group_rejected(self):
        with pytest.raises(InvalidArgument, match="single column"):
            parse_formula("y ~ (1 | a:b)")

    def test_unbalanced_bar(self):
        with pytest.raises(InvalidArgument, match="Unbalanced"):
            parse_formula("y ~ x | z + (1 | stratum)")


class TestCleanupRhs:
    def test_dangling_plus(self):
        assert _cleanup_rhs("x + ") == "x"
        assert _cleanup_rhs(" + x") == "x"

    def test_double_plus(self):
        assert _cleanup_rhs("x +  + z") == "x + z"

    def test_empty(self):
        assert _cleanup_rhs("   ") == "1"
