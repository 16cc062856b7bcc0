"""Tests for the display module."""

import numpy as np
import pandas as pd
import pytest

from maihda import (
    calculate_pvc,
    compare_models,
    fit_maihda,
    make_strata,
    summarize,
)
from maihda._results import PvcResult
from maihda.display import (
    _fmt_val,
    _truncate,
    print_comparison_table,
    print_model_table,
    print_pvc_table,
    print_strata_table,
    print_summary_table,
)

FORMULA = "y ~ x + (1 | stratum)"


@pytest.fixture()
def model(clustered):
    return fit_maihda(FORMULA, clustered)


class TestTruncate:
    def test_short_name_unchanged(self):
        assert _truncate("abc", 10) == "abc"

    def test_exact_length_unchanged(self):
        assert _truncate("abcdefghij", 10) == "abcdefghij"

    def test_long_name_truncated(self):
        result = _truncate("abcdefghijk", 10)
        assert len(result) == 10
        assert result.endswith("...")


class TestFmtVal:
    def test_float(self):
        assert _fmt_val(0.123456) == "0.1235"
        assert _fmt_val(2.0, 6) == "2.000000"

    def test_missing(self):
        assert _fmt_val(None) == "N/A"
        assert _fmt_val(float("nan")) == "N/A"
        assert _fmt_val(np.float64("nan")) == "N/A"

    def test_non_float(self):
        assert _fmt_val(12) == "12"


class TestPrintStrataTable:
    def test_prints_labels_and_counts(self, capsys):
        df = pd.DataFrame({"g": ["a", "a", "b", None], "h": ["x", "x", "y", "y"]})
        print_strata_table(make_strata(df, ["g", "h"]))
        out = capsys.readouterr().out
        assert "Intersectional Strata" in out
        assert "a_x" in out
        assert "b_y" in out
        assert "3 of 4" in out

    def test_accepts_metadata_frame(self, capsys):
        df = pd.DataFrame({"g": list("abc")})
        print_strata_table(make_strata(df, ["g"]).strata_info)
        out = capsys.readouterr().out
        assert "Rows assigned" not in out
        assert "No. Strata:" in out

    def test_max_rows(self, capsys):
        df = pd.DataFrame({"g": [f"v{i:02d}" for i in range(30)]})
        print_strata_table(make_strata(df, ["g"]), max_rows=5)
        out = capsys.readouterr().out
        assert "v04" in out
        assert "v05" not in out
        assert "... and 25 more strata" in out

    def test_empty_metadata(self, capsys):
        df = pd.DataFrame({"g": [None, None]})
        print_strata_table(make_strata(df, ["g"]))
        out = capsys.readouterr().out
        assert "0 of 2" in out

    def test_lines_fit_width(self, capsys):
        df = pd.DataFrame({"g": ["a" * 120, "b"]})
        print_strata_table(make_strata(df, ["g"]))
        out = capsys.readouterr().out
        assert max(len(line) for line in out.splitlines()) <= 80


class TestPrintModelTable:
    def test_contents(self, model, capsys):
        print_model_table(model)
        out = capsys.readouterr().out
        assert "MAIHDA Model" in out
        assert "statsmodels" in out
        assert "gaussian" in out
        assert "identity" in out
        assert FORMULA in out
        assert "Intercept" in out
        assert "Between-stratum variance:" in out
        assert "Residual variance:" in out

    def test_glmm_has_no_residual_line(self, binary_clustered, capsys):
        m = fit_maihda(FORMULA, binary_clustered, family="binomial")
        print_model_table(m)
        out = capsys.readouterr().out
        assert "logit" in out
        assert "Residual variance:" not in out


class TestPrintSummaryTable:
    def test_point_estimate(self, model, capsys):
        s = summarize(model)
        print_summary_table(s)
        out = capsys.readouterr().out
        assert "Variance Partition Coefficient (VPC/ICC):" in out
        assert f"Estimate: {s.vpc.estimate:.4f}" in out
        assert "Bootstrap" not in out
        assert "Between-stratum (random)" in out
        assert "Within-stratum (residual)" in out
        assert "Stratum Estimates (first 10):" in out
        assert "... and 2 more strata" in out

    def test_bootstrap_interval(self, clustered, stub_engine, capsys):
        m = fit_maihda(FORMULA, clustered, engine="stub", between=lambda d: float(d["y"].var()))
        s = summarize(m, bootstrap=True, n_boot=10, random_state=0)
        print_summary_table(s)
        out = capsys.readouterr().out
        v = s.vpc
        assert f"Estimate: {v.estimate:.4f} [{v.ci_lower:.4f}, {v.ci_upper:.4f}]" in out
        assert "(Bootstrap 95% CI, 10/10 replicates)" in out

    def test_max_strata(self, model, capsys):
        print_summary_table(summarize(model), max_strata=20)
        out = capsys.readouterr().out
        assert "Stratum Estimates (first 12):" in out
        assert "more strata" not in out

    def test_labels_shown(self, clustered, capsys):
        info = pd.DataFrame({"stratum": range(1, 13), "label": [f"cell{i}" for i in range(1, 13)]})
        m = fit_maihda(FORMULA, clustered, strata_info=info)
        print_summary_table(summarize(m))
        assert "cell1" in capsys.readouterr().out


class TestPrintPvcTable:
    def test_point_estimate(self, capsys):
        print_pvc_table(PvcResult(pvc=0.75, var_model1=4.0, var_model2=1.0))
        out = capsys.readouterr().out
        assert "PVC: 0.7500" in out
        assert "Model 1: 4.000000" in out
        assert "Model 2: 1.000000" in out
        assert "Change:  3.000000 (75.00%)" in out
        assert "Interpretation:" in out
        assert "variance reduction" in out

    def test_bootstrap(self, capsys):
        result = PvcResult(
            pvc=0.5,
            var_model1=2.0,
            var_model2=1.0,
            bootstrap=True,
            ci_lower=0.2,
            ci_upper=0.7,
            conf_level=0.9,
            n_boot=100,
            n_successful=98,
        )
        print_pvc_table(result)
        out = capsys.readouterr().out
        assert "PVC: 0.5000 [0.2000, 0.7000]" in out
        assert "(Bootstrap 90% CI)" in out

    def test_from_calculation(self, clustered, stub_engine, capsys):
        m1 = fit_maihda(FORMULA, clustered, engine="stub", between=1.0)
        m2 = fit_maihda(FORMULA, clustered, engine="stub", between=1.5)
        print_pvc_table(calculate_pvc(m1, m2))
        # The interpretation is wrapped to the table width.
        text = " ".join(capsys.readouterr().out.split())
        assert "Model 2 has 50.0% more between-stratum variance than Model 1 (variance increase)." in text


class TestPrintComparisonTable:
    def test_without_ci(self, model, capsys):
        print_comparison_table(compare_models(model, model_names=["main"]))
        out = capsys.readouterr().out
        assert "Model Comparison (VPC)" in out
        assert "main" in out
        assert "CI Lower" not in out

    def test_with_ci(self, capsys):
        table = pd.DataFrame(
            {"model": ["null", "full"], "vpc": [0.3, 0.1], "ci_lower": [0.2, 0.05], "ci_upper": [0.4, 0.2]}
        )
        print_comparison_table(table)
        out = capsys.readouterr().out
        assert "CI Lower" in out
        assert "0.0500" in out
