"""
Test Case 1: Intersectional MAIHDA (Continuous Outcome)
Simulated health survey (``simulate_maihda_data``)

Demonstrates:
- ``make_strata`` — gender × race × education intersectional strata
- Null model ``health_outcome ~ 1 + (1 | stratum)`` and its VPC
- Main-effects model and the PVC between the two
- External validation against statsmodels MixedLM (τ², σ², VPC)
- Bootstrap intervals for VPC and PVC
- Per-stratum random effects and individual predictions
- ``compare_models`` across the two specifications

Dataset
-------
1,000 simulated individuals with gender (2 levels), race (4) and
education (4).  The outcome is additive in the main effects plus three
interaction effects (Black women, men with high-school education,
college-educated Hispanic respondents).  The interactions are what the
main-effects model cannot absorb, so the between-stratum variance left
in model 2 measures intersectional effects:

    Level 2: Intersectional strata (up to 2 × 4 × 4 = 32)
    Level 1: Individuals within strata
"""

import warnings

import numpy as np
import statsmodels.regression.mixed_linear_model as mlm

from maihda import (
    between_stratum_variance,
    calculate_pvc,
    compare_models,
    fit_maihda,
    make_strata,
    predict,
    print_comparison_table,
    print_model_table,
    print_pvc_table,
    print_strata_table,
    print_summary_table,
    simulate_maihda_data,
    summarize,
    vpc,
)

# ============================================================================
# Build strata
# ============================================================================

data = simulate_maihda_data(n=1000, random_state=2024)
strata = make_strata(data, ["gender", "race", "education"], min_count=5)

print("Dataset: simulated intersectional health survey")
print(f"  Observations:  {len(data)}")
print(f"  Strata:        {strata.n_strata} (min_count={strata.min_count})")
print(f"  Assigned rows: {strata.n_assigned}")
y = data["health_outcome"]
print(f"  Outcome:       health_outcome (range {y.min():.1f}–{y.max():.1f})")
print()

print_strata_table(strata, max_rows=10)

# ============================================================================
# Model 1: null model (strata only)
# ============================================================================

model1 = fit_maihda("health_outcome ~ 1 + (1 | stratum)", strata)
print_model_table(model1, title="Model 1: Null Model (strata only)")

# ============================================================================
# External validation: statsmodels MixedLM
# ============================================================================

print("=" * 80)
print("External validation: statsmodels MixedLM (random intercept)")
print("=" * 80)

used = strata.data.loc[strata.data["stratum"].notna()]
y_np = used["health_outcome"].to_numpy(dtype=float)
groups = used["stratum"].to_numpy(dtype=np.int64)
sm_model = mlm.MixedLM(y_np, np.ones((len(y_np), 1)), groups=groups).fit(reml=True)

tau2_sm = float(np.asarray(sm_model.cov_re).flat[0])
vpc_sm = tau2_sm / (tau2_sm + sm_model.scale)
print(f"  τ² (statsmodels): {tau2_sm:.4f}")
print(f"  σ² (statsmodels): {sm_model.scale:.4f}")
print(f"  VPC (statsmodels): {vpc_sm:.4f}")
print(f"  VPC (maihda):      {vpc(model1):.4f}")

tau2_match = abs(between_stratum_variance(model1) - tau2_sm) < 1e-6
vpc_match = abs(vpc(model1) - vpc_sm) < 1e-6
print(f"  τ² agree (atol=1e-6):  {tau2_match}")
print(f"  VPC agree (atol=1e-6): {vpc_match}")
assert tau2_match, f"τ² mismatch: {between_stratum_variance(model1)} vs {tau2_sm}"
assert vpc_match, f"VPC mismatch: {vpc(model1)} vs {vpc_sm}"
print()

# ============================================================================
# Model 1 summary with bootstrap VPC interval
# ============================================================================

summary1 = summarize(model1, bootstrap=True, n_boot=200, random_state=42)
print_summary_table(summary1, title="Model 1: Null Model Summary")

# ============================================================================
# Model 2: main effects
# ============================================================================

model2 = fit_maihda(
    "health_outcome ~ age + gender + race + education + (1 | stratum)",
    strata,
)
summary2 = summarize(model2)
print_summary_table(summary2, title="Model 2: Main Effects Summary")

# ============================================================================
# PVC: how much between-stratum variance do main effects explain?
# ============================================================================

pvc_point = calculate_pvc(model1, model2)
print_pvc_table(pvc_point, title="PVC (point estimate)")

with warnings.catch_warnings():
    # Boundary fits in some replicates are expected for model 2.
    warnings.filterwarnings("ignore", category=RuntimeWarning)
    pvc_boot = calculate_pvc(
        model1, model2, bootstrap=True, n_boot=200, random_state=42, n_jobs=-1
    )
print_pvc_table(pvc_boot, title="PVC with Bootstrap Interval")
assert pvc_boot.ci_lower <= pvc_boot.pvc <= pvc_boot.ci_upper

# ============================================================================
# Stratum effects and predictions
# ============================================================================

effects = summary2.stratum_estimates.sort_values("random_effect")
print("Strata furthest below the main-effects prediction (Model 2):")
for row in effects.head(3).itertuples(index=False):
    print(f"  {row.label:<35s} {row.random_effect:>8.3f}  [{row.lower_95:.3f}, {row.upper_95:.3f}]")
print("Strata furthest above the main-effects prediction (Model 2):")
for row in effects.tail(3).itertuples(index=False):
    print(f"  {row.label:<35s} {row.random_effect:>8.3f}  [{row.lower_95:.3f}, {row.upper_95:.3f}]")
print()

pred = predict(model2)
resid = strata.data["health_outcome"] - pred
print(f"Individual predictions: RMSE = {np.sqrt(np.nanmean(resid**2)):.3f}")
print()

# ============================================================================
# Side-by-side comparison
# ============================================================================

comparison = compare_models(
    model1,
    model2,
    model_names=["Model 1: Null", "Model 2: Main effects"],
)
print_comparison_table(comparison)
