"""maihda — Multilevel Analysis of Individual Heterogeneity and Discriminatory Accuracy.

Builds intersectional strata from crossed categorical variables, fits
random-intercept mixed models with the strata as the grouping unit
(REML linear mixed models, Laplace or variational GLMMs via
statsmodels), partitions the variance into between- and within-stratum
components (VPC/ICC), measures how much of the between-stratum
variance a set of main effects explains (PVC), and attaches percentile
bootstrap intervals to both.

Public API:
    .. autosummary::
        make_strata
        fit_maihda
        refit
        parse_formula
        between_stratum_variance
        residual_variance
        variance_components
        vpc
        calculate_pvc
        summarize
        stratum_estimates
        bootstrap_vpc
        predict
        compare_models
        bootstrap_ci
        bootstrap_distribution
        draw_bootstrap_indices
        percentile_interval
        simulate_maihda_data
        print_strata_table
        print_model_table
        print_summary_table
        print_pvc_table
        print_comparison_table
        get_engine
        set_engine
        MixedModelFitter
        MixedFit
        StatsmodelsEngine
        VariationalEngine
        register_engine
        resolve_engine
        MaihdaFamily
        GaussianFamily
        BinomialFamily
        PoissonFamily
        register_family
        resolve_family
        MaihdaFormula
        StrataResult
        FittedModel
        VpcEstimate
        MaihdaSummary
        PvcResult
"""

from ._config import get_engine, set_engine
from ._results import FittedModel, MaihdaSummary, PvcResult, StrataResult, VpcEstimate
from .bootstrap import (
    bootstrap_ci,
    bootstrap_distribution,
    draw_bootstrap_indices,
    percentile_interval,
)
from .datasets import simulate_maihda_data
from .display import (
    print_comparison_table,
    print_model_table,
    print_pvc_table,
    print_strata_table,
    print_summary_table,
)
from .engines import (
    MixedFit,
    MixedModelFitter,
    StatsmodelsEngine,
    VariationalEngine,
    register_engine,
    resolve_engine,
)
from .exceptions import (
    AmbiguousLabelWarning,
    BootstrapFailed,
    BootstrapUnreliable,
    EngineMismatch,
    ExtractionError,
    InvalidArgument,
    InvalidVariance,
    MaihdaError,
    MaihdaWarning,
    NonPositiveVariance,
    SizeMismatch,
    UnsupportedEngine,
    UnsupportedFamily,
)
from .families import (
    BinomialFamily,
    GaussianFamily,
    MaihdaFamily,
    PoissonFamily,
    register_family,
    resolve_family,
)
from .fit import fit_maihda, refit
from .formula import MaihdaFormula, parse_formula
from .pvc import calculate_pvc
from .strata import make_strata
from .summary import (
    bootstrap_vpc,
    compare_models,
    predict,
    stratum_estimates,
    summarize,
)
from .variance import (
    between_stratum_variance,
    residual_variance,
    variance_components,
    vpc,
)

__all__ = [
    "StrataResult",
    "FittedModel",
    "VpcEstimate",
    "MaihdaSummary",
    "PvcResult",
    "make_strata",
    "fit_maihda",
    "refit",
    "parse_formula",
    "MaihdaFormula",
    "between_stratum_variance",
    "residual_variance",
    "variance_components",
    "vpc",
    "calculate_pvc",
    "summarize",
    "stratum_estimates",
    "bootstrap_vpc",
    "predict",
    "compare_models",
    "bootstrap_ci",
    "bootstrap_distribution",
    "draw_bootstrap_indices",
    "percentile_interval",
    "simulate_maihda_data",
    "print_comparison_table",
    "print_model_table",
    "print_pvc_table",
    "print_strata_table",
    "print_summary_table",
    "get_engine",
    "set_engine",
    "MixedFit",
    "MixedModelFitter",
    "StatsmodelsEngine",
    "VariationalEngine",
    "register_engine",
    "resolve_engine",
    "MaihdaFamily",
    "GaussianFamily",
    "BinomialFamily",
    "PoissonFamily",
    "register_family",
    "resolve_family",
    "MaihdaError",
    "MaihdaWarning",
    "InvalidArgument",
    "UnsupportedFamily",
    "UnsupportedEngine",
    "EngineMismatch",
    "ExtractionError",
    "InvalidVariance",
    "NonPositiveVariance",
    "BootstrapFailed",
    "BootstrapUnreliable",
    "SizeMismatch",
    "AmbiguousLabelWarning",
]

__version__ = "0.1.0"
