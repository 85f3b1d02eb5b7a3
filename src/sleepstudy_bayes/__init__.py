"""
Sleepstudy Bayes - Bayesian regression of reaction time on sleep deprivation

Workshop package: loads per-subject reaction-time data, fits a Bayesian
linear regression with PyMC under default and custom priors, checks
convergence, runs posterior predictive checks and renders an HTML report.
"""

__version__ = "0.1.0"

# Data loading
from .data import (
    SleepStudyData,
    SleepStudyLoader,
    create_sample_sleepstudy_data,
    summarize_by_day,
    subject_slopes,
)

# Bayesian regression
from .bayesian import (
    BayesianConfig,
    BayesianRegression,
    ConvergenceReport,
    PriorSpec,
    get_custom_priors,
    get_default_priors,
)

# Fitted model cache
from .fit_cache import FitCache

# Reporting and setup checks
from .report import WorkshopReport
from .environment import check_environment

# Workshop pipeline
from .workshop import WorkshopConfig, run_workshop

__all__ = [
    "SleepStudyData",
    "SleepStudyLoader",
    "create_sample_sleepstudy_data",
    "summarize_by_day",
    "subject_slopes",
    "BayesianConfig",
    "BayesianRegression",
    "ConvergenceReport",
    "PriorSpec",
    "get_custom_priors",
    "get_default_priors",
    "FitCache",
    "WorkshopReport",
    "check_environment",
    "WorkshopConfig",
    "run_workshop",
]
