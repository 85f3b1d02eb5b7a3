"""
Complete workshop: reaction-time data -> Bayesian regression -> HTML report

Runs the workshop sequence top to bottom:

1. Load the data (a sample dataset is generated if the file is missing)
2. Explore it with descriptive tables and plots
3. Check what the custom priors imply (prior predictive)
4. Fit the regression with default priors
5. Fit the regression with custom priors
6. Diagnose convergence
7. Posterior predictive check
8. Summarise the posterior and draw the regression band
9. Compare the two fits and write the report

Fits are cached under ``<output_dir>/fits`` so that re-running the
workshop only re-samples when priors, sampler settings or data change.

Usage:
    python -m sleepstudy_bayes.workshop [data.csv] [output_dir]
"""
import sys
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Dict, Optional

import numpy as np
import pandas as pd

from .data import (SleepStudyLoader, create_sample_sleepstudy_data,
                   summarize_by_day, subject_slopes)
from .bayesian import BayesianConfig, BayesianRegression, get_custom_priors
from .fit_cache import FitCache
from .report import WorkshopReport
from . import plotting


@dataclass
class WorkshopConfig:
    """Settings of one workshop run."""
    data_path: str = 'data/sleepstudy.csv'
    output_dir: str = 'workshop_output'
    fit_dir: str = 'fits'              # Relative to output_dir unless absolute
    min_day: Optional[int] = None      # e.g. 2 to drop the adaptation days
    credible_interval: float = 0.95
    ppc_samples: int = 100
    prior_draws: int = 500
    file_refit: str = 'on_change'
    bayes: BayesianConfig = field(default_factory=BayesianConfig)


def _load_data(config: WorkshopConfig):
    data_path = Path(config.data_path)
    if not data_path.exists():
        print(f"  Data file {data_path} not found, creating sample dataset")
        create_sample_sleepstudy_data(output_dir=data_path.parent,
                                      filename=data_path.name,
                                      seed=config.bayes.random_seed)
    loader = SleepStudyLoader(str(data_path.parent))
    return loader.load_csv(data_path.name, min_day=config.min_day)


def run_workshop(config: Optional[WorkshopConfig] = None) -> Dict:
    """Complete workshop pipeline.

    Args:
        config: Workshop settings (defaults if None)

    Returns:
        dict with 'data', 'fits', 'diagnostics', 'summaries', 'ppc',
        'comparison', 'report_path'
    """
    config = config or WorkshopConfig()
    output_dir = Path(config.output_dir)
    fig_dir = output_dir / 'figures'
    fit_dir = Path(config.fit_dir)
    if not fit_dir.is_absolute():
        fit_dir = output_dir / fit_dir

    print("\n" + "=" * 70)
    print("BAYESIAN REGRESSION WORKSHOP: reaction time ~ days of sleep deprivation")
    print("=" * 70)

    report = WorkshopReport('Bayesian regression: sleep deprivation and reaction time')
    ci_pct = f"{config.credible_interval * 100:g}"

    # Step 1: Load data
    print("\n[1/9] Loading data...")
    data = _load_data(config)
    report.add_heading('Data')
    report.add_text(
        f"{data.n_observations} reaction-time measurements from {data.n_subjects} "
        f"subjects, recorded on each day of sleep deprivation."
    )

    # Step 2: Exploration
    print("\n[2/9] Exploring the data...")
    report.add_table(summarize_by_day(data), caption='Reaction time (ms) by day')
    report.add_figure(plotting.plot_reaction_times(data, save_path=fig_dir / 'reaction_times.png'),
                      caption='Reaction times per subject with the daily mean')
    report.add_figure(plotting.plot_subject_panels(data, save_path=fig_dir / 'subjects.png'),
                      caption='Per-subject least-squares fits')
    report.add_table(subject_slopes(data), caption='No-pooling estimates per subject')

    # Fits run with diagnostics off; step 6 reports them explicitly
    fit_config = replace(config.bayes, check_convergence=False)
    cache = FitCache(fit_dir)

    default_model = BayesianRegression(fit_config, priors=None, cache=cache)
    custom_model = BayesianRegression(fit_config, priors=get_custom_priors(), cache=cache)
    slope = custom_model.slope_name

    # Step 3: Prior predictive check
    print("\n[3/9] Prior predictive check (custom priors)...")
    prior = custom_model.sample_prior_predictive(data, draws=config.prior_draws)
    report.add_heading('Priors')
    report.add_table(custom_model.describe_priors().set_index('class'),
                     caption='Custom priors')
    report.add_figure(plotting.plot_ppc(prior, num_pp_samples=min(config.ppc_samples, config.prior_draws),
                                        group='prior', random_seed=config.bayes.random_seed,
                                        save_path=fig_dir / 'prior_predictive.png'),
                      caption='Data simulated from the custom priors against the observed data')

    # Step 4: Default priors
    print("\n[4/9] Fitting with default priors...")
    default_trace = default_model.fit(data, file='fit_default', file_refit=config.file_refit)
    report.add_heading('Fit with default priors')
    report.add_table(default_model.describe_priors().set_index('class'), caption='Default priors')

    # Step 5: Custom priors
    print("\n[5/9] Fitting with custom priors...")
    custom_trace = custom_model.fit(data, file='fit_custom', file_refit=config.file_refit)

    # Step 6: Diagnostics
    print("\n[6/9] Convergence diagnostics...")
    diagnostics = {
        'default': default_model.check_convergence(default_trace),
        'custom': custom_model.check_convergence(custom_trace),
    }
    report.add_heading('Convergence')
    for name, diag in diagnostics.items():
        status = 'converged' if diag.converged else 'NOT converged'
        report.add_text(f"{name.capitalize()} priors: {status}, "
                        f"{diag.n_divergences} divergent transition(s).")
        report.add_table(diag.to_frame(), caption=f'Diagnostics ({name} priors)')
        for message in diag.warnings:
            report.add_code(message)
    report.add_figure(plotting.plot_trace(custom_trace, var_names=custom_model.parameter_names,
                                          save_path=fig_dir / 'trace_custom.png'),
                      caption='Trace plot (custom priors)')

    # Step 7: Posterior predictive check
    print("\n[7/9] Posterior predictive check...")
    ppc = custom_model.posterior_predictive_check(custom_trace, n_samples=config.ppc_samples)
    report.add_heading('Posterior predictive check')
    report.add_figure(plotting.plot_ppc(custom_trace, num_pp_samples=config.ppc_samples,
                                        random_seed=config.bayes.random_seed,
                                        save_path=fig_dir / 'ppc_custom.png'),
                      caption='Observed data against replicated data sets')
    ppc_rows = {name: {'observed': s['observed'],
                       'replicated mean': float(np.mean(s['simulated'])),
                       'p-value': s['p_value']}
                for name, s in ppc['statistics'].items()}
    report.add_table(pd.DataFrame.from_dict(ppc_rows, orient='index'), caption='Test statistics')

    # Step 8: Posterior summary
    print("\n[8/9] Summarising the posterior...")
    summaries = {
        'default': default_model.summary_table(default_trace, config.credible_interval),
        'custom': custom_model.summary_table(custom_trace, config.credible_interval),
    }
    report.add_heading('Posterior summary')
    for name, table in summaries.items():
        report.add_table(table, caption=f'Population-level effects ({name} priors, {ci_pct}% CI)')

    p_slower = custom_model.posterior_probability(slope, 0.0, 'greater', custom_trace)
    report.add_text(f"Posterior probability that reaction time increases with each "
                    f"day of sleep deprivation: {p_slower:.3f}.")
    report.add_figure(plotting.plot_posterior(custom_trace, var_names=custom_model.parameter_names,
                                              credible_interval=config.credible_interval,
                                              save_path=fig_dir / 'posterior_custom.png'),
                      caption='Posterior densities (custom priors)')
    report.add_figure(plotting.plot_prior_posterior(prior, custom_trace, slope,
                                                    save_path=fig_dir / 'prior_posterior_slope.png'),
                      caption=f'Prior and posterior of {slope}')

    days_grid = np.linspace(data.days.min(), data.days.max(), 50)
    predictions = custom_model.predict(days_grid, custom_trace, config.credible_interval)
    report.add_figure(plotting.plot_regression_band(data, predictions,
                                                    save_path=fig_dir / 'regression_band.png'),
                      caption=f'Posterior mean regression line with {ci_pct}% credible band')

    # Step 9: Comparison and report
    print("\n[9/9] Comparing fits and writing report...")
    comparison = None
    if config.bayes.compute_log_likelihood:
        comparison = BayesianRegression.compare_models({'default': default_trace,
                                                        'custom': custom_trace})
        report.add_heading('Model comparison')
        report.add_table(comparison, caption='Leave-one-out cross-validation')

    report_path = report.save(output_dir / 'report.html')

    print("\n" + "=" * 70)
    print("WORKSHOP SUMMARY")
    print("=" * 70)
    print(summaries['custom'].round(2).to_string())
    print(f"\nP({slope} > 0) = {p_slower:.3f}")
    print(f"Cache: {cache.stats()}")
    print(f"Report: {report_path}")
    print("=" * 70)

    return {
        'data': data,
        'fits': {'default': default_trace, 'custom': custom_trace},
        'diagnostics': diagnostics,
        'summaries': summaries,
        'ppc': ppc,
        'comparison': comparison,
        'report_path': report_path,
    }


if __name__ == '__main__':
    workshop_config = WorkshopConfig()
    if len(sys.argv) > 1:
        workshop_config.data_path = sys.argv[1]
    if len(sys.argv) > 2:
        workshop_config.output_dir = sys.argv[2]
    run_workshop(workshop_config)
