"""
Plotting helpers for the sleep-deprivation workshop.

Every function returns the matplotlib Figure and, when ``save_path`` is
given, also writes it to disk (150 dpi, tight bounding box).
"""
from pathlib import Path
from typing import List, Optional, Union

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
import seaborn as sns
import arviz as az

from .data import SleepStudyData, subject_slopes

sns.set_style('whitegrid')


def _finish(fig: plt.Figure, save_path: Optional[Union[str, Path]]) -> plt.Figure:
    fig.tight_layout()
    if save_path:
        Path(save_path).parent.mkdir(parents=True, exist_ok=True)
        fig.savefig(save_path, dpi=150, bbox_inches='tight')
    return fig


def _figure_of(axes) -> plt.Figure:
    first = np.asarray(axes).reshape(-1)[0]
    return first.get_figure()


def plot_reaction_times(data: SleepStudyData,
                        save_path: Optional[Union[str, Path]] = None) -> plt.Figure:
    """Reaction time against days, one faint line per subject."""
    frame = data.frame
    fig, ax = plt.subplots(figsize=(8, 5))

    sns.lineplot(data=frame, x='Days', y='Reaction', units='Subject', estimator=None,
                 color='grey', alpha=0.35, linewidth=1, ax=ax)
    sns.scatterplot(data=frame, x='Days', y='Reaction', color='tab:blue', alpha=0.7, ax=ax)

    # Average trajectory
    daily = frame.groupby('Days')['Reaction'].mean()
    ax.plot(daily.index, daily.values, color='black', linewidth=2, label='Daily mean')

    ax.set_xlabel('Days of sleep deprivation')
    ax.set_ylabel('Average reaction time (ms)')
    ax.set_title(f'Reaction times ({data.n_subjects} subjects)')
    ax.legend(loc='upper left')
    return _finish(fig, save_path)


def plot_subject_panels(data: SleepStudyData,
                        col_wrap: int = 6,
                        save_path: Optional[Union[str, Path]] = None) -> plt.Figure:
    """One panel per subject with its least-squares line."""
    frame = data.frame
    fits = subject_slopes(data)

    grid = sns.FacetGrid(frame, col='Subject', col_wrap=min(col_wrap, data.n_subjects),
                         height=2.0, sharex=True, sharey=True)
    grid.map_dataframe(sns.scatterplot, x='Days', y='Reaction', s=15)

    days = np.array([frame['Days'].min(), frame['Days'].max()], dtype=np.float64)
    for subject, ax in grid.axes_dict.items():
        row = fits.loc[subject]
        if np.isfinite(row['slope']):
            ax.plot(days, row['intercept'] + row['slope'] * days, color='tab:red', linewidth=1)

    grid.set_titles('{col_name}')
    grid.set_axis_labels('Days', 'Reaction (ms)')
    return _finish(grid.figure, save_path)


def plot_trace(trace: az.InferenceData,
               var_names: Optional[List[str]] = None,
               save_path: Optional[Union[str, Path]] = None) -> plt.Figure:
    """Chains over iterations and their marginal densities."""
    axes = az.plot_trace(trace, var_names=var_names, compact=True, figsize=(12, 8))
    return _finish(_figure_of(axes), save_path)


def plot_posterior(trace: az.InferenceData,
                   var_names: Optional[List[str]] = None,
                   credible_interval: float = 0.95,
                   save_path: Optional[Union[str, Path]] = None) -> plt.Figure:
    """Posterior densities with the credible interval marked."""
    axes = az.plot_posterior(trace, var_names=var_names, hdi_prob=credible_interval,
                             figsize=(14, 4))
    return _finish(_figure_of(axes), save_path)


def plot_ppc(trace: az.InferenceData,
             num_pp_samples: int = 100,
             group: str = 'posterior',
             random_seed: Optional[int] = 42,
             save_path: Optional[Union[str, Path]] = None) -> plt.Figure:
    """Observed density against posterior (or prior) predictive densities."""
    if group not in ('posterior', 'prior'):
        raise ValueError(f"group must be 'posterior' or 'prior', got {group!r}")
    if f'{group}_predictive' not in trace.groups():
        raise ValueError(f"Trace has no {group}_predictive group. "
                         f"Run the {group} predictive sampling first.")
    ax = az.plot_ppc(trace, num_pp_samples=num_pp_samples, group=group,
                     random_seed=random_seed, figsize=(8, 5))
    return _finish(_figure_of(ax), save_path)


def plot_prior_posterior(prior_trace: az.InferenceData,
                         posterior_trace: az.InferenceData,
                         var_name: str,
                         save_path: Optional[Union[str, Path]] = None) -> plt.Figure:
    """Overlay of the prior and posterior density of one parameter."""
    prior = np.asarray(prior_trace.prior[var_name].values).reshape(-1)
    posterior = np.asarray(posterior_trace.posterior[var_name].values).reshape(-1)

    fig, ax = plt.subplots(figsize=(7, 4))
    sns.kdeplot(prior, ax=ax, fill=True, alpha=0.3, label='Prior')
    sns.kdeplot(posterior, ax=ax, fill=True, alpha=0.5, label='Posterior')
    ax.set_xlabel(var_name)
    ax.set_title(f'Prior vs posterior: {var_name}')
    ax.legend()
    return _finish(fig, save_path)


def plot_regression_band(data: SleepStudyData,
                         predictions: pd.DataFrame,
                         predictor: str = 'Days',
                         save_path: Optional[Union[str, Path]] = None) -> plt.Figure:
    """Data with the posterior mean regression line and its credible band."""
    frame = data.frame
    predictions = predictions.sort_values(predictor)

    fig, ax = plt.subplots(figsize=(8, 5))
    ax.scatter(frame[predictor], frame['Reaction'], color='tab:blue', alpha=0.6, s=20,
               label='Observed')
    ax.fill_between(predictions[predictor], predictions['Q_lower'], predictions['Q_upper'],
                    color='tab:orange', alpha=0.3, label='Credible band')
    ax.plot(predictions[predictor], predictions['Estimate'], color='tab:orange', linewidth=2,
            label='Posterior mean')

    ax.set_xlabel('Days of sleep deprivation')
    ax.set_ylabel('Average reaction time (ms)')
    ax.legend(loc='upper left')
    return _finish(fig, save_path)
