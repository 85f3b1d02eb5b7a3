"""
Sleepstudy Bayes — Prior Sensitivity Walkthrough
================================================
How much do the conclusions about the effect of sleep deprivation depend on
the prior for the slope?

Workflow:
1. Load (or generate) the reaction-time data
2. Fit the regression under a sceptical, a vague and an informative slope prior
3. Compare the posterior of b_Days across the fits

All fits are cached in ``fits/`` and reused on later runs.
"""

import sys

from sleepstudy_bayes import (SleepStudyLoader, create_sample_sleepstudy_data,
                              BayesianRegression, BayesianConfig, PriorSpec,
                              get_custom_priors, FitCache)


SLOPE_PRIORS = {
    'sceptical': PriorSpec(name='b', distribution='normal', params={'mu': 0.0, 'sigma': 2.0}),
    'vague': PriorSpec(name='b', distribution='normal', params={'mu': 0.0, 'sigma': 100.0}),
    'informative': PriorSpec(name='b', distribution='normal', params={'mu': 10.0, 'sigma': 5.0}),
}


def step1_load_data(data_path: str = 'data/sleepstudy.csv'):
    """Step 1: Load the data, creating the sample dataset if needed."""
    print("\n" + "="*70)
    print("STEP 1: Data")
    print("="*70)

    from pathlib import Path
    path = Path(data_path)
    if not path.exists():
        create_sample_sleepstudy_data(output_dir=path.parent, filename=path.name)
    return SleepStudyLoader(str(path.parent)).load_csv(path.name)


def step2_fit_priors(data) -> dict:
    """Step 2: One fit per slope prior, other priors as in the workshop."""
    print("\n" + "="*70)
    print("STEP 2: Fits under different slope priors")
    print("="*70)

    config = BayesianConfig(
        n_chains=4,
        n_draws=1000,
        n_tune=1000,
        progressbar=False,
    )
    cache = FitCache('fits')
    base = [p for p in get_custom_priors() if p.name != 'b']

    models = {}
    for label, slope_prior in SLOPE_PRIORS.items():
        print(f"\n[Sensitivity] Slope prior '{label}': {slope_prior.describe()}")
        model = BayesianRegression(config, priors=base + [slope_prior], cache=cache)
        model.fit(data, file=f'fit_slope_{label}')
        models[label] = model
    return models


def step3_compare(models: dict):
    """Step 3: Posterior of the slope under each prior."""
    print("\n" + "="*70)
    print("STEP 3: Posterior of b_Days")
    print("="*70)

    print(f"{'Prior':<14} {'Mean':>10} {'95% CI':>24} {'P(b > 0)':>10}")
    print("-" * 62)
    for label, model in models.items():
        s = model.summarize_posterior()['b_Days']
        p_positive = model.posterior_probability('b_Days', 0.0)
        print(f"{label:<14} {s['mean']:>10.2f} [{s['ci_lower']:>9.2f}, {s['ci_upper']:>9.2f}] "
              f"{p_positive:>10.3f}")


def main():
    data_path = sys.argv[1] if len(sys.argv) > 1 else 'data/sleepstudy.csv'
    data = step1_load_data(data_path)
    models = step2_fit_priors(data)
    step3_compare(models)


if __name__ == '__main__':
    main()
