"""
Unit tests for the Bayesian regression framework.

These tests avoid MCMC: they exercise prior specification, model building
and everything that operates on a posterior, using synthetic InferenceData.
Sampling tests live in test_bayesian_integration.py.
"""

import numpy as np
import pandas as pd
import pytest
import arviz as az
import pymc as pm

from sleepstudy_bayes.bayesian import (
    BayesianRegression, BayesianConfig, ConvergenceReport, PriorSpec,
    get_default_priors, get_custom_priors, PRIOR_CLASSES,
)


@pytest.fixture
def regression():
    """Estimator with custom priors and quiet sampling settings."""
    return BayesianRegression(BayesianConfig(progressbar=False), priors=get_custom_priors())


class TestPriorSpecifications:
    """Test prior distribution specifications."""

    def test_default_priors_cover_all_classes(self):
        priors = get_default_priors([250.0, 260.0, 300.0])
        assert [p.name for p in priors] == list(PRIOR_CLASSES)

    def test_default_priors_data_dependent(self):
        y = np.array([1.0, 2.0, 3.0, 4.0, 100.0])
        intercept, slope, sigma = get_default_priors(y)

        assert intercept.distribution == 'student_t'
        assert intercept.params['mu'] == pytest.approx(3.0)
        # MAD is 1.48 here, so the floor of 2.5 applies
        assert intercept.params['sigma'] == pytest.approx(2.5)
        assert slope.distribution == 'flat'
        assert sigma.params['sigma'] == pytest.approx(2.5)

    def test_default_scale_uses_mad(self):
        y = np.array([200.0, 250.0, 300.0])
        intercept = get_default_priors(y)[0]
        assert intercept.params['mu'] == pytest.approx(250.0)
        assert intercept.params['sigma'] == pytest.approx(74.1)

    def test_default_priors_empty_raises(self):
        with pytest.raises(ValueError):
            get_default_priors([])

    def test_custom_priors_valid(self):
        priors = get_custom_priors()
        assert [p.name for p in priors] == list(PRIOR_CLASSES)
        for prior in priors:
            assert prior.distribution in ('normal', 'exponential')
            assert len(prior.params) > 0

    def test_describe(self):
        assert PriorSpec('b', 'normal', {'mu': 10.0, 'sigma': 5.0}).describe() == 'normal(10, 5)'
        assert (PriorSpec('Intercept', 'student_t', {'sigma': 20, 'nu': 3, 'mu': 300.5}).describe()
                == 'student_t(3, 300.5, 20)')
        assert PriorSpec('b', 'flat').describe() == 'flat()'
        bounded = PriorSpec('b', 'normal', {'mu': 0, 'sigma': 1}, bounds=(0, 50))
        assert bounded.describe() == 'normal(0, 1) T[0, 50]'

    def test_describe_marks_positive_support(self):
        sigma_default = get_default_priors([200.0, 250.0, 300.0])[2]
        assert sigma_default.describe() == 'student_t(3, 0, 74.1) T[0, ]'
        assert PriorSpec('sigma', 'normal', {'mu': 50, 'sigma': 10}).describe() == 'normal(50, 10) T[0, ]'
        assert PriorSpec('sigma', 'flat').describe() == 'flat() T[0, ]'
        assert PriorSpec('sigma', 'exponential', {'lam': 0.02}).describe() == 'exponential(0.02)'
        # Lower bound below zero is raised to zero for sigma
        bounded = PriorSpec('sigma', 'normal', {'mu': 20, 'sigma': 5}, bounds=(-5, 100))
        assert bounded.describe() == 'normal(20, 5) T[0, 100]'

    def test_describe_one_sided_bounds(self):
        spec = PriorSpec('b', 'normal', {'mu': 10, 'sigma': 5}, bounds=(0, None))
        assert spec.describe() == 'normal(10, 5) T[0, ]'

    def test_to_dict_sorted_and_float(self):
        d = PriorSpec('b', 'normal', {'sigma': 5, 'mu': 10}).to_dict()
        assert list(d['params']) == ['mu', 'sigma']
        assert isinstance(d['params']['mu'], float)
        assert d['bounds'] is None


class TestBayesianConfig:

    def test_defaults_valid(self):
        BayesianConfig().validate()

    def test_zero_tuning_allowed(self):
        BayesianConfig(n_tune=0).validate()

    @pytest.mark.parametrize('kwargs', [
        {'n_chains': 0},
        {'n_draws': 0},
        {'n_tune': -1},
        {'sampler': 'HMC'},
        {'target_accept': 1.0},
        {'rhat_threshold': 1.0},
    ])
    def test_invalid_config_raises(self, kwargs):
        with pytest.raises(ValueError):
            BayesianRegression(BayesianConfig(**kwargs))


class TestModelBuilding:
    """Model structure, without sampling."""

    def test_model_variables(self, regression, small_data):
        model = regression.build_model(small_data)
        names = set(model.named_vars)
        assert {'Intercept', 'b_Days', 'sigma', 'b_Intercept', 'Reaction', 'Days'} <= names
        assert [rv.name for rv in model.observed_RVs] == ['Reaction']

    def test_initialization_state(self, regression):
        assert regression.model is None
        assert regression.trace is None
        assert regression.parameter_names == ['b_Intercept', 'b_Days', 'sigma']

    def test_centering(self, regression, small_data):
        regression.build_model(small_data)
        assert regression._x_mean == pytest.approx(1.5)

    def test_no_centering(self, small_data):
        reg = BayesianRegression(BayesianConfig(center_predictor=False), priors=get_custom_priors())
        reg.build_model(small_data)
        assert reg._x_mean == 0.0

    def test_original_scale_intercept(self, small_data):
        # Near-degenerate priors pin the centred intercept and slope
        priors = [PriorSpec('Intercept', 'normal', {'mu': 280.0, 'sigma': 1e-6}),
                  PriorSpec('b', 'normal', {'mu': 10.0, 'sigma': 1e-6}),
                  PriorSpec('sigma', 'exponential', {'lam': 0.02})]
        model = BayesianRegression(priors=priors).build_model(small_data)
        value = pm.draw(model['b_Intercept'], random_seed=1)
        assert float(value) == pytest.approx(265.0, abs=1e-3)

    def test_default_priors_used_when_none(self, small_data):
        reg = BayesianRegression(BayesianConfig(progressbar=False))
        reg.build_model(small_data)
        table = reg.describe_priors()
        assert table['class'].tolist() == list(PRIOR_CLASSES)
        assert table.loc[table['class'] == 'b', 'prior'].item() == 'flat()'

    def test_missing_class_falls_back_with_warning(self, small_data):
        priors = [p for p in get_custom_priors() if p.name != 'sigma']
        reg = BayesianRegression(priors=priors)
        with pytest.warns(UserWarning, match="No prior for 'sigma'"):
            reg.build_model(small_data)
        assert reg.resolved_priors[2].distribution == 'student_t'

    def test_unknown_class_raises(self, small_data):
        reg = BayesianRegression(priors=[PriorSpec('slope', 'normal', {'mu': 0, 'sigma': 1})])
        with pytest.raises(ValueError, match='Unknown parameter class'):
            reg.build_model(small_data)

    def test_unknown_distribution_raises(self, small_data):
        priors = get_custom_priors()[:2] + [PriorSpec('sigma', 'cauchy', {'beta': 1})]
        with pytest.raises(ValueError, match='Unknown distribution'):
            BayesianRegression(priors=priors).build_model(small_data)

    def test_missing_prior_parameter_raises(self, small_data):
        priors = [PriorSpec('Intercept', 'normal', {'mu': 300.0})] + get_custom_priors()[1:]
        with pytest.raises(ValueError, match='missing parameter'):
            BayesianRegression(priors=priors).build_model(small_data)

    @pytest.mark.parametrize('spec', [
        PriorSpec('sigma', 'normal', {'sigma': 50.0}),
        PriorSpec('sigma', 'student_t', {'nu': 3.0, 'sigma': 50.0}),
        PriorSpec('sigma', 'halfnormal', {'sigma': 50.0}),
        PriorSpec('sigma', 'halfstudent_t', {'nu': 3.0, 'sigma': 50.0}),
        PriorSpec('sigma', 'gamma', {'alpha': 2.0, 'beta': 0.1}),
        PriorSpec('sigma', 'uniform', {'lower': 0.0, 'upper': 200.0}),
        PriorSpec('sigma', 'flat'),
    ])
    def test_sigma_priors_positive_support(self, small_data, spec):
        priors = get_custom_priors()[:2] + [spec]
        model = BayesianRegression(priors=priors).build_model(small_data)
        # Positive-support variables are sampled on a transformed scale
        assert model.rvs_to_transforms[model['sigma']] is not None

    def test_sigma_normal_keeps_location(self, small_data):
        priors = get_custom_priors()[:2] + [PriorSpec('sigma', 'normal', {'mu': 50.0, 'sigma': 10.0})]
        model = BayesianRegression(priors=priors).build_model(small_data)
        draws = pm.draw(model['sigma'], draws=2000, random_seed=1)
        assert (draws >= 0).all()
        assert draws.mean() == pytest.approx(50.0, abs=1.5)

    def test_sigma_student_t_keeps_location(self, small_data):
        priors = get_custom_priors()[:2] + [PriorSpec('sigma', 'student_t',
                                                      {'nu': 3.0, 'mu': 30.0, 'sigma': 5.0})]
        model = BayesianRegression(priors=priors).build_model(small_data)
        draws = pm.draw(model['sigma'], draws=2000, random_seed=1)
        assert (draws >= 0).all()
        assert np.median(draws) == pytest.approx(30.0, abs=1.5)

    def test_sigma_zero_mean_normal_is_half_normal(self, small_data):
        priors = get_custom_priors()[:2] + [PriorSpec('sigma', 'normal', {'mu': 0.0, 'sigma': 10.0})]
        model = BayesianRegression(priors=priors).build_model(small_data)
        draws = pm.draw(model['sigma'], draws=2000, random_seed=1)
        assert (draws >= 0).all()
        # Mean of a half-normal is sigma * sqrt(2 / pi)
        assert draws.mean() == pytest.approx(10.0 * np.sqrt(2 / np.pi), abs=0.5)

    def test_sigma_uniform_below_zero_raises(self, small_data):
        priors = get_custom_priors()[:2] + [PriorSpec('sigma', 'uniform', {'lower': -10.0, 'upper': 100.0})]
        with pytest.raises(ValueError, match='below 0'):
            BayesianRegression(priors=priors).build_model(small_data)

    def test_bounds_rejected_for_unsupported_family(self, small_data):
        priors = [get_custom_priors()[0],
                  PriorSpec('b', 'gamma', {'alpha': 2.0, 'beta': 0.2}, bounds=(0.0, 50.0)),
                  get_custom_priors()[2]]
        with pytest.raises(ValueError, match='Bounds'):
            BayesianRegression(priors=priors).build_model(small_data)

    def test_default_sigma_prior_reported_as_truncated(self, small_data):
        reg = BayesianRegression()
        reg.build_model(small_data)
        table = reg.describe_priors()
        assert table.loc[table['class'] == 'sigma', 'prior'].item().endswith('T[0, ]')

    def test_truncated_slope_prior(self, small_data):
        priors = [get_custom_priors()[0],
                  PriorSpec('b', 'normal', {'mu': 10.0, 'sigma': 5.0}, bounds=(0.0, 50.0)),
                  get_custom_priors()[2]]
        model = BayesianRegression(priors=priors).build_model(small_data)
        assert 'b_Days' in model.named_vars

    def test_predictor_column_must_exist(self, small_data):
        reg = BayesianRegression(predictor='Hours')
        with pytest.raises(ValueError, match="Column 'Hours'"):
            reg.build_model(small_data)

    def test_describe_priors_before_build_raises(self, regression):
        with pytest.raises(ValueError):
            regression.describe_priors()

    def test_prior_predictive_rejects_flat(self, small_data):
        reg = BayesianRegression()
        with pytest.raises(ValueError, match='flat'):
            reg.sample_prior_predictive(small_data, draws=10)


class TestPosteriorSummaries:
    """Summaries computed from a synthetic posterior."""

    def test_no_trace_raises(self, regression):
        with pytest.raises(ValueError, match='No trace'):
            regression.summarize_posterior()

    def test_summary_structure(self, regression, synthetic_trace):
        summary = regression.summarize_posterior(synthetic_trace)
        assert set(summary) == {'b_Intercept', 'b_Days', 'sigma'}
        for stats in summary.values():
            assert {'mean', 'median', 'std', 'ci_lower', 'ci_upper',
                    'rhat', 'ess_bulk', 'ess_tail'} <= set(stats)
            assert stats['ci_lower'] < stats['median'] < stats['ci_upper']

    def test_summary_values(self, regression, synthetic_trace):
        s = regression.summarize_posterior(synthetic_trace)['b_Days']
        assert s['mean'] == pytest.approx(10.0, abs=0.1)
        assert s['std'] == pytest.approx(1.0, abs=0.1)
        # Equal-tailed 95% interval of N(10, 1)
        assert s['ci_lower'] == pytest.approx(8.04, abs=0.2)
        assert s['ci_upper'] == pytest.approx(11.96, abs=0.2)

    def test_interval_matches_quantiles(self, regression, synthetic_trace):
        draws = synthetic_trace.posterior['sigma'].values.reshape(-1)
        s = regression.summarize_posterior(synthetic_trace, credible_interval=0.9)['sigma']
        assert s['ci_lower'] == pytest.approx(np.quantile(draws, 0.05))
        assert s['ci_upper'] == pytest.approx(np.quantile(draws, 0.95))

    def test_narrower_interval(self, regression, synthetic_trace):
        wide = regression.summarize_posterior(synthetic_trace, 0.95)['b_Days']
        narrow = regression.summarize_posterior(synthetic_trace, 0.5)['b_Days']
        assert narrow['ci_upper'] - narrow['ci_lower'] < wide['ci_upper'] - wide['ci_lower']

    @pytest.mark.parametrize('ci', [0.0, 1.0, 1.5])
    def test_invalid_interval_raises(self, regression, synthetic_trace, ci):
        with pytest.raises(ValueError):
            regression.summarize_posterior(synthetic_trace, ci)

    def test_single_chain_has_no_rhat(self, regression, trace_factory):
        trace = trace_factory(chains=1)
        assert regression.summarize_posterior(trace)['b_Days']['rhat'] is None

    def test_summary_table_columns(self, regression, synthetic_trace):
        table = regression.summary_table(synthetic_trace)
        assert list(table.columns) == ['Estimate', 'Est.Error', 'l-95% CI', 'u-95% CI',
                                       'Rhat', 'Bulk_ESS', 'Tail_ESS']
        assert list(table.index) == ['b_Intercept', 'b_Days', 'sigma']

    def test_summary_table_interval_label(self, regression, synthetic_trace):
        table = regression.summary_table(synthetic_trace, credible_interval=0.9)
        assert 'l-90% CI' in table.columns


class TestConvergence:

    def test_well_mixed_trace_converges(self, regression, synthetic_trace):
        report = regression.check_convergence(synthetic_trace)
        assert isinstance(report, ConvergenceReport)
        assert report.converged
        assert report.n_divergences == 0
        assert all(r < 1.01 for r in report.rhat.values())
        assert report.warnings == []

    def test_unmixed_chains_flagged(self, regression, trace_factory):
        trace = trace_factory(shift_chains=50.0)
        with pytest.warns(UserWarning, match='R-hat'):
            report = regression.check_convergence(trace)
        assert not report.converged
        assert report.rhat['b_Intercept'] > 1.01

    def test_divergences_flagged(self, regression, trace_factory):
        trace = trace_factory(n_divergent=3)
        with pytest.warns(UserWarning, match='divergent'):
            report = regression.check_convergence(trace)
        assert report.n_divergences == 3
        assert not report.converged

    def test_low_ess_flagged(self, regression, trace_factory):
        trace = trace_factory(chains=2, draws=50)
        with pytest.warns(UserWarning, match='effective sample size'):
            report = regression.check_convergence(trace)
        assert not report.converged

    def test_report_frame(self, regression, synthetic_trace):
        frame = regression.check_convergence(synthetic_trace).to_frame()
        assert list(frame.columns) == ['Rhat', 'Bulk_ESS', 'Tail_ESS']
        assert 'b_Days' in frame.index


class TestPredictions:

    def test_expected_values(self, regression, synthetic_trace):
        pred = regression.predict([0, 10], synthetic_trace)
        assert list(pred.columns) == ['Days', 'Estimate', 'Est.Error', 'Q_lower', 'Q_upper']
        assert pred['Estimate'].iloc[0] == pytest.approx(250.0, abs=1.0)
        assert pred['Estimate'].iloc[1] == pytest.approx(350.0, abs=1.0)

    def test_noise_widens_interval(self, regression, synthetic_trace):
        mean_only = regression.predict([5], synthetic_trace)
        with_noise = regression.predict([5], synthetic_trace, include_noise=True)
        width = lambda df: (df['Q_upper'] - df['Q_lower']).iloc[0]
        assert width(with_noise) > width(mean_only)

    def test_scalar_day(self, regression, synthetic_trace):
        assert len(regression.predict(3, synthetic_trace)) == 1

    def test_missing_variable_raises(self, regression):
        trace = az.from_dict(posterior={'sigma': np.ones((2, 10))})
        with pytest.raises(ValueError, match='missing'):
            regression.predict([0], trace)

    def test_posterior_probability(self, regression, synthetic_trace):
        assert regression.posterior_probability('b_Days', 0.0, trace=synthetic_trace) == 1.0
        assert regression.posterior_probability('b_Days', 0.0, 'less', synthetic_trace) == 0.0
        p = regression.posterior_probability('b_Days', 10.0, trace=synthetic_trace)
        assert 0.4 < p < 0.6

    def test_posterior_probability_errors(self, regression, synthetic_trace):
        with pytest.raises(ValueError, match='Unknown parameter'):
            regression.posterior_probability('b_Hours', trace=synthetic_trace)
        with pytest.raises(ValueError, match='direction'):
            regression.posterior_probability('b_Days', direction='above', trace=synthetic_trace)


class TestModelComparison:

    def test_needs_two_fits(self, synthetic_trace):
        with pytest.raises(ValueError, match='two fits'):
            BayesianRegression.compare_models({'only': synthetic_trace})

    def test_needs_log_likelihood(self, synthetic_trace, trace_factory):
        with pytest.raises(ValueError, match='log_likelihood'):
            BayesianRegression.compare_models({'a': synthetic_trace, 'b': trace_factory(seed=1)})


class TestBayesianIO:

    def test_save_without_trace_raises(self, regression, tmp_path):
        with pytest.raises(ValueError):
            regression.save_trace(str(tmp_path / 'trace.nc'))

    def test_save_load_roundtrip(self, regression, synthetic_trace, tmp_path):
        regression.trace = synthetic_trace
        path = str(tmp_path / 'trace.nc')
        regression.save_trace(path)
        loaded = BayesianRegression.load_trace(path)
        np.testing.assert_allclose(loaded.posterior['sigma'].values,
                                   synthetic_trace.posterior['sigma'].values)
