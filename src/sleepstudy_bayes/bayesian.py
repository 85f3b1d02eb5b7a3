"""
Sleepstudy Bayes — Bayesian Linear Regression
=============================================
Bayesian regression of reaction time on days of sleep deprivation via MCMC.

Key Features:
- Prior specification by parameter class (Intercept, b, sigma)
- Data-dependent default priors and informative custom priors
- MCMC sampling (NUTS by default) with reproducible seeding
- Convergence diagnostics (R-hat, bulk/tail ESS, divergences)
- Posterior summaries with equal-tailed credible intervals
- Posterior predictive checks and predictions along the days axis
- Model comparison via LOO

Model:
    Reaction_i ~ Normal(mu_i, sigma)
    mu_i = Intercept + b_Days * (Days_i - mean(Days))

    The Intercept prior refers to the centred predictor (expected reaction
    time at the average day); ``b_Intercept`` is the intercept on the
    original scale (expected reaction time at day 0).

Usage:
    from sleepstudy_bayes.data import SleepStudyLoader
    from sleepstudy_bayes.bayesian import BayesianRegression, get_custom_priors

    data = SleepStudyLoader('data').load_csv('sleepstudy.csv')

    default_fit = BayesianRegression()
    trace = default_fit.fit(data, file='fit_default')

    custom_fit = BayesianRegression(priors=get_custom_priors())
    trace = custom_fit.fit(data, file='fit_custom')

    summary = custom_fit.summarize_posterior()
    ppc = custom_fit.posterior_predictive_check()
"""

import numpy as np
import pandas as pd
from typing import Dict, List, Optional, Sequence, Tuple, Union
from dataclasses import dataclass, field
import warnings

import pymc as pm
import arviz as az

from .data import SleepStudyData
from .fit_cache import FitCache


# ═══════════════════════════════════════════════════════════════
# Configuration
# ═══════════════════════════════════════════════════════════════

PRIOR_CLASSES = ('Intercept', 'b', 'sigma')

# Parameter names of each distribution, in display order
DISTRIBUTION_PARAMS = {
    'normal': ('mu', 'sigma'),
    'student_t': ('nu', 'mu', 'sigma'),
    'halfnormal': ('sigma',),
    'halfstudent_t': ('nu', 'sigma'),
    'exponential': ('lam',),
    'uniform': ('lower', 'upper'),
    'gamma': ('alpha', 'beta'),
    'flat': (),
}

SAMPLERS = ('NUTS', 'Metropolis', 'Slice')

# Parameter classes whose values must be >= 0
POSITIVE_CLASSES = ('sigma',)

# Families restricted to [0, inf) on a positive class
FOLDED_DISTRIBUTIONS = ('normal', 'student_t', 'flat')

BOUNDED_DISTRIBUTIONS = ('normal', 'student_t')


@dataclass
class PriorSpec:
    """Prior distribution for one parameter class."""
    name: str  # 'Intercept', 'b' (slope) or 'sigma'
    distribution: str  # key of DISTRIBUTION_PARAMS
    params: Dict = field(default_factory=dict)  # e.g. {'mu': 10, 'sigma': 5}
    bounds: Optional[Tuple[Optional[float], Optional[float]]] = None  # (lower, upper), None = open

    def to_dict(self) -> Dict:
        return {
            'name': self.name,
            'distribution': self.distribution,
            'params': {k: float(v) for k, v in sorted(self.params.items())},
            'bounds': list(self.bounds) if self.bounds else None,
        }

    def describe(self) -> str:
        """Compact text form, e.g. ``normal(10, 5)`` or ``student_t(3, 0, 2.5) T[0, ]``."""
        order = DISTRIBUTION_PARAMS.get(self.distribution, tuple(sorted(self.params)))
        args = ', '.join(f"{self.params[k]:g}" for k in order if k in self.params)
        text = f"{self.distribution}({args})"
        lower, upper = _support_bounds(self, self.name in POSITIVE_CLASSES)
        if lower is not None or upper is not None:
            fmt = lambda v: '' if v is None else f"{v:g}"
            text += f" T[{fmt(lower)}, {fmt(upper)}]"
        return text


def _support_bounds(spec: PriorSpec, positive: bool) -> Tuple[Optional[float], Optional[float]]:
    """Truncation bounds of the variable built from ``spec``."""
    lower, upper = spec.bounds if spec.bounds else (None, None)
    if positive and spec.distribution in FOLDED_DISTRIBUTIONS:
        lower = 0.0 if lower is None else max(float(lower), 0.0)
    return lower, upper


@dataclass
class BayesianConfig:
    """Configuration for Bayesian MCMC inference."""
    n_chains: int = 4              # Number of MCMC chains
    n_draws: int = 1000            # Samples per chain (post-warmup)
    n_tune: int = 1000             # Warmup / tuning steps
    target_accept: float = 0.9     # Target acceptance rate (NUTS)
    sampler: str = 'NUTS'          # Sampler: 'NUTS', 'Metropolis', 'Slice'

    # Computational
    cores: int = 1                 # Sequential chains by default
    progressbar: bool = True       # Show progress bar
    random_seed: int = 42          # Single seed for every sampling call

    # Model
    center_predictor: bool = True  # Intercept prior refers to mean(Days)
    compute_log_likelihood: bool = True  # Needed for LOO comparison

    # Diagnostics
    check_convergence: bool = True  # Check R-hat, ESS and divergences
    rhat_threshold: float = 1.01    # R-hat convergence threshold
    min_ess: float = 400.0          # Minimum bulk/tail ESS

    def validate(self):
        for name in ('n_chains', 'n_draws', 'cores'):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be >= 1, got {getattr(self, name)}")
        if self.n_tune < 0:
            raise ValueError(f"n_tune must be >= 0, got {self.n_tune}")
        if self.sampler not in SAMPLERS:
            raise ValueError(f"Unknown sampler: {self.sampler!r} (expected one of {SAMPLERS})")
        if not 0.0 < self.target_accept < 1.0:
            raise ValueError(f"target_accept must be in (0, 1), got {self.target_accept}")
        if self.rhat_threshold <= 1.0:
            raise ValueError(f"rhat_threshold must be > 1, got {self.rhat_threshold}")


def _default_scale(y: np.ndarray) -> float:
    """Scaled median absolute deviation, floored at 2.5."""
    mad = 1.4826 * np.median(np.abs(y - np.median(y)))
    return round(max(float(mad), 2.5), 1)


def get_default_priors(reaction: Sequence[float]) -> List[PriorSpec]:
    """Get data-dependent default priors.

    The intercept and residual scale get Student-t priors centred on the
    data's median and scaled by its MAD; the slope gets an improper flat
    prior. These are weakly informative and let the data dominate.
    """
    y = np.asarray(reaction, dtype=np.float64)
    if y.size == 0:
        raise ValueError("Cannot derive default priors from empty data")

    scale = _default_scale(y)
    return [
        PriorSpec(
            name='Intercept',
            distribution='student_t',
            params={'nu': 3.0, 'mu': round(float(np.median(y)), 1), 'sigma': scale},
        ),
        PriorSpec(
            name='b',
            distribution='flat',
        ),
        PriorSpec(
            name='sigma',
            distribution='student_t',
            params={'nu': 3.0, 'mu': 0.0, 'sigma': scale},
        ),
    ]


def get_custom_priors() -> List[PriorSpec]:
    """Get the workshop's informative priors.

    Reaction times of rested adults sit around 250-350 ms, and each day
    without sleep is expected to slow responses by roughly ten
    milliseconds. The residual scale is expected in the tens of ms.
    """
    return [
        PriorSpec(
            name='Intercept',
            distribution='normal',
            params={'mu': 300.0, 'sigma': 50.0},
        ),
        PriorSpec(
            name='b',
            distribution='normal',
            params={'mu': 10.0, 'sigma': 5.0},
        ),
        PriorSpec(
            name='sigma',
            distribution='exponential',
            params={'lam': 0.02},
        ),
    ]


@dataclass
class ConvergenceReport:
    """Convergence diagnostics of one fit."""
    rhat: Dict[str, float]
    ess_bulk: Dict[str, float]
    ess_tail: Dict[str, float]
    n_divergences: int
    converged: bool
    warnings: List[str] = field(default_factory=list)

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame({
            'Rhat': self.rhat,
            'Bulk_ESS': self.ess_bulk,
            'Tail_ESS': self.ess_tail,
        })


def _scalar(dataset, var: str) -> float:
    value = np.asarray(dataset[var].values, dtype=np.float64)
    return float(value.reshape(-1)[0]) if value.size else float('nan')


# ═══════════════════════════════════════════════════════════════
# Bayesian Regression — Main Class
# ═══════════════════════════════════════════════════════════════

class BayesianRegression:
    """Bayesian linear regression of reaction time on days via MCMC.

    Uses PyMC for probabilistic programming and NUTS sampling; ArviZ for
    diagnostics and summaries.

    Workflow:
    1. Fit with default (weakly informative) priors
    2. Fit with custom (informative) priors
    3. Check convergence: R-hat close to 1, enough effective samples,
       no divergent transitions
    4. Posterior predictive check: does simulated data look like the data?
    5. Summarise the posterior and compare the fits
    """

    def __init__(self,
                 config: Optional[BayesianConfig] = None,
                 priors: Optional[List[PriorSpec]] = None,
                 response: str = 'Reaction',
                 predictor: str = 'Days',
                 cache: Optional[FitCache] = None):
        """
        Args:
            config: Bayesian MCMC configuration
            priors: Prior specifications (data-dependent defaults if None)
            response: Response column of the data frame
            predictor: Predictor column of the data frame
            cache: FitCache used when fit() is given a file
        """
        self.config = config or BayesianConfig()
        self.config.validate()
        self.priors = list(priors) if priors is not None else None
        self.response = response
        self.predictor = predictor
        self.cache = cache

        # Populated by build_model() / fit()
        self.model = None
        self.trace = None
        self.data = None
        self.resolved_priors: List[PriorSpec] = []
        self._x_mean = 0.0

        prior_text = 'default' if self.priors is None else f"{len(self.priors)} custom"
        print(f"[Bayesian] Initialized with {prior_text} priors")
        print(f"[Bayesian] Sampler: {self.config.sampler}, Chains: {self.config.n_chains}")

    @property
    def slope_name(self) -> str:
        return f"b_{self.predictor}"

    @property
    def parameter_names(self) -> List[str]:
        return ['b_Intercept', self.slope_name, 'sigma']

    def _get_xy(self, data: SleepStudyData) -> Tuple[np.ndarray, np.ndarray]:
        frame = data.frame
        for col in (self.predictor, self.response):
            if col not in frame.columns:
                raise ValueError(f"Column '{col}' not found in data")
        x = frame[self.predictor].to_numpy(dtype=np.float64)
        y = frame[self.response].to_numpy(dtype=np.float64)
        if len(y) < 2:
            raise ValueError("At least two observations are required")
        return x, y

    def _resolve_priors(self, y: np.ndarray) -> Dict[str, PriorSpec]:
        defaults = {p.name: p for p in get_default_priors(y)}
        if self.priors is None:
            return defaults

        resolved = {}
        for prior in self.priors:
            if prior.name not in PRIOR_CLASSES:
                raise ValueError(f"Unknown parameter class: {prior.name!r} "
                                 f"(expected one of {PRIOR_CLASSES})")
            resolved[prior.name] = prior

        for name in PRIOR_CLASSES:
            if name not in resolved:
                warnings.warn(f"No prior for '{name}', using default {defaults[name].describe()}")
                resolved[name] = defaults[name]
        return resolved

    @staticmethod
    def _make_prior(var_name: str, spec: PriorSpec, positive: bool = False):
        """Create the PyMC random variable for a prior specification.

        Must be called inside a model context. With ``positive`` the normal,
        Student-t and flat families are restricted to values >= 0: zero-centred
        normal and Student-t priors become their half versions, others are
        truncated at 0.
        """
        dist = spec.distribution
        if dist not in DISTRIBUTION_PARAMS:
            raise ValueError(f"Unknown distribution: {dist}")

        required = list(DISTRIBUTION_PARAMS[dist])
        if positive and dist in ('normal', 'student_t'):
            required.remove('mu')
        missing = [k for k in required if k not in spec.params]
        if missing:
            raise ValueError(f"Prior for '{spec.name}' ({dist}) is missing parameter(s) {missing}")
        if spec.bounds and dist not in BOUNDED_DISTRIBUTIONS:
            raise ValueError(f"Bounds are only supported for {BOUNDED_DISTRIBUTIONS} priors, "
                             f"got {dist} for '{spec.name}'")
        p = spec.params

        if positive and dist == 'uniform' and p['lower'] < 0:
            raise ValueError(f"Prior for '{spec.name}' must not extend below 0, "
                             f"got {spec.describe()}")

        lower, upper = _support_bounds(spec, positive)

        if dist in ('normal', 'student_t'):
            mu = p.get('mu', 0.0)
            if positive and spec.bounds is None and mu == 0:
                if dist == 'normal':
                    return pm.HalfNormal(var_name, sigma=p['sigma'])
                return pm.HalfStudentT(var_name, nu=p['nu'], sigma=p['sigma'])
            if dist == 'normal':
                if lower is None and upper is None:
                    return pm.Normal(var_name, mu=mu, sigma=p['sigma'])
                return pm.TruncatedNormal(var_name, mu=mu, sigma=p['sigma'],
                                          lower=lower, upper=upper)
            if lower is None and upper is None:
                return pm.StudentT(var_name, nu=p['nu'], mu=mu, sigma=p['sigma'])
            return pm.Truncated(var_name, pm.StudentT.dist(nu=p['nu'], mu=mu, sigma=p['sigma']),
                                lower=lower, upper=upper)

        elif dist == 'halfnormal':
            return pm.HalfNormal(var_name, sigma=p['sigma'])

        elif dist == 'halfstudent_t':
            return pm.HalfStudentT(var_name, nu=p['nu'], sigma=p['sigma'])

        elif dist == 'exponential':
            return pm.Exponential(var_name, lam=p['lam'])

        elif dist == 'uniform':
            return pm.Uniform(var_name, lower=p['lower'], upper=p['upper'])

        elif dist == 'gamma':
            return pm.Gamma(var_name, alpha=p['alpha'], beta=p['beta'])

        # flat
        if positive:
            return pm.HalfFlat(var_name)
        return pm.Flat(var_name)

    def build_model(self, data: SleepStudyData) -> pm.Model:
        """Build the PyMC model with priors and likelihood.

        Args:
            data: Validated reaction-time observations

        Returns:
            PyMC model ready for sampling
        """
        x, y = self._get_xy(data)
        priors = self._resolve_priors(y)
        self.resolved_priors = [priors[name] for name in PRIOR_CLASSES]
        self._x_mean = float(x.mean()) if self.config.center_predictor else 0.0

        coords = {'obs_id': np.arange(len(y))}
        with pm.Model(coords=coords) as model:
            x_data = pm.Data(self.predictor, x, dims='obs_id')

            intercept = self._make_prior('Intercept', priors['Intercept'])
            slope = self._make_prior(self.slope_name, priors['b'])
            sigma = self._make_prior('sigma', priors['sigma'], positive=True)

            # Intercept on the original scale (expected reaction at day 0)
            pm.Deterministic('b_Intercept', intercept - slope * self._x_mean)

            mu = intercept + slope * (x_data - self._x_mean)
            pm.Normal(self.response, mu=mu, sigma=sigma, observed=y, dims='obs_id')

        self.model = model
        self.data = data
        return model

    def describe_priors(self) -> pd.DataFrame:
        """Table of the priors in effect (after build_model)."""
        if not self.resolved_priors:
            raise ValueError("No model built yet. Run build_model() or fit() first.")
        return pd.DataFrame({
            'class': [p.name for p in self.resolved_priors],
            'prior': [p.describe() for p in self.resolved_priors],
        })

    def sample_prior_predictive(self, data: SleepStudyData, draws: int = 500) -> az.InferenceData:
        """Draw from the priors and the prior predictive distribution.

        Flat priors are improper and cannot be sampled, so this requires
        proper priors for every parameter class.
        """
        model = self.build_model(data)
        flat = [p.name for p in self.resolved_priors if p.distribution == 'flat']
        if flat:
            raise ValueError(f"Cannot sample from flat prior(s) on {flat}; specify proper priors")

        print(f"[Bayesian] Sampling {draws} prior predictive draws...")
        with model:
            prior = pm.sample_prior_predictive(draws=draws, random_seed=self.config.random_seed)
        return prior

    def _sampler_kwargs(self) -> Dict:
        if self.config.sampler == 'NUTS':
            return {'target_accept': self.config.target_accept}
        elif self.config.sampler == 'Metropolis':
            return {'step': pm.Metropolis()}
        return {'step': pm.Slice()}

    def fit(self,
            data: SleepStudyData,
            file: Optional[str] = None,
            file_refit: str = 'on_change') -> az.InferenceData:
        """Fit the regression by MCMC.

        Args:
            data: Validated reaction-time observations
            file: Cache the fit under this name (reused on later runs)
            file_refit: 'never', 'on_change' or 'always' (see FitCache.get)

        Returns:
            arviz.InferenceData with posterior samples and diagnostics
        """
        model = self.build_model(data)
        print(f"[Bayesian] Priors: " +
              ', '.join(f"{p.name} ~ {p.describe()}" for p in self.resolved_priors))

        signature = None
        if file is not None:
            if self.cache is None:
                self.cache = FitCache()
            signature = FitCache.fit_signature(self.resolved_priors, self.config, data)
            cached = self.cache.get(file, signature, refit=file_refit)
            if cached is not None:
                self.trace = cached
                if self.config.check_convergence:
                    self.check_convergence(cached)
                return cached

        with model:
            print(f"[Bayesian] Starting MCMC sampling...")
            print(f"  Chains: {self.config.n_chains}")
            print(f"  Draws per chain: {self.config.n_draws}")
            print(f"  Tuning steps: {self.config.n_tune}")

            idata_kwargs = {'log_likelihood': True} if self.config.compute_log_likelihood else None

            self.trace = pm.sample(
                draws=self.config.n_draws,
                tune=self.config.n_tune,
                chains=self.config.n_chains,
                cores=self.config.cores,
                progressbar=self.config.progressbar,
                random_seed=self.config.random_seed,
                return_inferencedata=True,
                idata_kwargs=idata_kwargs,
                **self._sampler_kwargs()
            )

        if file is not None:
            self.cache.put(file, self.trace, signature)

        if self.config.check_convergence:
            self.check_convergence(self.trace)

        print("[Bayesian] Sampling complete!")
        return self.trace

    def _require_trace(self, trace: Optional[az.InferenceData]) -> az.InferenceData:
        if trace is None:
            trace = self.trace
        if trace is None:
            raise ValueError("No trace available. Run fit() first.")
        return trace

    def _param_names(self, trace: az.InferenceData) -> List[str]:
        names = [v for v in self.parameter_names if v in trace.posterior.data_vars]
        return names or list(trace.posterior.data_vars)

    def check_convergence(self, trace: Optional[az.InferenceData] = None) -> ConvergenceReport:
        """Check MCMC convergence using R-hat, effective sample size and divergences."""
        trace = self._require_trace(trace)
        var_names = self._param_names(trace)

        print("\n[Bayesian] Convergence Diagnostics:")
        messages = []

        # R-hat needs at least two chains
        n_chains = trace.posterior.sizes['chain']
        if n_chains > 1:
            rhat_ds = az.rhat(trace, var_names=var_names)
            rhat = {v: _scalar(rhat_ds, v) for v in var_names}
        else:
            rhat = {v: float('nan') for v in var_names}
            messages.append("R-hat unavailable with a single chain")

        ess_bulk_ds = az.ess(trace, var_names=var_names, method='bulk')
        ess_tail_ds = az.ess(trace, var_names=var_names, method='tail')
        ess_bulk = {v: _scalar(ess_bulk_ds, v) for v in var_names}
        ess_tail = {v: _scalar(ess_tail_ds, v) for v in var_names}

        print(f"  R-hat (target < {self.config.rhat_threshold}):")
        for var in var_names:
            ok = np.isnan(rhat[var]) or rhat[var] < self.config.rhat_threshold
            status = "✓" if ok else "✗ WARNING"
            print(f"    {var}: {rhat[var]:.4f} {status}")
            if not ok:
                messages.append(f"R-hat for {var} is {rhat[var]:.3f} "
                                f"(>= {self.config.rhat_threshold})")

        print(f"\n  Effective Sample Size (bulk / tail, target >= {self.config.min_ess:.0f}):")
        for var in var_names:
            ok = min(ess_bulk[var], ess_tail[var]) >= self.config.min_ess
            status = "✓" if ok else "⚠ Low"
            print(f"    {var}: {ess_bulk[var]:.0f} / {ess_tail[var]:.0f} {status}")
            if not ok:
                messages.append(f"Low effective sample size for {var} "
                                f"(bulk {ess_bulk[var]:.0f}, tail {ess_tail[var]:.0f})")

        n_divergences = 0
        if 'sample_stats' in trace.groups() and 'diverging' in trace.sample_stats:
            n_divergences = int(np.asarray(trace.sample_stats['diverging'].values).sum())
        print(f"\n  Divergent transitions: {n_divergences}")
        if n_divergences > 0:
            messages.append(f"{n_divergences} divergent transition(s) after warmup; "
                            f"consider increasing target_accept")

        converged = not any(m for m in messages if not m.startswith("R-hat unavailable"))
        for message in messages:
            warnings.warn(f"[Bayesian] {message}")

        return ConvergenceReport(
            rhat=rhat,
            ess_bulk=ess_bulk,
            ess_tail=ess_tail,
            n_divergences=n_divergences,
            converged=converged,
            warnings=messages,
        )

    def summarize_posterior(self,
                            trace: Optional[az.InferenceData] = None,
                            credible_interval: float = 0.95) -> Dict:
        """Generate summary statistics from posterior.

        Args:
            trace: InferenceData (uses self.trace if None)
            credible_interval: Credible interval width (0.95 = 95% CI)

        Returns:
            Dict with mean, median, std, equal-tailed CI, R-hat and ESS
            for each parameter
        """
        if not 0.0 < credible_interval < 1.0:
            raise ValueError(f"credible_interval must be in (0, 1), got {credible_interval}")
        trace = self._require_trace(trace)
        var_names = self._param_names(trace)

        lower_q = (1.0 - credible_interval) / 2.0
        upper_q = 1.0 - lower_q

        n_chains = trace.posterior.sizes['chain']
        rhat = az.rhat(trace, var_names=var_names) if n_chains > 1 else None
        ess_bulk = az.ess(trace, var_names=var_names, method='bulk')
        ess_tail = az.ess(trace, var_names=var_names, method='tail')

        summary = {}
        for var in var_names:
            draws = np.asarray(trace.posterior[var].values, dtype=np.float64).reshape(-1)
            summary[var] = {
                'mean': float(np.mean(draws)),
                'median': float(np.median(draws)),
                'std': float(np.std(draws, ddof=1)),
                'ci_lower': float(np.quantile(draws, lower_q)),
                'ci_upper': float(np.quantile(draws, upper_q)),
                'rhat': _scalar(rhat, var) if rhat is not None else None,
                'ess_bulk': _scalar(ess_bulk, var),
                'ess_tail': _scalar(ess_tail, var),
            }

        return summary

    def summary_table(self,
                      trace: Optional[az.InferenceData] = None,
                      credible_interval: float = 0.95) -> pd.DataFrame:
        """Posterior summary as a table with brms-style column names."""
        summary = self.summarize_posterior(trace, credible_interval)
        pct = f"{credible_interval * 100:g}"
        rows = {
            var: {
                'Estimate': s['mean'],
                'Est.Error': s['std'],
                f'l-{pct}% CI': s['ci_lower'],
                f'u-{pct}% CI': s['ci_upper'],
                'Rhat': s['rhat'] if s['rhat'] is not None else np.nan,
                'Bulk_ESS': s['ess_bulk'],
                'Tail_ESS': s['ess_tail'],
            }
            for var, s in summary.items()
        }
        return pd.DataFrame.from_dict(rows, orient='index')

    def posterior_predictive_check(self,
                                   trace: Optional[az.InferenceData] = None,
                                   data: Optional[SleepStudyData] = None,
                                   n_samples: Optional[int] = None) -> Dict:
        """Run posterior predictive checks.

        Simulates replicated data sets from the posterior and compares test
        statistics (mean, sd, min, max) to the observed data. The trace is
        extended with a ``posterior_predictive`` group.

        Returns:
            Dict with 'simulated' [n_draws, n_obs], 'observed' [n_obs] and
            'statistics' {name: {'observed', 'simulated', 'p_value'}}
        """
        trace = self._require_trace(trace)
        if data is not None:
            self.build_model(data)
        if self.model is None or self.data is None:
            raise ValueError("No model available. Run fit() or pass data.")

        _, observed = self._get_xy(self.data)

        print("[Bayesian] Running posterior predictive check...")
        with self.model:
            ppc = pm.sample_posterior_predictive(
                trace,
                random_seed=self.config.random_seed,
                progressbar=False,
                extend_inferencedata=False,
            )
        trace.extend(ppc, join='right')

        simulated = np.asarray(ppc.posterior_predictive[self.response].values, dtype=np.float64)
        simulated = simulated.reshape(-1, simulated.shape[-1])

        if n_samples is not None and n_samples < simulated.shape[0]:
            rng = np.random.default_rng(self.config.random_seed)
            idx = rng.choice(simulated.shape[0], size=n_samples, replace=False)
            simulated = simulated[np.sort(idx)]

        test_stats = {
            'mean': lambda a, axis=None: np.mean(a, axis=axis),
            'sd': lambda a, axis=None: np.std(a, axis=axis, ddof=1),
            'min': lambda a, axis=None: np.min(a, axis=axis),
            'max': lambda a, axis=None: np.max(a, axis=axis),
        }

        statistics = {}
        for name, func in test_stats.items():
            t_obs = float(func(observed))
            t_rep = func(simulated, axis=1)
            statistics[name] = {
                'observed': t_obs,
                'simulated': t_rep,
                'p_value': float(np.mean(t_rep >= t_obs)),
            }

        print(f"  {'Statistic':<10} {'Observed':>10} {'Replicated':>12} {'p':>6}")
        for name, s in statistics.items():
            print(f"  {name:<10} {s['observed']:>10.2f} {np.mean(s['simulated']):>12.2f} "
                  f"{s['p_value']:>6.2f}")

        return {
            'simulated': simulated,
            'observed': observed,
            'statistics': statistics,
        }

    def predict(self,
                days: Union[float, Sequence[float], np.ndarray],
                trace: Optional[az.InferenceData] = None,
                credible_interval: float = 0.95,
                include_noise: bool = False) -> pd.DataFrame:
        """Posterior expected (or predicted) reaction time at given days.

        Args:
            days: Day values to predict at
            trace: InferenceData (uses self.trace if None)
            credible_interval: Credible interval width
            include_noise: Add residual noise (posterior predictive) instead
                of returning the expected value only

        Returns:
            DataFrame with columns <predictor>, Estimate, Est.Error,
            Q_lower, Q_upper
        """
        if not 0.0 < credible_interval < 1.0:
            raise ValueError(f"credible_interval must be in (0, 1), got {credible_interval}")
        trace = self._require_trace(trace)
        posterior = trace.posterior
        needed = ['b_Intercept', self.slope_name] + (['sigma'] if include_noise else [])
        missing = [v for v in needed if v not in posterior.data_vars]
        if missing:
            raise ValueError(f"Posterior is missing variable(s) {missing}")

        days = np.atleast_1d(np.asarray(days, dtype=np.float64))
        intercept = np.asarray(posterior['b_Intercept'].values, dtype=np.float64).reshape(-1)
        slope = np.asarray(posterior[self.slope_name].values, dtype=np.float64).reshape(-1)
        draws = intercept[:, None] + slope[:, None] * days[None, :]

        if include_noise:
            sigma = np.asarray(posterior['sigma'].values, dtype=np.float64).reshape(-1)
            rng = np.random.default_rng(self.config.random_seed)
            draws = draws + rng.standard_normal(draws.shape) * sigma[:, None]

        lower_q = (1.0 - credible_interval) / 2.0
        return pd.DataFrame({
            self.predictor: days,
            'Estimate': draws.mean(axis=0),
            'Est.Error': draws.std(axis=0, ddof=1),
            'Q_lower': np.quantile(draws, lower_q, axis=0),
            'Q_upper': np.quantile(draws, 1.0 - lower_q, axis=0),
        })

    def posterior_probability(self,
                              var_name: str,
                              threshold: float = 0.0,
                              direction: str = 'greater',
                              trace: Optional[az.InferenceData] = None) -> float:
        """Posterior probability that a parameter exceeds (or falls below) a threshold."""
        trace = self._require_trace(trace)
        if var_name not in trace.posterior.data_vars:
            raise ValueError(f"Unknown parameter: {var_name}")
        if direction not in ('greater', 'less'):
            raise ValueError(f"direction must be 'greater' or 'less', got {direction!r}")

        draws = np.asarray(trace.posterior[var_name].values, dtype=np.float64).reshape(-1)
        if direction == 'greater':
            return float(np.mean(draws > threshold))
        return float(np.mean(draws < threshold))

    @staticmethod
    def compare_models(traces: Dict[str, az.InferenceData], ic: str = 'loo') -> pd.DataFrame:
        """Compare fits by expected log predictive density (LOO or WAIC)."""
        if len(traces) < 2:
            raise ValueError("At least two fits are required for comparison")
        for name, trace in traces.items():
            if 'log_likelihood' not in trace.groups():
                raise ValueError(f"Fit '{name}' has no log_likelihood group; "
                                 f"fit with compute_log_likelihood=True")

        comparison = az.compare(traces, ic=ic)
        print(f"[Bayesian] Model comparison ({ic.upper()}):")
        for name in comparison.index:
            print(f"  {name}: rank {int(comparison.loc[name, 'rank'])}, "
                  f"elpd_diff {comparison.loc[name, 'elpd_diff']:.2f}")
        return comparison

    def save_trace(self, filepath: str):
        """Save MCMC trace to file."""
        if self.trace is None:
            raise ValueError("No trace to save")

        az.to_netcdf(self.trace, filepath)
        print(f"[Bayesian] Trace saved to {filepath}")

    @staticmethod
    def load_trace(filepath: str) -> az.InferenceData:
        """Load saved MCMC trace."""
        with az.rc_context({'data.load': 'eager'}):
            trace = az.from_netcdf(filepath)
        print(f"[Bayesian] Trace loaded from {filepath}")
        return trace
