"""
Pytest configuration and fixtures for reproducible testing.

This file provides centralized test configuration including:
- Random seed management for reproducibility
- Non-interactive plotting backend
- Shared fixtures (sample data, synthetic posterior traces)
"""
import matplotlib
matplotlib.use('Agg')

import numpy as np
import pandas as pd
import pytest
import arviz as az
import matplotlib.pyplot as plt

from sleepstudy_bayes.data import SleepStudyLoader, create_sample_sleepstudy_data


def pytest_configure(config):
    config.addinivalue_line("markers", "slow: runs MCMC sampling (deselect with -m 'not slow')")


@pytest.fixture(scope="session", autouse=True)
def set_random_seeds():
    """Set random seeds at the start of test session for reproducibility."""
    np.random.seed(42)
    yield


@pytest.fixture(autouse=True)
def close_figures():
    """Close all matplotlib figures after each test."""
    yield
    plt.close('all')


@pytest.fixture
def sample_csv(tmp_path):
    """Synthetic sleep study CSV (18 subjects x 10 days)."""
    return create_sample_sleepstudy_data(output_dir=tmp_path, seed=42)


@pytest.fixture
def sample_data(sample_csv):
    """Loaded SleepStudyData for the synthetic CSV."""
    return SleepStudyLoader(str(sample_csv.parent)).load_csv(sample_csv.name)


@pytest.fixture
def small_data():
    """Tiny hand-made dataset: two subjects, exact linear trends."""
    df = pd.DataFrame({
        'Subject': ['A'] * 4 + ['B'] * 4,
        'Days': [0, 1, 2, 3] * 2,
        'Reaction': [250.0, 260.0, 270.0, 280.0, 300.0, 305.0, 310.0, 315.0],
    })
    return SleepStudyLoader.from_frame(df)


def make_trace(chains=4, draws=500, intercept=250.0, slope=10.0, sigma=30.0,
               seed=0, shift_chains=0.0, n_divergent=0):
    """Synthetic InferenceData with independent draws per parameter.

    ``shift_chains`` offsets each chain's intercept to simulate chains that
    have not mixed.
    """
    rng = np.random.default_rng(seed)
    offsets = np.arange(chains)[:, None] * shift_chains
    b0 = rng.normal(intercept, 5.0, (chains, draws)) + offsets
    b1 = rng.normal(slope, 1.0, (chains, draws))
    s = np.abs(rng.normal(sigma, 2.0, (chains, draws)))
    diverging = np.zeros((chains, draws), dtype=bool)
    diverging.reshape(-1)[:n_divergent] = True
    return az.from_dict(
        posterior={'Intercept': b0 + 4.5 * b1, 'b_Days': b1, 'b_Intercept': b0, 'sigma': s},
        sample_stats={'diverging': diverging},
    )


@pytest.fixture
def synthetic_trace():
    """Well-mixed synthetic posterior: b_Intercept ~ 250, b_Days ~ 10, sigma ~ 30."""
    return make_trace()


@pytest.fixture
def trace_factory():
    """Factory for synthetic traces with custom settings."""
    return make_trace
