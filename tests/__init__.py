"""
Sleepstudy Bayes — Test Suite
=============================

Test modules:
- test_data.py: CSV loading, validation and descriptive summaries
- test_fit_cache.py: fitted model cache and refit policies
- test_bayesian.py: priors, model building, summaries on synthetic traces
- test_bayesian_integration.py: MCMC fits end to end (slow)
- test_plotting.py / test_report.py: figures and HTML report
- test_environment.py: installation checks
- test_workshop.py: full workshop run (slow)
"""
