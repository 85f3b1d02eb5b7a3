"""
Installation check for the sleepstudy-bayes workshop
Run this before the workshop to verify the compiler toolchain and packages.

Usage: python scripts/verify_installation.py
"""
import sys

print("=" * 70)
print("Sleepstudy Bayes - Installation Check")
print("=" * 70)
print()

passed = 0
failed = 0

# Check 1: Environment (compiler + packages)
print("[1/3] Compiler toolchain and packages...")
try:
    from sleepstudy_bayes.environment import check_environment, print_environment_report

    result = check_environment()
    print_environment_report(result)
    if not result['ok']:
        raise RuntimeError("environment incomplete")
    passed += 1
except Exception as e:
    print(f"   ✗ FAILED: {str(e)}\n")
    failed += 1

# Check 2: Data loading
print("\n[2/3] Sample data...")
try:
    import tempfile
    from sleepstudy_bayes import SleepStudyLoader, create_sample_sleepstudy_data

    with tempfile.TemporaryDirectory() as tmp:
        path = create_sample_sleepstudy_data(output_dir=tmp, n_subjects=3, n_days=5)
        data = SleepStudyLoader(tmp).load_csv(path.name)

    print(f"   ✓ Data loader working!")
    print(f"   - {data.n_observations} observations, {data.n_subjects} subjects")
    passed += 1
except Exception as e:
    print(f"   ✗ FAILED: {str(e)}\n")
    failed += 1

# Check 3: A tiny MCMC run (compiles the model through PyTensor)
print("\n[3/3] Tiny MCMC run...")
try:
    import tempfile
    from sleepstudy_bayes import (SleepStudyLoader, create_sample_sleepstudy_data,
                                  BayesianRegression, BayesianConfig, get_custom_priors)

    with tempfile.TemporaryDirectory() as tmp:
        path = create_sample_sleepstudy_data(output_dir=tmp, n_subjects=4, n_days=5)
        data = SleepStudyLoader(tmp).load_csv(path.name)

    config = BayesianConfig(n_chains=2, n_draws=100, n_tune=100,
                            progressbar=False, check_convergence=False)
    model = BayesianRegression(config, priors=get_custom_priors())
    model.fit(data)
    summary = model.summarize_posterior()

    print(f"   ✓ Sampling working!")
    print(f"   - b_Days posterior mean: {summary['b_Days']['mean']:.2f} ms/day")
    passed += 1
except Exception as e:
    print(f"   ✗ FAILED: {str(e)}\n")
    failed += 1

# Summary
print()
print("=" * 70)
print(f"Checks passed: {passed}/{passed + failed}")
print("=" * 70)
if failed:
    print("See SETUP.md for installation instructions.")
    sys.exit(1)
print("Status: ✅ READY FOR THE WORKSHOP")
