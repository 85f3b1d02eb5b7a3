"""
Setup script for the sleepstudy-bayes workshop package
"""

from setuptools import setup, find_packages
import os

# Read README for long description
def read_file(filename):
    filepath = os.path.join(os.path.dirname(__file__), filename)
    # Try encodings in order: utf-8-sig (UTF-8 BOM), utf-16 (Windows BOM), utf-8, latin-1
    for enc in ('utf-8-sig', 'utf-16', 'utf-8', 'latin-1'):
        try:
            with open(filepath, encoding=enc) as f:
                return f.read()
        except (UnicodeDecodeError, LookupError):
            continue
        except FileNotFoundError:
            break
    return ''

setup(
    name='sleepstudy-bayes',
    version='0.1.0',
    description='Bayesian regression workshop: reaction time under sleep deprivation',
    long_description=read_file('README.md'),
    long_description_content_type='text/markdown',
    license='MIT',

    # Package discovery from src/
    packages=find_packages(where="src"),
    package_dir={"": "src"},

    python_requires='>=3.10',

    install_requires=[
        'numpy>=1.24.0',
        'scipy>=1.10.0',
        'matplotlib>=3.6.0',
        'seaborn>=0.12.0',
        'pandas>=1.5.0',
        'pymc>=5.16.0',  # Modern PyMC (v5+), pm.Data and prior `draws`
        'arviz>=0.17.0,<1.0',  # InferenceData API
        'pytensor>=2.18.0',  # Modern backend
        'h5netcdf>=1.0.2',  # Fit artifacts
    ],

    extras_require={
        'test': [
            'pytest>=7.0.0',
            'pytest-cov>=3.0.0',
        ],
        'dev': [
            'pytest>=7.0.0',
            'pytest-cov>=3.0.0',
            'black>=22.0.0',
            'flake8>=4.0.0',
        ],
    },

    classifiers=[
        'Development Status :: 3 - Alpha',
        'Intended Audience :: Education',
        'Intended Audience :: Science/Research',
        'License :: OSI Approved :: MIT License',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
        'Programming Language :: Python :: 3.12',
        'Topic :: Scientific/Engineering :: Mathematics',
    ],

    keywords='bayesian-inference mcmc regression pymc workshop sleep-deprivation',
)
