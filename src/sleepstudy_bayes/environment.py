"""
Installation checks for the workshop (see SETUP.md).

PyMC compiles its model graphs to C through PyTensor, so besides the Python
packages a working C/C++ compiler is needed. Without one PyTensor falls back
to pure Python and sampling becomes very slow.
"""
import platform
import shutil
import sys
from importlib import metadata
from typing import Dict, Optional, Sequence


REQUIRED_PACKAGES = (
    'numpy',
    'scipy',
    'pandas',
    'matplotlib',
    'seaborn',
    'pymc',
    'pytensor',
    'arviz',
)

COMPILERS = ('gcc', 'g++', 'clang', 'clang++', 'cc')


def check_compiler() -> Dict:
    """Find C/C++ compilers on PATH and the one PyTensor will use.

    Returns:
        Dict with 'found' {name: path}, 'pytensor_cxx' (str or None) and
        'available' (bool)
    """
    found = {}
    for name in COMPILERS:
        path = shutil.which(name)
        if path:
            found[name] = path

    pytensor_cxx: Optional[str] = None
    try:
        import pytensor
        pytensor_cxx = pytensor.config.cxx or None
    except ImportError:
        pass

    return {
        'found': found,
        'pytensor_cxx': pytensor_cxx,
        'available': bool(pytensor_cxx) or any(n in found for n in ('g++', 'clang++')),
    }


def check_packages(names: Sequence[str] = REQUIRED_PACKAGES) -> Dict[str, Optional[str]]:
    """Installed version of each package, or None when missing."""
    versions = {}
    for name in names:
        try:
            versions[name] = metadata.version(name)
        except metadata.PackageNotFoundError:
            versions[name] = None
    return versions


def check_environment() -> Dict:
    """Collect everything the setup guide asks the student to verify."""
    compiler = check_compiler()
    packages = check_packages()
    return {
        'python': platform.python_version(),
        'platform': platform.platform(),
        'compiler': compiler,
        'packages': packages,
        'ok': compiler['available'] and all(v is not None for v in packages.values()),
    }


def print_environment_report(result: Optional[Dict] = None, file=None):
    """Print a human-readable installation report."""
    if result is None:
        result = check_environment()
    out = file or sys.stdout

    print("=" * 60, file=out)
    print("Workshop environment check", file=out)
    print("=" * 60, file=out)
    print(f"Python:   {result['python']}", file=out)
    print(f"Platform: {result['platform']}", file=out)

    print("\n[Compiler]", file=out)
    compiler = result['compiler']
    if compiler['found']:
        for name, path in compiler['found'].items():
            print(f"   ✓ {name}: {path}", file=out)
    else:
        print("   ✗ No C/C++ compiler found on PATH", file=out)
    print(f"   PyTensor compiler: {compiler['pytensor_cxx'] or '(none, pure Python mode)'}", file=out)

    print("\n[Packages]", file=out)
    for name, version in result['packages'].items():
        if version:
            print(f"   ✓ {name} {version}", file=out)
        else:
            print(f"   ✗ {name} not installed", file=out)

    print("", file=out)
    if result['ok']:
        print("Status: ✅ READY FOR THE WORKSHOP", file=out)
    else:
        print("Status: ❌ Setup incomplete, see SETUP.md", file=out)
    print("=" * 60, file=out)
