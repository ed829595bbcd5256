"""
Build script for mailscrub with optional mypyc compilation.

Usage:
    # Pure Python build (default)
    python -m build

    # Compiled with mypyc
    MAILSCRUB_USE_MYPYC=1 pip install .
"""

import os
import sys
from pathlib import Path

from setuptools import find_packages, setup

# Determine if we should use mypyc
USE_MYPYC = os.environ.get("MAILSCRUB_USE_MYPYC", "0") == "1"

# Leaf modules with no third-party imports compile cleanly with mypyc.
# Note: css.py and policy.py are excluded, they subclass/call into tinycss2
# and use frozen slotted dataclasses that mypyc does not support.
MYPYC_MODULES = [
    "src/mailscrub/uri.py",  # ⚡ Called for every URL attribute and css url()
    "src/mailscrub/serialize.py",
]


def build_with_mypyc() -> list:
    """Build extension modules using mypyc."""
    try:
        from mypyc.build import mypycify
    except ImportError:
        print(
            "ERROR: mypyc is not installed. Install with: pip install mypy",
            file=sys.stderr,
        )
        print("Or install with mypyc support: pip install mailscrub[mypyc]", file=sys.stderr)
        sys.exit(1)

    # Verify all modules exist
    for module_path in MYPYC_MODULES:
        if not Path(module_path).exists():
            print(f"ERROR: Module not found: {module_path}", file=sys.stderr)
            sys.exit(1)

    print("=" * 70)
    print("Building mailscrub with mypyc compilation")
    print("=" * 70)
    print(f"Compiling {len(MYPYC_MODULES)} modules:")
    for module in MYPYC_MODULES:
        print(f"  - {module}")
    print("=" * 70)

    mypyc_options = {
        "opt_level": os.environ.get("MYPYC_OPT_LEVEL", "3"),
        "debug_level": os.environ.get("MYPYC_DEBUG_LEVEL", "0"),
        "verbose": True,
        "separate": False,
        "multi_file": False,
    }

    return mypycify(MYPYC_MODULES, **mypyc_options)


if __name__ == "__main__":
    ext_modules = []

    if USE_MYPYC:
        ext_modules = build_with_mypyc()
    else:
        print("Building mailscrub in pure Python mode (no mypyc compilation)")
        print("To enable mypyc: MAILSCRUB_USE_MYPYC=1 pip install .")

    setup(
        name="mailscrub",
        version="0.3.0",
        description="Sanitize untrusted HTML email bodies into safe, renderable documents",
        python_requires=">=3.10",
        package_dir={"": "src"},
        packages=find_packages("src"),
        install_requires=[
            "html5lib>=1.1",
            "tinycss2>=1.2",
        ],
        extras_require={
            "test": ["pytest>=7"],
            "mypyc": ["mypy>=1.8"],
        },
        classifiers=[
            "Programming Language :: Python :: 3",
            "Topic :: Communications :: Email",
            "Topic :: Text Processing :: Markup :: HTML",
        ],
        ext_modules=ext_modules,
    )
