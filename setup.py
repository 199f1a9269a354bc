"""
Minimal setup.py for building the profiler processing package.
"""

from setuptools import find_namespace_packages, setup

config = dict(
    name="wfpcal",
    version="0.1.0",
    description="Processing of moored wire-following profiler CTD, engineering "
    "and current meter data",
    python_requires=">=3.9",
    packages=find_namespace_packages(include=["wfpcal", "wfpcal.*"]),
    install_requires=[
        "click",
        "gsw",
        "munch",
        "numpy",
        "pandas",
        "pyyaml",
        "scipy>=1.13",
    ],
    extras_require={"test": ["pytest"]},
    entry_points={"console_scripts": ["wfpcal=wfpcal.__main__:cli"]},
)

setup(**config)
