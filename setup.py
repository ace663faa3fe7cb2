from setuptools import setup, find_packages

setup(
    name="narrasim",
    version="0.1.0",
    description="Score narrative entity cards and simulate them under scheduled interventions",
    packages=find_packages(include=["narrasim", "narrasim.*"]),
    python_requires=">=3.11",
    install_requires=[
        "pydantic>=2.0",
        "scipy>=1.12.0",
        "numpy>=1.26.0",
    ],
    extras_require={
        "dev": ["pytest>=8.0.0"],
    },
    entry_points={
        "console_scripts": ["narrasim=narrasim.core.orchestrator:main"],
    },
)
