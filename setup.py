from setuptools import setup, find_packages

setup(
    name="cbb-predictor",
    version="0.1.0",
    description="Team identity resolution and half-score stats cache for college basketball predictions",
    author="Ben Rosen",
    packages=find_packages(include=["cbb_predictor", "cbb_predictor.*"]),
    install_requires=[
        "numpy>=1.22.4",
        "pandas>=1.5.3",
        "pytz>=2022.7",
        "requests>=2.31.0",
        "rapidfuzz>=3.0.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
    python_requires=">=3.8",
    entry_points={
        "console_scripts": [
            "cbb-predictor=cbb_predictor.main:main",
        ],
    },
)
