from setuptools import find_packages, setup

setup(
    name="wagboost",
    version="0.1.0",
    description="Wagging and Stochastic Gradient Boosting ensembles over pluggable base learners.",
    packages=find_packages(include=["wagboost", "wagboost.*"]),
    python_requires=">=3.10",
    install_requires=[
        "numpy",
        "torch",
        "scikit-learn",
    ],
    extras_require={
        "test": ["pytest", "pandas"],
    },
)
