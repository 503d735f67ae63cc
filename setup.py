"""
Setup for StockSentix, the analytics core of a stock-news sentiment dashboard.

Reference:
    Pearson, K. (1895). Notes on Regression and Inheritance in the Case of
    Two Parents. Proceedings of the Royal Society of London, 58, 240-242.
"""
from setuptools import setup, find_packages

setup(
    name="stocksentix",
    version="1.0.0",
    description=(
        "Headline sentiment scoring, sentiment / next-day return correlation "
        "and lightweight logistic, naive-Bayes and linear forecasts."
    ),
    packages=find_packages(exclude=["tests", "tests.*"]),
    py_modules=["main"],
    python_requires=">=3.9",
    install_requires=[
        "numpy>=1.24.0",
        "pandas>=2.0.0",
        "scipy>=1.11.0",
        "yfinance>=0.2.28",
        "requests>=2.31.0",
        "tqdm>=4.65.0",
    ],
    extras_require={
        "dev": ["pytest>=7.4.0"],
    },
    entry_points={
        "console_scripts": ["stocksentix=main:main"],
    },
    keywords=[
        "sentiment-analysis", "nlp", "correlation", "logistic-regression",
        "quantitative-finance", "alternative-data",
    ],
)
