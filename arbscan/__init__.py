"""Prediction-market arbitrage detection engine."""

__version__ = "0.1.0"
