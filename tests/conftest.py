"""Shared pytest fixtures for forecast_engine tests."""

import numpy as np
import pandas as pd
import pytest


@pytest.fixture
def random_walk():
    """Gaussian random walk on a monthly index."""
    np.random.seed(42)
    n = 200
    dates = pd.date_range("2005-01-01", periods=n, freq="MS")
    values = 100 + np.cumsum(np.random.randn(n))
    return pd.Series(values, index=dates, name="random_walk")


@pytest.fixture
def white_noise():
    """Standard normal white noise."""
    np.random.seed(42)
    return np.random.randn(200)


@pytest.fixture
def ar1_series():
    """AR(1) with phi=0.6 around a mean of 10."""
    np.random.seed(42)
    n, phi, mean = 500, 0.6, 10.0
    x = np.zeros(n)
    eps = np.random.randn(n)
    for t in range(1, n):
        x[t] = phi * x[t - 1] + eps[t]
    return mean + x


@pytest.fixture
def seasonal_series():
    """Positive quarterly series with trend and a strong seasonal pattern."""
    np.random.seed(42)
    n = 48
    dates = pd.date_range("2010-01-01", periods=n, freq="QS")
    pattern = np.array([8.0, -4.0, 6.0, -10.0])
    values = 100 + 0.5 * np.arange(n) + np.resize(pattern, n) + np.random.randn(n)
    return pd.Series(values, index=dates, name="quarterly")


@pytest.fixture
def constant_series():
    """Forty copies of the value 5."""
    return pd.Series(np.full(40, 5.0))


@pytest.fixture
def positive_series():
    """Strictly positive series whose spread grows with its level."""
    np.random.seed(42)
    n = 120
    log_level = np.linspace(0.0, 3.0, n) + 0.1 * np.random.randn(n)
    return np.exp(log_level)
