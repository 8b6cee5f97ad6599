"""Tests for seasonal ARIMA estimation and projection."""

import numpy as np
import pytest

from forecast_engine.config import EngineConfig
from forecast_engine.errors import InvalidOrder, UnstableModel
from forecast_engine.forecasting import forecast
from forecast_engine.models import ARIMASpec, fit_arima
from forecast_engine.models.arima import (
    arima_point_forecast,
    coefs_to_pacf,
    lag_polynomial,
    min_root_modulus,
    pacf_to_coefs,
    psi_weights,
)


class TestARIMASpec:
    """Tests for ARIMASpec naming and validation."""

    def test_names(self):
        """Names should follow the ARIMA(p,d,q)(P,D,Q)[m] convention."""
        assert ARIMASpec(1, 1, 1).name == "ARIMA(1,1,1)"
        assert ARIMASpec(0, 1, 1, 0, 1, 1, m=12).name == "ARIMA(0,1,1)(0,1,1)[12]"
        assert ARIMASpec(0, 1, 0, include_mean=True).name == "ARIMA(0,1,0) with drift"
        assert ARIMASpec(2, 0, 0, include_mean=True).name == "ARIMA(2,0,0) with non-zero mean"

    def test_constant_names(self):
        """The constant is a drift once differenced, otherwise a mean."""
        assert ARIMASpec(d=1, include_mean=True).constant_name == "drift"
        assert ARIMASpec(include_mean=True).constant_name == "mean"

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"d": 3},
            {"D": 3, "m": 12},
            {"p": -1},
            {"P": 1, "m": 1},
            {"d": 1, "D": 1, "m": 12, "include_mean": True},
            {"d": 2, "include_mean": True},
        ],
    )
    def test_invalid_orders(self, kwargs):
        """Out-of-range or inconsistent orders should raise InvalidOrder."""
        with pytest.raises(InvalidOrder):
            ARIMASpec(**kwargs)

    def test_white_noise_spec_is_allowed(self):
        """ARIMA(0,0,0) should be a valid spec."""
        assert ARIMASpec().is_white_noise

    def test_replace(self):
        """replace should return a modified copy."""
        spec = ARIMASpec(1, 0, 1, include_mean=True)
        assert spec.replace(p=2).order == (2, 0, 1)
        assert spec.replace(include_mean=False).include_mean is False


class TestReparameterisation:
    """Tests for the partial-autocorrelation reparameterisation."""

    def test_round_trip(self):
        """coefs_to_pacf should undo pacf_to_coefs."""
        partials = np.array([0.5, -0.3, 0.2])
        np.testing.assert_allclose(coefs_to_pacf(pacf_to_coefs(partials)), partials)

    def test_ar1_identity(self):
        """For one lag the partial equals the coefficient."""
        np.testing.assert_allclose(pacf_to_coefs([0.7]), [0.7])

    @pytest.mark.parametrize("seed", [0, 1, 2, 3])
    def test_any_partials_give_stationary_polynomial(self, seed):
        """Partials inside (-1, 1) should give roots outside the unit circle."""
        rng = np.random.default_rng(seed)
        partials = rng.uniform(-0.99, 0.99, size=4)
        poly = lag_polynomial(pacf_to_coefs(partials), 1, -1.0)
        assert min_root_modulus(poly) > 1.0

    def test_lag_polynomial(self):
        """lag_polynomial should place coefficients at multiples of the lag."""
        np.testing.assert_allclose(lag_polynomial([0.5], lag=4, sign=-1.0), [1.0, 0, 0, 0, -0.5])
        np.testing.assert_allclose(lag_polynomial([0.3, 0.1], lag=1, sign=1.0), [1.0, 0.3, 0.1])

    def test_constant_polynomial_has_no_roots(self):
        """A degree-zero polynomial has infinite root modulus."""
        assert np.isinf(min_root_modulus([1.0]))


class TestFitARIMA:
    """Tests for fit_arima."""

    def test_recovers_ar1(self, ar1_series):
        """AR coefficient, mean and sigma2 should be recovered."""
        fitted = fit_arima(ar1_series, ARIMASpec(p=1, include_mean=True))
        assert fitted.coefficients["ar1"] == pytest.approx(0.6, abs=0.1)
        assert fitted.coefficients["mean"] == pytest.approx(10.0, abs=0.5)
        assert fitted.sigma2 == pytest.approx(1.0, rel=0.2)
        assert fitted.n_params == 3
        assert list(fitted.coefficients) == ["ar1", "mean"]

    def test_innovations_padded_before_conditioning(self, ar1_series):
        """The conditioning window should be NaN and excluded from n_obs."""
        fitted = fit_arima(ar1_series, ARIMASpec(p=2, include_mean=True))
        assert np.all(np.isnan(fitted.innovations[:2]))
        assert np.all(np.isfinite(fitted.innovations[2:]))
        assert fitted.n_obs == len(ar1_series) - 2

    def test_psi_weights_of_ar1(self, ar1_series):
        """AR(1) psi weights should be powers of phi."""
        fitted = fit_arima(ar1_series, ARIMASpec(p=1, include_mean=True))
        phi = fitted.coefficients["ar1"]
        np.testing.assert_allclose(psi_weights(fitted, 5), phi ** np.arange(5))

    def test_white_noise_fit(self, white_noise):
        """sigma2 of ARIMA(0,0,0) should be the mean square."""
        fitted = fit_arima(white_noise, ARIMASpec())
        assert fitted.n_params == 1
        assert fitted.sigma2 == pytest.approx(np.mean(white_noise**2))

    def test_unstable_roots_rejected(self, ar1_series):
        """Roots inside the tolerance should raise UnstableModel."""
        with pytest.raises(UnstableModel) as excinfo:
            fit_arima(ar1_series, ARIMASpec(p=1, include_mean=True), config=EngineConfig(root_tolerance=10.0))
        assert excinfo.value.min_root_modulus == pytest.approx(1.0 / 0.6, rel=0.2)

    def test_too_little_data(self):
        """More parameters than observations should raise InvalidOrder."""
        with pytest.raises(InvalidOrder):
            fit_arima(np.arange(6.0), ARIMASpec(p=3, q=1))

    def test_differencing_longer_than_series(self):
        """Differencing that consumes the series should raise InvalidOrder."""
        with pytest.raises(InvalidOrder):
            fit_arima(np.arange(10.0), ARIMASpec(D=1, m=12))


class TestARIMAForecast:
    """Tests for ARIMA point forecasts."""

    def test_random_walk_forecast(self, random_walk):
        """ARIMA(0,1,0) should give a flat path with sqrt(h) errors."""
        fitted = fit_arima(random_walk, ARIMASpec(d=1))
        result = forecast(fitted, 12)
        np.testing.assert_allclose(result.mean, random_walk.iloc[-1])
        np.testing.assert_allclose(result.std_error, result.std_error[0] * np.sqrt(np.arange(1, 13)))
        diffs = np.diff(random_walk.to_numpy())
        assert fitted.sigma2 == pytest.approx(np.mean(diffs**2))

    def test_drift_extends_linear_trend(self):
        """Drift should be added at every step."""
        np.random.seed(42)
        y = 5.0 + 0.8 * np.arange(120) + np.random.randn(120)
        fitted = fit_arima(y, ARIMASpec(d=1, include_mean=True))
        drift = fitted.coefficients["drift"]
        assert drift == pytest.approx(0.8, abs=0.1)
        path = arima_point_forecast(fitted, 6)
        np.testing.assert_allclose(np.diff(np.concatenate([[y[-1]], path])), drift)

    def test_ar1_reverts_to_mean(self, ar1_series):
        """AR(1) forecasts should decay to the mean."""
        fitted = fit_arima(ar1_series, ARIMASpec(p=1, include_mean=True))
        path = arima_point_forecast(fitted, 50)
        assert path[-1] == pytest.approx(fitted.coefficients["mean"], abs=1e-3)

    def test_seasonal_random_walk_repeats_last_cycle(self, seasonal_series):
        """Seasonal random walk should repeat the last observed cycle."""
        fitted = fit_arima(seasonal_series, ARIMASpec(D=1, m=4))
        path = arima_point_forecast(fitted, 8)
        last_cycle = seasonal_series.to_numpy()[-4:]
        np.testing.assert_allclose(path, np.tile(last_cycle, 2))
