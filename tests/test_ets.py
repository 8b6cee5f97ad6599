"""Tests for ETS specifications, estimation and forecast variances."""

import numpy as np
import pytest

from forecast_engine.config import EngineConfig
from forecast_engine.errors import InvalidSpec, NoViableModel
from forecast_engine.forecasting import forecast
from forecast_engine.models import ETSSpec, auto_ets, ets_candidates, fit_ets, simulate_ets_paths
from forecast_engine.models.ets import ets_forecast_variance, ets_point_forecast, interval_class
from forecast_engine.transforms import TransformSpec


@pytest.fixture
def local_level_series():
    """Local-level (ETS(A,N,N)) process with alpha=0.5."""
    np.random.seed(42)
    n, alpha = 300, 0.5
    level = 20.0
    y = np.empty(n)
    for t in range(n):
        e = np.random.randn()
        y[t] = level + e
        level += alpha * e
    return y


class TestETSSpec:
    """Tests for ETSSpec validation and candidate enumeration."""

    def test_fifteen_combinations(self):
        """Positive seasonal data should admit fifteen distinct models."""
        specs = ets_candidates(period=12, positive=True)
        assert len(specs) == 15
        assert len(set(specs)) == 15
        assert ETSSpec("A", "N", "M") not in specs

    def test_additive_error_multiplicative_season_excluded(self):
        """ETS(A,*,M) should be rejected."""
        with pytest.raises(InvalidSpec):
            ETSSpec("A", "N", "M")

    def test_multiplicative_trend_unsupported(self):
        """Multiplicative trend should be rejected."""
        with pytest.raises(InvalidSpec):
            ETSSpec("A", "M", "N")

    def test_non_seasonal_candidates(self):
        """Period one should give six non-seasonal models."""
        specs = ets_candidates(period=1, positive=True)
        assert len(specs) == 6
        assert not any(s.seasonal for s in specs)

    def test_non_positive_data_drops_multiplicative(self):
        """Non-positive data should only admit additive error."""
        specs = ets_candidates(period=12, positive=False)
        assert len(specs) == 6
        assert all(s.error == "A" for s in specs)

    def test_additive_only(self):
        """additive_only should exclude multiplicative components."""
        specs = ets_candidates(period=4, positive=True, additive_only=True)
        assert all(s.error == "A" and s.season != "M" for s in specs)

    def test_seasonal_needs_period(self):
        """Seasonal models need a period above one."""
        with pytest.raises(InvalidSpec):
            ETSSpec("A", "N", "A").validate_for(period=1, positive=True)

    def test_seasonal_needs_two_cycles(self):
        """Seasonal models need two full cycles of data."""
        with pytest.raises(InvalidSpec):
            ETSSpec("A", "N", "A").validate_for(period=12, positive=True, n_obs=20)

    def test_names(self):
        """Names should follow the ETS(E,T,S) convention."""
        assert ETSSpec("M", "Ad", "M").name == "ETS(M,Ad,M)"
        assert ETSSpec("A", "Ad", "N").damped


class TestFitETS:
    """Tests for fit_ets."""

    def test_constant_series_forecasts_constant(self, constant_series):
        """A constant series should give near-zero alpha and a flat forecast."""
        fitted = fit_ets(constant_series, ETSSpec("A", "N", "N"))
        assert fitted.coefficients["alpha"] < 0.05
        np.testing.assert_allclose(ets_point_forecast(fitted, 6), 5.0)

    def test_exact_linear_trend_needs_no_updating(self):
        """A noiseless line should keep smoothing near zero and extend the line."""
        y = 3.0 + 2.0 * np.arange(40)
        fitted = fit_ets(y, ETSSpec("A", "A", "N"))
        assert fitted.coefficients["alpha"] < 0.05
        np.testing.assert_allclose(ets_point_forecast(fitted, 5), y[-1] + 2.0 * np.arange(1, 6), rtol=1e-6)

    def test_recovers_smoothing_parameter(self, local_level_series):
        """alpha and sigma2 should be recovered from a local-level process."""
        fitted = fit_ets(local_level_series, ETSSpec("A", "N", "N"))
        assert 0.25 < fitted.coefficients["alpha"] < 0.75
        assert fitted.sigma2 == pytest.approx(1.0, rel=0.25)
        assert fitted.n_params == 3

    def test_parameters_within_bounds(self, seasonal_series):
        """Estimated parameters should respect the usual bounds."""
        config = EngineConfig()
        fitted = fit_ets(seasonal_series, ETSSpec("A", "Ad", "A"), period=4, config=config)
        coef = fitted.coefficients
        assert config.alpha_bounds[0] <= coef["alpha"] <= config.alpha_bounds[1]
        assert 0 <= coef["beta"] <= coef["alpha"]
        assert 0 <= coef["gamma"] <= 1 - coef["alpha"]
        assert config.phi_bounds[0] <= coef["phi"] <= config.phi_bounds[1]

    def test_seasonal_states_normalised(self, seasonal_series):
        """Initial seasonal states should sum to zero or to m."""
        additive = fit_ets(seasonal_series, ETSSpec("A", "A", "A"), period=4)
        initial = [additive.coefficients[f"s{i}"] for i in range(4)]
        assert sum(initial) == pytest.approx(0.0, abs=1e-8)

        multiplicative = fit_ets(seasonal_series, ETSSpec("M", "A", "M"), period=4)
        initial = [multiplicative.coefficients[f"s{i}"] for i in range(4)]
        assert sum(initial) == pytest.approx(4.0)

    def test_fitted_values_track_series(self, seasonal_series):
        """Residuals should equal series minus fitted values."""
        fitted = fit_ets(seasonal_series, ETSSpec("A", "A", "A"), period=4)
        assert fitted.fitted.shape == seasonal_series.shape
        np.testing.assert_allclose(fitted.residuals, seasonal_series.to_numpy() - fitted.fitted)
        assert np.std(fitted.residuals) < 3.0

    def test_multiplicative_requires_positive(self, white_noise):
        """Multiplicative error should reject non-positive data."""
        with pytest.raises(InvalidSpec):
            fit_ets(white_noise, ETSSpec("M", "N", "N"))

    def test_too_short(self):
        """Too few observations should raise InvalidSpec."""
        with pytest.raises(InvalidSpec):
            fit_ets([1.0, 2.0, 3.0], ETSSpec("A", "N", "N"))


class TestAutoETS:
    """Tests for auto_ets model selection."""

    def test_picks_seasonal_model(self, seasonal_series):
        """Strongly seasonal data should select a seasonal model."""
        best = auto_ets(seasonal_series, period=4)
        assert best.spec.seasonal
        assert best.spec in ets_candidates(period=4, positive=True)

    def test_transform_forces_additive_models(self, seasonal_series):
        """A transform should restrict the search to additive models."""
        best = auto_ets(seasonal_series, period=4, transform=TransformSpec("log"))
        assert best.spec.error == "A"
        assert best.spec.season != "M"
        assert best.transform.kind == "log"

    def test_non_positive_data_uses_additive_error(self, white_noise):
        """Data with negatives should use additive error."""
        assert auto_ets(white_noise).spec.error == "A"

    def test_parallel_matches_serial(self, seasonal_series):
        """Parallel search should select the same model as serial search."""
        serial = auto_ets(seasonal_series, period=4)
        parallel = auto_ets(seasonal_series, period=4, config=EngineConfig(n_jobs=4))
        assert parallel.name == serial.name
        assert parallel.aicc == pytest.approx(serial.aicc)

    def test_all_candidates_failing(self, seasonal_series):
        """NoViableModel should report every attempted candidate."""
        with pytest.raises(NoViableModel) as excinfo:
            auto_ets(seasonal_series, period=4, config=EngineConfig(fit_timeout=1e-9))
        assert excinfo.value.attempted == excinfo.value.failed == 15


class TestETSForecastVariance:
    """Tests for ETS forecast variances and simulation."""

    def test_interval_classes(self):
        """Specs should map to their analytic interval class."""
        assert interval_class(ETSSpec("A", "A", "A")) == 1
        assert interval_class(ETSSpec("M", "Ad", "A")) == 2
        assert interval_class(ETSSpec("M", "N", "M")) == 3

    @pytest.mark.parametrize("spec", [ETSSpec("A", "Ad", "N"), ETSSpec("A", "A", "A"), ETSSpec("M", "A", "N")])
    def test_closed_form_matches_simulation(self, spec, seasonal_series):
        """Analytic mean and variance should agree with simulated paths."""
        fitted = fit_ets(seasonal_series, spec, period=4)
        h = 6
        point = ets_point_forecast(fitted, h)
        variance = ets_forecast_variance(fitted, h, point)
        paths = simulate_ets_paths(fitted, h, n_paths=20000, seed=7)
        np.testing.assert_allclose(np.var(paths, axis=0), variance, rtol=0.1)
        np.testing.assert_allclose(paths.mean(axis=0), point, rtol=0.01)

    def test_one_step_variance_is_sigma2(self, local_level_series):
        """ETS(A,N,N) variance should be sigma2 (1 + (h-1) alpha^2)."""
        fitted = fit_ets(local_level_series, ETSSpec("A", "N", "N"))
        variance = ets_forecast_variance(fitted, 3, ets_point_forecast(fitted, 3))
        alpha = fitted.coefficients["alpha"]
        expected = fitted.sigma2 * np.array([1.0, 1.0 + alpha**2, 1.0 + 2 * alpha**2])
        np.testing.assert_allclose(variance, expected)

    def test_multiplicative_season_uses_simulation(self, seasonal_series):
        """Class 3 models should fall back to simulated intervals."""
        fitted = fit_ets(seasonal_series, ETSSpec("M", "N", "M"), period=4)
        result = forecast(fitted, 8, config=EngineConfig(n_simulations=2000))
        assert result.interval_method == "simulation"
        assert np.all(result.lower[80.0] < result.mean)
        assert np.all(result.mean < result.upper[80.0])

    def test_simulation_is_seeded(self, seasonal_series):
        """Equal seeds should give identical paths."""
        fitted = fit_ets(seasonal_series, ETSSpec("M", "N", "M"), period=4)
        np.testing.assert_array_equal(
            simulate_ets_paths(fitted, 4, 100, seed=3), simulate_ets_paths(fitted, 4, 100, seed=3)
        )
