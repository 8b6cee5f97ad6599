"""End-to-end tests for the analysis pipeline and its persisted outputs."""

import json

import pandas as pd
import pytest

from forecast_engine.config import EngineConfig
from forecast_engine.pipelines import run_forecast_analysis, write_analysis_outputs


@pytest.fixture
def fast_config():
    """Small order caps for quick end-to-end runs."""
    return EngineConfig(max_p=2, max_q=2, max_P=1, max_Q=1, max_order=3, kpss_alpha=0.01)


class TestRunForecastAnalysis:
    """Tests for run_forecast_analysis."""

    def test_arima_on_random_walk(self, random_walk, fast_config):
        """A random walk should be differenced once and forecast ten steps."""
        report = run_forecast_analysis(random_walk, family="arima", config=fast_config)
        assert report.kpss.reject
        assert report.search.d == 1
        assert report.kpss_differenced is not None
        assert report.forecast.horizon == 10
        assert report.model.differencing == ((1, 1),)

    def test_ets_on_seasonal_series(self, seasonal_series, fast_config):
        """Seasonal ETS should be chosen for the quarterly series."""
        report = run_forecast_analysis(seasonal_series, period=4, family="ets", config=fast_config)
        assert report.search is None
        assert report.forecast.horizon == 8
        assert report.seasonal_strength > 0.64
        assert report.model.spec.seasonal

    def test_box_cox_estimated_when_lambda_missing(self, seasonal_series, fast_config):
        """A Box-Cox lambda should be estimated when not given."""
        report = run_forecast_analysis(
            seasonal_series, period=4, family="ets", transform="box-cox", horizon=4, config=fast_config
        )
        assert report.transform.kind == "box-cox"
        assert report.transform.lam is not None
        assert report.model.transform == report.transform

    def test_summary(self, random_walk, fast_config):
        """summary should be JSON-serialisable."""
        summary = run_forecast_analysis(random_walk, config=fast_config).summary()
        assert {"n_obs", "transform", "kpss", "model", "ljung_box", "search"} <= set(summary)
        assert summary["search"]["d"] == 1
        json.dumps(summary, default=str)

    def test_unknown_family(self, random_walk):
        """Unknown model families should raise ValueError."""
        with pytest.raises(ValueError):
            run_forecast_analysis(random_walk, family="prophet")


class TestWriteAnalysisOutputs:
    """Tests for write_analysis_outputs."""

    def test_writes_all_artifacts(self, random_walk, fast_config, tmp_path):
        """Every artifact should be written with the expected shape."""
        report = run_forecast_analysis(random_walk, levels=(80, 95), horizon=6, config=fast_config)
        paths = write_analysis_outputs(report, tmp_path / "run", config=fast_config)

        for key in ("forecast", "fitted", "coefficients", "summary", "manifest"):
            assert paths[key].exists()

        forecast_frame = pd.read_csv(paths["forecast"])
        assert len(forecast_frame) == 6
        assert {"lower_95", "upper_95"} <= set(forecast_frame.columns)

        fitted_frame = pd.read_csv(paths["fitted"])
        assert len(fitted_frame) == len(random_walk)

        manifest = json.loads(paths["manifest"].read_text())
        assert manifest["config"]["max_p"] == 2
        assert manifest["extra"]["model"] == report.model.name
        assert len(manifest["config_hash"]) == 64

    def test_config_hash_is_stable(self, random_walk, fast_config, tmp_path):
        """The same config should hash identically."""
        report = run_forecast_analysis(random_walk, config=fast_config)
        first = write_analysis_outputs(report, tmp_path / "a", config=fast_config)
        second = write_analysis_outputs(report, tmp_path / "b", config=fast_config)
        hash_a = json.loads(first["manifest"].read_text())["config_hash"]
        hash_b = json.loads(second["manifest"].read_text())["config_hash"]
        assert hash_a == hash_b
