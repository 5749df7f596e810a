########################################################################################
##
##                                  TESTS FOR
##                    'opt/fitting.py', fit_model() and build_report()
##
########################################################################################

# IMPORTS ==============================================================================

import math

import numpy as np
import pytest

from fdapfit.errors import ConfigurationError
from fdapfit.inversion import invert_transform
from fdapfit.models import ModelRegime, ParameterVector, PhysicalConstants, Selector
from fdapfit.opt import (
    FitReport,
    FitResult,
    FitStatus,
    IterationRecord,
    Observation,
    SolverConfig,
    build_report,
    fit_model,
    plot_fit,
)


# ═══════════════════════════════════════════════════════════════════════════
# Helpers / Fixtures
# ═══════════════════════════════════════════════════════════════════════════

CONSTANTS = PhysicalConstants(Df=11.0, R=3.0)
TRUE_X = (0.6, 0.4)


def _synthetic(regime, n=113, t_end=112.0, sigma=0.01, x=TRUE_X):
    """Noise-free curve generated by the same inverse transform the fit uses."""
    grid = Observation.from_range(np.ones(n), sigma, 0.0, t_end)
    y = invert_transform(regime, Selector.VALUE, grid.time, x, CONSTANTS)
    return Observation(grid.time, y, sigma, name=f"synthetic {regime.value}")


@pytest.fixture(scope="module")
def full_obs():
    return _synthetic(ModelRegime.FULL_MODEL)


@pytest.fixture(scope="module")
def full_result(full_obs):
    return fit_model(ModelRegime.FULL_MODEL, CONSTANTS, ParameterVector(0.5, 0.5), full_obs)


# ═══════════════════════════════════════════════════════════════════════════
# fit_model
# ═══════════════════════════════════════════════════════════════════════════

class TestFitModel:

    def test_recovers_generating_rates(self, full_result):
        assert full_result.status is FitStatus.CONVERGED
        assert full_result.success
        np.testing.assert_allclose(full_result.x, TRUE_X, atol=1e-3)
        assert full_result.iterations < 50

    def test_result_fields(self, full_result, full_obs):
        assert isinstance(full_result, FitResult)
        assert full_result.regime is ModelRegime.FULL_MODEL
        assert full_result.residuals.shape == (full_obs.n,)
        assert full_result.jacobian.shape == (full_obs.n, 2)
        assert full_result.covariance.shape == (2, 2)
        assert full_result.chi_square == pytest.approx(full_result.residual_norm ** 2)
        assert full_result.history[0].iteration == 0
        assert "Converged" in repr(full_result)

    @pytest.mark.parametrize("regime", [
        ModelRegime.HYBRID_MODEL,
        ModelRegime.REACTION_DOMINANT_PURE,
    ])
    def test_other_regimes(self, regime):
        obs = _synthetic(regime)
        result = fit_model(regime, CONSTANTS, [0.5, 0.5], obs)
        assert result.status is FitStatus.CONVERGED
        np.testing.assert_allclose(result.x, TRUE_X, atol=1e-2)

    def test_regime_by_name(self, full_obs):
        result = fit_model("fullModel", CONSTANTS, (0.5, 0.5), full_obs,
                           solver=SolverConfig(max_iter=2))
        assert result.regime is ModelRegime.FULL_MODEL

    def test_repeated_fits_are_identical(self, full_obs, full_result):
        again = fit_model(ModelRegime.FULL_MODEL, CONSTANTS, ParameterVector(0.5, 0.5), full_obs)
        assert np.array_equal(again.x, full_result.x)
        assert again.iterations == full_result.iterations
        assert again.status is full_result.status
        assert again.chi_square == full_result.chi_square
        assert np.array_equal(again.covariance, full_result.covariance)
        assert np.array_equal(again.residuals, full_result.residuals)
        assert again.history == full_result.history

    def test_residual_norm_never_increases(self, full_result):
        norms = [rec.residual_norm for rec in full_result.history]
        assert len(norms) == full_result.iterations + 1
        assert np.all(np.diff(norms) <= 0.0)

    def test_callback(self, full_obs):
        records = []
        result = fit_model(ModelRegime.FULL_MODEL, CONSTANTS, (0.5, 0.5), full_obs,
                           callback=records.append)
        assert records == result.history
        assert all(isinstance(rec, IterationRecord) for rec in records)

    def test_minimum_curve_length(self):
        obs = _synthetic(ModelRegime.FULL_MODEL, n=3, t_end=10.0)
        result = fit_model(ModelRegime.FULL_MODEL, CONSTANTS, (0.5, 0.5), obs)
        assert result.status in FitStatus
        assert result.uncertainty is not None
        assert result.uncertainty.dof == 1

    def test_zero_koff_start_fails_cleanly(self, full_obs):
        result = fit_model(ModelRegime.FULL_MODEL, CONSTANTS, (0.5, 0.0), full_obs)
        assert result.status is FitStatus.NUMERICAL_FAILURE
        assert result.covariance is None
        assert math.isnan(result.chi_square)

        report = build_report(result)
        assert report.status is FitStatus.NUMERICAL_FAILURE
        assert math.isnan(report.bound)
        assert math.isnan(report.kon_error)

    def test_effective_diffusion_rejected(self, full_obs):
        with pytest.raises(ConfigurationError, match="not supported"):
            fit_model(ModelRegime.EFFECTIVE_DIFFUSION, CONSTANTS, (0.5, 0.5), full_obs)

    def test_unknown_regime_rejected(self, full_obs):
        with pytest.raises(ConfigurationError):
            fit_model("pureDiffusion", CONSTANTS, (0.5, 0.5), full_obs)

    def test_unknown_method_rejected(self, full_obs):
        with pytest.raises(ValueError, match="Unknown method"):
            fit_model(ModelRegime.FULL_MODEL, CONSTANTS, (0.5, 0.5), full_obs, method="nelder")

    def test_iteration_cap_reported(self, full_obs):
        result = fit_model(ModelRegime.FULL_MODEL, CONSTANTS, (0.5, 0.5), full_obs,
                           solver=SolverConfig(max_iter=1))
        assert result.status is FitStatus.MAX_ITERATIONS_EXCEEDED
        assert result.iterations == 1

    def test_least_squares_backend(self, full_obs):
        result = fit_model(ModelRegime.FULL_MODEL, CONSTANTS, (0.5, 0.5), full_obs,
                           method="least_squares")
        assert result.status is FitStatus.CONVERGED
        np.testing.assert_allclose(result.x, TRUE_X, atol=5e-3)
        assert len(result.history) == 1


# ═══════════════════════════════════════════════════════════════════════════
# build_report
# ═══════════════════════════════════════════════════════════════════════════

class TestBuildReport:

    def test_report_values(self, full_result):
        report = build_report(full_result)
        assert isinstance(report, FitReport)
        assert report.status is FitStatus.CONVERGED
        assert report.kon == pytest.approx(0.6, abs=1e-3)
        assert report.koff == pytest.approx(0.4, abs=1e-3)
        assert report.bound == pytest.approx(60.0, abs=0.2)
        assert report.kon_error > 0.0
        assert report.koff_error > 0.0
        assert np.isfinite(report.bound_error)

    def test_as_dict(self, full_result):
        d = build_report(full_result).as_dict()
        assert d["model"] == "fullModel"
        assert d["status"] == "Converged"
        assert set(d) >= {"kon", "kon_error", "koff", "koff_error", "bound", "bound_error"}

    def test_display(self, full_result, capsys):
        build_report(full_result).display()
        out = capsys.readouterr().out
        assert "chisq/dof" in out
        assert "kon        =" in out
        assert "STATUS = Converged" in out

    def test_missing_uncertainty_is_reported(self):
        result = FitResult(
            regime=ModelRegime.FULL_MODEL,
            parameters=ParameterVector(0.6, 0.4),
            covariance=None,
            chi_square=1.0,
            iterations=3,
            status=FitStatus.CONVERGED,
        )
        report = build_report(result)
        assert report.status is FitStatus.UNCERTAINTY_UNAVAILABLE
        assert report.solver_status is FitStatus.CONVERGED
        assert report.bound == pytest.approx(60.0)
        assert math.isnan(report.bound_error)


# ═══════════════════════════════════════════════════════════════════════════
# Plotting
# ═══════════════════════════════════════════════════════════════════════════

def test_plot_fit(full_result, full_obs):
    matplotlib = pytest.importorskip("matplotlib")
    matplotlib.use("Agg")
    import matplotlib.pyplot as plt

    fig, ax = plot_fit(full_result, full_obs, CONSTANTS, n_points=50)
    assert len(ax.get_lines()) >= 1
    plt.close(fig)
