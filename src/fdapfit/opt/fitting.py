#########################################################################################
##
##                              FDAP FITTING ENTRY POINT
##                                 (opt/fitting.py)
##
#########################################################################################

# IMPORTS ===============================================================================

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Sequence

import numpy as np
import scipy.optimize as sci_opt

from ..errors import ConfigurationError, NumericalDegeneracy
from ..inversion.bromwich import InversionConfig
from ..models.parameters import ParameterVector, PhysicalConstants
from ..models.registry import ModelRegime
from ..utils.logger import LoggerManager
from .objective import FDAPObjective
from .observation import Observation
from .solver import (
    FitStatus,
    IterationRecord,
    LevenbergMarquardt,
    SolverConfig,
    SolverOutcome,
)
from .uncertainty import UncertaintyResult, bound_fraction


logger = LoggerManager().get_logger("opt.fitting")

_METHODS = ("lm", "least_squares")


# FIT RESULT ============================================================================

@dataclass(frozen=True, eq=False)
class FitResult:
    """Outcome of :func:`fit_model`.

    ``status`` is the terminal state of the solver. ``covariance`` is ``None``
    when the normal matrix at the solution is singular.
    """

    regime: ModelRegime
    parameters: ParameterVector
    covariance: np.ndarray | None
    chi_square: float
    iterations: int
    status: FitStatus
    message: str = ""
    residuals: np.ndarray | None = None
    jacobian: np.ndarray | None = None
    history: list[IterationRecord] = field(default_factory=list)
    uncertainty: UncertaintyResult | None = None


    @property
    def x(self) -> np.ndarray:
        return self.parameters.as_array()


    @property
    def success(self) -> bool:
        return self.status is FitStatus.CONVERGED


    @property
    def residual_norm(self) -> float:
        return float(np.sqrt(self.chi_square))


    @property
    def std_errors(self) -> np.ndarray | None:
        if self.uncertainty is None:
            return None
        return self.uncertainty.std_errors


    def __repr__(self) -> str:
        return (
            f"FitResult({self.status.value}, iterations={self.iterations}, "
            f"chisq={self.chi_square:.4g}, kon={self.parameters.kon:.5g}, "
            f"koff={self.parameters.koff:.5g})"
        )


# FIT REPORT ============================================================================

@dataclass(frozen=True)
class FitReport:
    """Values required downstream of a fit, with the final status named.

    ``status`` equals the solver status, except that a fit whose parameters
    are usable but whose uncertainty could not be computed is reported as
    ``UNCERTAINTY_UNAVAILABLE``; ``solver_status`` always holds the former.
    """

    regime: ModelRegime
    kon: float
    koff: float
    kon_error: float
    koff_error: float
    chi_square_reduced: float
    bound: float
    bound_error: float
    status: FitStatus
    solver_status: FitStatus
    iterations: int


    def as_dict(self) -> dict:
        return {
            "model": self.regime.value,
            "kon": self.kon,
            "kon_error": self.kon_error,
            "koff": self.koff,
            "koff_error": self.koff_error,
            "bound": self.bound,
            "bound_error": self.bound_error,
            "chisq_dof": self.chi_square_reduced,
            "iterations": self.iterations,
            "status": self.status.value,
        }


    def display(self) -> None:
        """Print the final report."""
        print(f"\nchisq/dof = {self.chi_square_reduced:g}")
        print(f"kon        = {self.kon:.5f} +/- {self.kon_error:.5f}")
        print(f"koff       = {self.koff:.5f} +/- {self.koff_error:.5f}")
        print(f"bound      = {self.bound:.5f} +/- {self.bound_error:.5f}")
        print(f"\nSTATUS = {self.status.value}\n")


def build_report(result: FitResult) -> FitReport:
    """Condense a :class:`FitResult` into the final report values.

    Parameters that cannot be turned into a bound fraction (``koff`` of zero)
    yield ``nan`` rather than an infinite value.
    """
    kon, koff = result.parameters.kon, result.parameters.koff

    unc = result.uncertainty
    if unc is not None and unc.available:
        kon_err, koff_err = (float(v) for v in unc.std_errors)
        covariance = unc.covariance
    else:
        kon_err = koff_err = float("nan")
        covariance = None

    try:
        bound, bound_err = bound_fraction(kon, koff, covariance)
    except NumericalDegeneracy as exc:
        logger.warning("bound fraction unavailable: %s", exc)
        bound = bound_err = float("nan")

    chisq_dof = unc.chi_square_reduced if unc is not None else float("nan")

    status = result.status
    if status is not FitStatus.NUMERICAL_FAILURE and covariance is None:
        status = FitStatus.UNCERTAINTY_UNAVAILABLE

    return FitReport(
        regime=result.regime,
        kon=kon,
        koff=koff,
        kon_error=kon_err,
        koff_error=koff_err,
        chi_square_reduced=chisq_dof,
        bound=bound,
        bound_error=bound_err,
        status=status,
        solver_status=result.status,
        iterations=result.iterations,
    )


# BACKENDS ==============================================================================

def _solve_least_squares(
    objective: FDAPObjective,
    x0: np.ndarray,
    config: SolverConfig,
    callback: Callable[[IterationRecord], None] | None,
) -> SolverOutcome:
    """Trust-region reflective fit through ``scipy.optimize.least_squares``."""
    history: list[IterationRecord] = []

    try:
        res = sci_opt.least_squares(
            objective.residuals,
            x0=x0,
            jac=objective.jacobian,
            method="trf",
            bounds=([0.0, config.min_koff], [np.inf, np.inf]),
            x_scale="jac",
            xtol=config.epsrel,
            max_nfev=int(config.max_iter),
        )
    except ValueError as exc:
        # infeasible x0 or non-finite residuals at x0
        return SolverOutcome(
            x=x0, residuals=None, jacobian=None, iterations=0,
            status=FitStatus.NUMERICAL_FAILURE, message=str(exc), history=history,
        )

    # scipy exposes no per-iteration hook, only the final state is recorded
    rec = IterationRecord(int(res.nfev), float(res.x[0]), float(res.x[1]), float(np.linalg.norm(res.fun)))
    history.append(rec)
    logger.info(
        "iter: %3d x = % 15.8f % 15.8f |f(x)| = %g",
        rec.iteration, rec.kon, rec.koff, rec.residual_norm,
    )
    if callback is not None:
        callback(rec)

    if res.status > 0:
        status = FitStatus.CONVERGED
    elif res.status == 0:
        status = FitStatus.MAX_ITERATIONS_EXCEEDED
    else:
        status = FitStatus.NUMERICAL_FAILURE

    return SolverOutcome(
        x=np.asarray(res.x, dtype=float),
        residuals=np.asarray(res.fun, dtype=float),
        jacobian=np.asarray(res.jac, dtype=float),
        iterations=int(res.nfev),
        status=status,
        message=str(res.message),
        history=history,
    )


# ENTRY POINT ===========================================================================

def fit_model(
    regime: ModelRegime | str,
    constants: PhysicalConstants,
    initial_parameters: ParameterVector | Sequence[float],
    observation: Observation,
    *,
    inversion: InversionConfig | None = None,
    solver: SolverConfig | None = None,
    method: str = "lm",
    callback: Callable[[IterationRecord], None] | None = None,
) -> FitResult:
    """Fit ``kon`` and ``koff`` of a reaction-diffusion regime to an FDAP curve.

    Parameters
    ----------
    regime : ModelRegime or str
        ``FULL_MODEL``, ``HYBRID_MODEL`` or ``REACTION_DOMINANT_PURE``.
    constants : PhysicalConstants
        ``Df`` and ``R`` of the experiment.
    initial_parameters : ParameterVector or sequence of float
        Starting guess ``(kon, koff)``.
    observation : Observation
        Measured curve with standard deviations.
    inversion : InversionConfig, optional
        Quadrature settings of the inverse Laplace transform.
    solver : SolverConfig, optional
        Tolerances and iteration cap.
    method : str
        ``"lm"`` (default) for the built-in Levenberg-Marquardt iteration or
        ``"least_squares"`` for ``scipy.optimize.least_squares``.
    callback : callable, optional
        Receives an :class:`IterationRecord` per iteration.

    Returns
    -------
    FitResult

    Raises
    ------
    ConfigurationError
        Unknown regime or the unsupported effective-diffusion regime.

    Example
    -------
    .. code-block:: python

        obs = Observation.from_range(values, sd, t_ini=0.0, t_end=112.0)
        result = fit_model(
            ModelRegime.FULL_MODEL, PhysicalConstants(Df=11.0, R=3.0),
            ParameterVector(0.5, 0.5), obs,
        )
        build_report(result).display()
    """
    regime = ModelRegime.from_name(regime)
    if not regime.is_fittable:
        raise ConfigurationError(f"'{regime.value}' model is not supported so far")
    if method not in _METHODS:
        raise ValueError(f"Unknown method '{method}', expected one of {_METHODS}")

    if not isinstance(initial_parameters, ParameterVector):
        initial_parameters = ParameterVector.from_array(initial_parameters)

    config = solver if solver is not None else SolverConfig()
    objective = FDAPObjective(regime, constants, observation, inversion)
    x0 = initial_parameters.as_array()

    logger.info(
        "fitting %s to %d samples (Df=%g, R=%g) from kon=%g, koff=%g",
        regime.value, observation.n, constants.Df, constants.R, x0[0], x0[1],
    )

    if method == "lm":
        outcome = LevenbergMarquardt(objective, config).solve(x0, callback=callback)
    else:
        outcome = _solve_least_squares(objective, x0, config, callback)

    logger.info("status = %s (%s)", outcome.status.value, outcome.message)

    uncertainty = None
    chi_square = float("nan")
    if outcome.residuals is not None:
        chi_square = float(outcome.residuals @ outcome.residuals)
    if outcome.jacobian is not None and outcome.residuals is not None:
        uncertainty = UncertaintyResult(outcome.jacobian, outcome.residuals, outcome.x)
        if not uncertainty.available:
            logger.warning("J^T J is singular at the solution, uncertainty unavailable")

    return FitResult(
        regime=regime,
        parameters=ParameterVector.from_array(outcome.x),
        covariance=None if uncertainty is None else uncertainty.covariance,
        chi_square=chi_square,
        iterations=outcome.iterations,
        status=outcome.status,
        message=outcome.message,
        residuals=outcome.residuals,
        jacobian=outcome.jacobian,
        history=outcome.history,
        uncertainty=uncertainty,
    )


# PLOTTING ==============================================================================

def plot_fit(
    result: FitResult,
    observation: Observation,
    constants: PhysicalConstants,
    *,
    inversion: InversionConfig | None = None,
    n_points: int = 400,
    ax=None,
    title: str | None = None,
):
    """Plot the measured curve against the best-fit model.

    Returns
    -------
    fig : matplotlib.figure.Figure
    ax : matplotlib.axes.Axes
    """
    import matplotlib.pyplot as plt  # lazy import

    if ax is None:
        fig, ax = plt.subplots(figsize=(8, 5))
    else:
        fig = ax.figure

    observation.plot(ax=ax)

    objective = FDAPObjective(result.regime, constants, observation, inversion)
    t_fine = np.linspace(observation.time[0], observation.time[-1], n_points)
    ax.plot(t_fine, objective.predict(result.x, t_fine), "-", lw=2, label="fit")

    ax.set_title(title or f"{result.regime.value}: {result.status.value}")
    ax.legend()
    return fig, ax
