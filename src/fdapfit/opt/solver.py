#########################################################################################
##
##                    DAMPED GAUSS-NEWTON (LEVENBERG-MARQUARDT) SOLVER
##                                  (opt/solver.py)
##
#########################################################################################

# IMPORTS ===============================================================================

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, NamedTuple, Protocol, Sequence

import numpy as np
import scipy.linalg as sci_linalg

from ..errors import NumericalDegeneracy
from ..utils.logger import LoggerManager


logger = LoggerManager().get_logger("opt.solver")


# TYPES =================================================================================

class FitStatus(Enum):
    """Terminal state of a fit, as named in the final report."""

    CONVERGED = "Converged"
    MAX_ITERATIONS_EXCEEDED = "MaxIterationsExceeded"
    NUMERICAL_FAILURE = "NumericalFailure"
    UNCERTAINTY_UNAVAILABLE = "UncertaintyUnavailable"


class IterationRecord(NamedTuple):
    """Solver state after an accepted iteration (iteration 0 is the start)."""

    iteration: int
    kon: float
    koff: float
    residual_norm: float


class Objective(Protocol):

    def residuals(self, x: np.ndarray) -> np.ndarray: ...

    def jacobian(self, x: np.ndarray) -> np.ndarray: ...


@dataclass(frozen=True)
class SolverConfig:
    """Stopping rules and safeguards of :class:`LevenbergMarquardt`.

    Parameters
    ----------
    epsabs, epsrel : float
        Step test ``|dx_i| < epsabs + epsrel * |x_i|`` for every parameter.
    max_iter : int
        Hard cap on the number of iterations.
    min_koff : float
        ``|koff|`` below this value is a numerical degeneracy of the model.
    max_rejections : int
        Rejected trial steps allowed within one iteration before giving up.
    initial_damping : float
        Initial damping relative to the largest diagonal entry of ``J^T J``.
    """

    epsabs: float = 1e-4
    epsrel: float = 1e-4
    max_iter: int = 500
    min_koff: float = 1e-10
    max_rejections: int = 20
    initial_damping: float = 1e-3


    def __post_init__(self) -> None:
        if self.epsabs < 0.0 or self.epsrel < 0.0:
            raise ValueError("SolverConfig: tolerances must be non-negative")
        if self.max_iter < 1:
            raise ValueError(f"SolverConfig: max_iter must be >= 1, got {self.max_iter}")
        if self.max_rejections < 1:
            raise ValueError(f"SolverConfig: max_rejections must be >= 1, got {self.max_rejections}")
        if self.initial_damping <= 0.0:
            raise ValueError("SolverConfig: initial_damping must be > 0")


@dataclass
class SolverOutcome:
    """Raw result of :meth:`LevenbergMarquardt.solve`."""

    x: np.ndarray
    residuals: np.ndarray | None
    jacobian: np.ndarray | None
    iterations: int
    status: FitStatus
    message: str
    history: list[IterationRecord] = field(default_factory=list)


    @property
    def residual_norm(self) -> float:
        if self.residuals is None:
            return float("nan")
        return float(np.linalg.norm(self.residuals))


    def __repr__(self) -> str:
        return (
            f"SolverOutcome({self.status.value}, iterations={self.iterations}, "
            f"|f(x)|={self.residual_norm:.4g}, x={self.x})"
        )


# HELPERS ===============================================================================

def step_converged(dx: np.ndarray, x: np.ndarray, epsabs: float, epsrel: float) -> bool:
    """True if every step component is below ``epsabs + epsrel * |x_i|``."""
    return bool(np.all(np.abs(dx) < epsabs + epsrel * np.abs(x)))


# SOLVER ================================================================================

class LevenbergMarquardt:
    """Trust-region damped Gauss-Newton iteration for two rate constants.

    Every iteration solves the damped normal equations

    .. math::

        (J^T J + \\mu D) \\, \\delta x = -J^T r

    with ``D`` the running maximum of ``diag(J^T J)``, and accepts the step if
    it reduces the sum of squares. The damping ``mu`` follows the gain ratio of
    actual to predicted reduction; rejected steps increase it and are retried
    within the same iteration.

    Parameters
    ----------
    objective : object
        Provides ``residuals(x)`` and ``jacobian(x)``; the second entry of
        ``x`` is ``koff``.
    config : SolverConfig, optional
        Tolerances and safeguards.

    Notes
    -----
    A numerical failure (singular normal matrix, non-finite residuals or
    Jacobian, ``koff`` collapsing to zero, no acceptable step) ends the loop
    at once and keeps the last valid parameters. Hitting ``max_iter`` is a
    soft failure, the last iterate is returned as well.
    """

    def __init__(self, objective: Objective, config: SolverConfig | None = None):
        self.objective = objective
        self.config = config if config is not None else SolverConfig()


    def _check_koff(self, x: np.ndarray) -> None:
        if not np.all(np.isfinite(x)):
            raise NumericalDegeneracy(f"non-finite parameters {x}")
        if abs(x[1]) < self.config.min_koff:
            raise NumericalDegeneracy(f"koff={x[1]:.3g} collapsed towards zero")


    def _evaluate_residuals(self, x: np.ndarray) -> np.ndarray:
        r = np.asarray(self.objective.residuals(x), dtype=float)
        if not np.all(np.isfinite(r)):
            raise NumericalDegeneracy(f"non-finite residuals at x={x}")
        return r


    def _evaluate_jacobian(self, x: np.ndarray) -> np.ndarray:
        J = np.asarray(self.objective.jacobian(x), dtype=float)
        if not np.all(np.isfinite(J)):
            raise NumericalDegeneracy(f"non-finite Jacobian at x={x}")
        return J


    def _record(
        self,
        iteration: int,
        x: np.ndarray,
        r: np.ndarray,
        history: list[IterationRecord],
        callback: Callable[[IterationRecord], None] | None,
    ) -> None:
        rec = IterationRecord(iteration, float(x[0]), float(x[1]), float(np.linalg.norm(r)))
        history.append(rec)
        logger.info(
            "iter: %3d x = % 15.8f % 15.8f |f(x)| = %g",
            rec.iteration, rec.kon, rec.koff, rec.residual_norm,
        )
        if callback is not None:
            callback(rec)


    def solve(
        self,
        x0: Sequence[float],
        callback: Callable[[IterationRecord], None] | None = None,
    ) -> SolverOutcome:
        """Iterate from ``x0`` until convergence, failure or the iteration cap.

        Parameters
        ----------
        x0 : sequence of float
            Starting guess ``(kon, koff)``; not modified.
        callback : callable, optional
            Called with an :class:`IterationRecord` for the starting point and
            after every accepted iteration.

        Returns
        -------
        SolverOutcome
        """
        cfg = self.config
        x = np.array(x0, dtype=float).reshape(-1)
        history: list[IterationRecord] = []

        try:
            self._check_koff(x)
            r = self._evaluate_residuals(x)
            J = self._evaluate_jacobian(x)
        except NumericalDegeneracy as exc:
            logger.warning("invalid starting point: %s", exc)
            return SolverOutcome(
                x=x, residuals=None, jacobian=None, iterations=0,
                status=FitStatus.NUMERICAL_FAILURE, message=str(exc), history=history,
            )

        self._record(0, x, r, history, callback)

        A = J.T @ J
        g = J.T @ r
        cost = float(r @ r)
        D = np.diag(A).copy()
        mu = cfg.initial_damping * float(np.max(D)) if np.max(D) > 0.0 else cfg.initial_damping
        nu = 2.0

        iteration = 0
        status = FitStatus.MAX_ITERATIONS_EXCEEDED
        message = f"iteration limit of {cfg.max_iter} reached"

        try:
            while iteration < cfg.max_iter:
                iteration += 1

                rejections = 0
                while True:
                    try:
                        dx = sci_linalg.solve(A + mu * np.diag(D), -g, assume_a="pos")
                    except (sci_linalg.LinAlgError, ValueError) as exc:
                        raise NumericalDegeneracy(f"singular normal equations: {exc}") from None
                    if not np.all(np.isfinite(dx)):
                        raise NumericalDegeneracy("non-finite step")

                    x_new = x + dx
                    self._check_koff(x_new)
                    r_new = self._evaluate_residuals(x_new)

                    cost_new = float(r_new @ r_new)
                    predicted = cost - float(np.sum((r + J @ dx) ** 2))
                    actual = cost - cost_new
                    rho = actual / predicted if predicted > 0.0 else -1.0

                    if rho > 0.0:
                        break

                    # at the roundoff floor, nothing left to gain
                    if step_converged(dx, x, cfg.epsabs, cfg.epsrel) and rejections == 0:
                        status = FitStatus.CONVERGED
                        message = "step below tolerance, no further reduction"
                        return SolverOutcome(x, r, J, iteration - 1, status, message, history)

                    mu *= nu
                    nu *= 2.0
                    rejections += 1
                    if rejections >= cfg.max_rejections:
                        raise NumericalDegeneracy(
                            f"no acceptable step after {rejections} trials"
                        )

                J_new = self._evaluate_jacobian(x_new)

                x, r, J, cost = x_new, r_new, J_new, cost_new
                A = J.T @ J
                g = J.T @ r
                D = np.maximum(D, np.diag(A))
                mu *= max(1.0 / 3.0, 1.0 - (2.0 * rho - 1.0) ** 3)
                nu = 2.0

                self._record(iteration, x, r, history, callback)

                if step_converged(dx, x, cfg.epsabs, cfg.epsrel):
                    status = FitStatus.CONVERGED
                    message = "success"
                    break

        except NumericalDegeneracy as exc:
            logger.warning("iteration %d failed: %s", iteration, exc)
            return SolverOutcome(
                x=x, residuals=r, jacobian=J, iterations=iteration,
                status=FitStatus.NUMERICAL_FAILURE, message=str(exc), history=history,
            )

        if status is FitStatus.MAX_ITERATIONS_EXCEEDED:
            logger.warning(message)

        return SolverOutcome(x, r, J, iteration, status, message, history)
