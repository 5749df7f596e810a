#########################################################################################
##
##                    PARAMETER UNCERTAINTY AND DERIVED QUANTITIES
##                               (opt/uncertainty.py)
##
#########################################################################################

# IMPORTS ===============================================================================

from __future__ import annotations

from typing import Sequence

import numpy as np
import scipy.linalg as sci_linalg

from ..errors import NumericalDegeneracy


# Normal matrices with a larger condition number are treated as singular
_MAX_CONDITION = 1.0 / np.finfo(float).eps


# HELPERS ===============================================================================

def _build_stats(fim: np.ndarray, scale: float) -> dict | None:
    """Covariance, std errors, correlation and condition number of a Fisher
    Information Matrix, or ``None`` if it is singular.
    """
    if not np.all(np.isfinite(fim)):
        return None

    condition_number = float(np.linalg.cond(fim))
    if not np.isfinite(condition_number) or condition_number > _MAX_CONDITION:
        return None

    try:
        covariance = scale ** 2 * sci_linalg.inv(fim)
    except sci_linalg.LinAlgError:
        return None

    std_errors = np.sqrt(np.maximum(np.diag(covariance), 0.0))

    n_p = fim.shape[0]
    corr = np.zeros((n_p, n_p))
    for i in range(n_p):
        for j in range(n_p):
            denom = std_errors[i] * std_errors[j]
            if denom > 0.0:
                corr[i, j] = covariance[i, j] / denom
            elif i == j:
                corr[i, j] = 1.0

    return dict(
        covariance=covariance,
        std_errors=std_errors,
        correlation=corr,
        condition_number=condition_number,
    )


def _print_param_table(param_names, param_values, std_errors, W=72):
    """Print the parameter value / std-error / rel-error table."""
    dash = "-" * W
    print(f"  {'Parameter':<22} {'Value':>12} {'Std Error':>12} {'Rel Error':>10}")
    print(dash)

    for name, val, se in zip(param_names, param_values, std_errors):
        if abs(val) > 1e-15 and np.isfinite(se):
            rel_str = f"{se / abs(val) * 100:.2f}%"
        else:
            rel_str = "N/A"
        print(f"  {name:<22} {val:>12.5f} {se:>12.5f} {rel_str:>10}")

    print(dash)


# DERIVED QUANTITY ======================================================================

def bound_fraction(kon: float, koff: float, covariance: np.ndarray | None = None) -> tuple[float, float]:
    """Percentage of bound molecules and its first-order propagated error.

    .. math::

        g = 100 - \\frac{100}{1 + k_{on}/k_{off}}, \\qquad
        \\sigma_g^2 = \\nabla g^T \\, \\Sigma \\, \\nabla g

    Parameters
    ----------
    kon, koff : float
        Fitted rate constants.
    covariance : np.ndarray, optional
        2x2 parameter covariance; without it the error is ``nan``.

    Returns
    -------
    bound : float
    bound_error : float

    Raises
    ------
    NumericalDegeneracy
        If ``koff`` is zero or either input is not finite.
    """
    if not (np.isfinite(kon) and np.isfinite(koff)) or koff == 0.0:
        raise NumericalDegeneracy(f"bound fraction undefined for kon={kon}, koff={koff}")

    ratio = 1.0 + kon / koff
    bound = 100.0 - 100.0 / ratio

    if covariance is None:
        return bound, float("nan")

    grad = np.array([
        100.0 / koff / ratio ** 2,
        -100.0 * kon / koff ** 2 / ratio ** 2,
    ])
    variance = float(grad @ np.asarray(covariance, dtype=float) @ grad)
    return bound, float(np.sqrt(max(variance, 0.0)))


# CLASS: UncertaintyResult ==============================================================

class UncertaintyResult:
    """Parameter uncertainties from the Jacobian at the solution.

    Parameters
    ----------
    jacobian : np.ndarray, shape (n, 2)
        Weighted Jacobian ``dr_i/dtheta_j`` at the solution.
    residuals : np.ndarray, shape (n,)
        Weighted residuals at the solution.
    param_values : array_like, shape (2,)
        ``(kon, koff)`` at the solution.
    param_names : sequence of str, optional
        Names used by :meth:`display`.

    Attributes
    ----------
    fim : np.ndarray
        Fisher Information Matrix ``J^T J``.
    scale : float
        ``max(1, |r| / sqrt(n - 2))``, inflates the errors of poor fits.
    available : bool
        ``False`` when ``J^T J`` is singular; covariance and errors are then
        ``None``.
    covariance : np.ndarray or None
        ``scale^2 * inv(J^T J)``.
    std_errors : np.ndarray or None
        ``sqrt(diag(covariance))``.
    correlation : np.ndarray or None
    condition_number : float
        Condition number of the FIM (``inf`` if singular).
    chi_square : float
        Sum of squared weighted residuals.
    chi_square_reduced : float
        ``chi_square / (n - 2)``.
    """

    def __init__(
        self,
        jacobian: np.ndarray,
        residuals: np.ndarray,
        param_values: Sequence[float],
        param_names: Sequence[str] = ("kon", "koff"),
    ):
        self.jacobian = np.asarray(jacobian, dtype=float)
        self.residuals = np.asarray(residuals, dtype=float).reshape(-1)
        self.param_values = np.asarray(param_values, dtype=float)
        self.param_names = list(param_names)

        n, n_p = self.jacobian.shape
        self.dof = n - n_p

        chi = float(np.linalg.norm(self.residuals))
        self.chi_square = chi ** 2
        self.chi_square_reduced = self.chi_square / self.dof if self.dof > 0 else float("nan")
        self.scale = max(1.0, chi / np.sqrt(self.dof)) if self.dof > 0 else 1.0

        self.fim = self.jacobian.T @ self.jacobian

        stats = _build_stats(self.fim, self.scale)
        self.available = stats is not None
        if stats is None:
            self.covariance = None
            self.std_errors = None
            self.correlation = None
            self.condition_number = float("inf")
        else:
            self.covariance = stats["covariance"]
            self.std_errors = stats["std_errors"]
            self.correlation = stats["correlation"]
            self.condition_number = stats["condition_number"]


    def bound_fraction(self) -> tuple[float, float]:
        """Bound percentage and its error at the solution."""
        kon, koff = self.param_values
        return bound_fraction(kon, koff, self.covariance)


    def display(self) -> None:
        """Print the parameter table and the goodness of fit."""
        W = 72
        line = "=" * W

        print(line)
        print("  Parameter Uncertainty")
        print(line)

        if not self.available:
            print("  J^T J is singular, uncertainties unavailable")
        else:
            _print_param_table(self.param_names, self.param_values, self.std_errors, W)
            print(f"  FIM condition number : {self.condition_number:.3g}")

        print(f"  chisq/dof            : {self.chi_square_reduced:.6g}")
        print(line)
