#########################################################################################
##
##                     WEIGHTED RESIDUAL AND JACOBIAN OF AN FDAP FIT
##                                 (opt/objective.py)
##
#########################################################################################

# IMPORTS ===============================================================================

from __future__ import annotations

from typing import Sequence

import numpy as np

from ..errors import ConfigurationError
from ..inversion.bromwich import InversionConfig, LaplaceInverter
from ..models.parameters import ParameterVector, PhysicalConstants
from ..models.registry import ModelRegime, Selector, transfer_function
from .observation import Observation


# CLASS =================================================================================

class FDAPObjective:
    """Objective oracle for the least-squares solver.

    For a parameter vector ``x = (kon, koff)`` the residuals are

    .. math::

        r_i = \\frac{F(t_i; k_{on}, k_{off}) - y_i}{\\sigma_i}

    where ``F`` is the numerically inverted Laplace image of the selected
    regime. The Jacobian columns are the inverted analytic derivatives
    ``dF/dkon`` and ``dF/dkoff`` divided by ``sigma``.

    Parameters
    ----------
    regime : ModelRegime or str
        Model regime, the effective-diffusion regime is not supported.
    constants : PhysicalConstants
        Diffusion coefficient and half length of the activation region.
    observation : Observation
        Measured curve.
    config : InversionConfig, optional
        Quadrature settings of the inverse transform.

    Notes
    -----
    Evaluations read the observation and the constants only, the parameter
    vectors passed in are never modified.
    """

    def __init__(
        self,
        regime: ModelRegime | str,
        constants: PhysicalConstants,
        observation: Observation,
        config: InversionConfig | None = None,
    ):
        self.regime = ModelRegime.from_name(regime)
        if not self.regime.is_fittable:
            raise ConfigurationError(f"'{self.regime.value}' model is not supported so far")

        self.constants = constants
        self.observation = observation
        self.inverter = LaplaceInverter(observation.time, config)

        # counters for diagnostics
        self.nfev = 0
        self.njev = 0


    @property
    def n(self) -> int:
        return self.observation.n


    def _curve(self, selector: Selector, x: Sequence[float], inverter: LaplaceInverter) -> np.ndarray:
        params = ParameterVector.from_array(x)
        return inverter.invert(transfer_function(self.regime, selector, params, self.constants))


    def residuals(self, x: Sequence[float]) -> np.ndarray:
        """Weighted residual vector of length ``n``."""
        self.nfev += 1
        y_pred = self._curve(Selector.VALUE, x, self.inverter)
        return (y_pred - self.observation.value) / self.observation.sigma


    def jacobian(self, x: Sequence[float]) -> np.ndarray:
        """Weighted Jacobian of shape ``(n, 2)``, columns ``kon`` and ``koff``."""
        self.njev += 1
        d_kon = self._curve(Selector.D_KON, x, self.inverter)
        d_koff = self._curve(Selector.D_KOFF, x, self.inverter)
        return np.column_stack([d_kon, d_koff]) / self.observation.sigma[:, None]


    def evaluate(self, x: Sequence[float]) -> tuple[np.ndarray, np.ndarray]:
        """Residuals and Jacobian in one call."""
        return self.residuals(x), self.jacobian(x)


    def predict(self, x: Sequence[float], times: Sequence[float] | None = None) -> np.ndarray:
        """Unweighted model curve at the observation times or at ``times``."""
        if times is None:
            inverter = self.inverter
        else:
            inverter = LaplaceInverter(times, self.inverter.config)
        return self._curve(Selector.VALUE, x, inverter)
