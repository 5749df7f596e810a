#########################################################################################
##
##                             FDAP OBSERVATION CONTAINER
##                                (opt/observation.py)
##
#########################################################################################

# IMPORTS ===============================================================================

from __future__ import annotations

from typing import Sequence

import numpy as np


# CONSTANTS =============================================================================

# The models have a removable singularity at t = 0
ZERO_TIME_NUDGE = 0.01

MIN_SAMPLES = 3


# CLASS =================================================================================

class Observation:

    """Measured FDAP curve with per-sample standard deviations.

    Stores aligned ``time``, ``value`` and ``sigma`` arrays. The time base is
    required to be strictly increasing and positive, sigma strictly positive.

    Parameters
    ----------
    time : array_like
        Sample times of shape (n,), ``t > 0``.
    value : array_like
        Measured (normalised) fluorescence of shape (n,).
    sigma : array_like or float
        Standard deviation of each sample, shape (n,) or scalar.
    name : str, optional
        Curve name for display and plotting.
    unit : str, optional
        Time unit label used for plotting.

    Notes
    -----
    Use :meth:`from_range` to build the evenly spaced time grid of a
    recorded curve, which applies the zero-time nudge.
    """

    def __init__(
        self,
        time: Sequence[float],
        value: Sequence[float],
        sigma: Sequence[float] | float = 1.0,
        name: str = "FDAP curve",
        unit: str = "s",
    ):
        t = np.asarray(time, dtype=float).reshape(-1)
        y = np.asarray(value, dtype=float).reshape(-1)
        sd = np.asarray(sigma, dtype=float)
        sd = np.full(t.size, float(sd)) if sd.ndim == 0 else sd.reshape(-1)

        if not (t.size == y.size == sd.size):
            raise ValueError(
                "Observation requires time, value and sigma with same length, "
                f"got {t.size}, {y.size}, {sd.size}"
            )
        if t.size < MIN_SAMPLES:
            raise ValueError(f"Observation requires at least {MIN_SAMPLES} samples, got {t.size}")
        if not np.all(np.isfinite(t)) or not np.all(np.isfinite(y)):
            raise ValueError("Observation requires finite time and value")
        if t[0] <= 0.0:
            raise ValueError("Observation requires positive sample times")
        if not np.all(np.diff(t) > 0):
            raise ValueError("Observation requires strictly increasing time")
        if not np.all(np.isfinite(sd)) or np.any(sd <= 0.0):
            raise ValueError("Observation requires strictly positive, finite sigma")

        self.time = t
        self.value = y
        self.sigma = sd
        self.name = str(name)
        self.unit = unit


    @classmethod
    def from_range(
        cls,
        value: Sequence[float],
        sigma: Sequence[float] | float,
        t_ini: float,
        t_end: float,
        **kwargs,
    ) -> "Observation":
        """Samples evenly spaced over ``[t_ini, t_end]``.

        When ``t_ini == 0`` the first sample time is moved to
        :data:`ZERO_TIME_NUDGE`.
        """
        n = np.asarray(value).size
        if n < MIN_SAMPLES:
            raise ValueError(f"Observation requires at least {MIN_SAMPLES} samples, got {n}")
        if t_end <= t_ini:
            raise ValueError(f"t_end ({t_end}) must be greater than t_ini ({t_ini})")

        time = time_grid(t_ini, t_end, n)
        return cls(time, value, sigma, **kwargs)


    @property
    def n(self) -> int:
        """Number of samples."""
        return self.time.size


    def __len__(self) -> int:
        return self.time.size


    @property
    def duration(self) -> float:
        return float(self.time[-1] - self.time[0])


    def plot(
        self,
        *,
        ax=None,
        marker: str = "o",
        markersize: float = 4.0,
        errorbars: bool = True,
        alpha: float = 0.6,
    ):
        """Plot the curve, optionally with sigma error bars.

        Returns
        -------
        fig : matplotlib.figure.Figure
        ax : matplotlib.axes.Axes
        """
        import matplotlib.pyplot as plt

        if ax is None:
            fig, ax = plt.subplots(figsize=(8, 4))
        else:
            fig = ax.figure

        if errorbars:
            ax.errorbar(
                self.time, self.value, yerr=self.sigma,
                fmt=marker, ms=markersize, alpha=alpha, label=self.name,
            )
        else:
            ax.plot(self.time, self.value, marker, ms=markersize, alpha=alpha, label=self.name)

        ax.set_xlabel(f"Time ({self.unit})")
        ax.set_ylabel("Normalised fluorescence")
        ax.set_title(f"FDAP: {self.name}")
        ax.grid(True, alpha=0.3)
        ax.legend()
        return fig, ax


# HELPERS ===============================================================================

def time_grid(t_ini: float, t_end: float, n: int) -> np.ndarray:
    """``n`` evenly spaced sample times on ``[t_ini, t_end]`` with the zero nudge."""
    step = (t_end - t_ini) / (n - 1)
    time = t_ini + np.arange(n, dtype=float) * step
    if time[0] == 0.0:
        time[0] = ZERO_TIME_NUDGE
    return time
